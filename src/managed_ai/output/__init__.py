"""Output module for the managed-ai CLI.

Provides consistent formatting, tables, and display helpers.
"""

from managed_ai.output.console import (
    console,
    format_bytes,
    format_progress,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from managed_ai.output.tables import create_local_models_table, create_status_table

__all__ = [
    "console",
    "create_local_models_table",
    "create_status_table",
    "format_bytes",
    "format_progress",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
]
