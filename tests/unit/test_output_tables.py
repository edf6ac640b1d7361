"""Tests for output table factories."""

from rich.console import Console

from managed_ai.lifecycle.orchestrator import StatusReport
from managed_ai.models.schema import ModelInfo
from managed_ai.output.tables import create_local_models_table, create_status_table


def render(table: object) -> str:
    console = Console(width=200, color_system=None)
    with console.capture() as capture:
        console.print(table)
    return capture.get()


class TestLocalModelsTable:
    """Test the table of models on the server."""

    def test_creates_empty_table_for_no_models(self) -> None:
        table = create_local_models_table([])

        assert table.row_count == 0
        assert table.title == "Local Models"

    def test_uses_custom_title(self) -> None:
        table = create_local_models_table([], title="Models at http://localhost:11434")

        assert table.title == "Models at http://localhost:11434"

    def test_renders_model_rows(self) -> None:
        models = [
            ModelInfo(name="llama3.2:latest", size=2 * 1024**3, modified_at="2025-01-10T08:15:00.123Z"),
            ModelInfo(name="qwen2.5:7b"),
        ]

        output = render(create_local_models_table(models))

        assert "llama3.2:latest" in output
        assert "2.0 GB" in output
        assert "2025-01-10 08:15:00" in output
        assert "qwen2.5:7b" in output


class TestStatusTable:
    """Test the server status table."""

    def test_running_server(self) -> None:
        report = StatusReport(
            process_running=True,
            service_healthy=True,
            endpoint="http://localhost:11434",
            health="healthy",
            models=["llama3.2:latest"],
            pid=4242,
        )

        output = render(create_status_table(report, log_file="/tmp/state/server.log"))

        assert "running" in output
        assert "4242" in output
        assert "llama3.2:latest" in output
        assert "/tmp/state/server.log" in output

    def test_stopped_server_omits_pid(self) -> None:
        report = StatusReport(process_running=False, service_healthy=False, endpoint="http://localhost:11434")

        table = create_status_table(report)
        output = render(table)

        assert "not running" in output
        assert "PID" not in output
        assert "none" in output
