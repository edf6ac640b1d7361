"""Data models for the Ollama model API.

Defines Pydantic models for /api/tags, /api/pull progress records and the
minimal generate/chat request and response bodies.
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field

# Human-readable labels for pull statuses that carry no byte counts
STATUS_LABELS = {
    "pulling manifest": "Pulling manifest",
    "verifying sha256 digest": "Verifying model integrity",
    "writing manifest": "Writing model manifest",
    "removing any unused layers": "Cleaning up unused layers",
    "success": "Model downloaded successfully",
}


class PullProgress(BaseModel):
    """One NDJSON record streamed by /api/pull."""

    model_config = ConfigDict(extra="ignore")

    status: str = Field(default="", description="Current pull phase")
    digest: str | None = Field(default=None, description="Layer digest being downloaded")
    total: int | None = Field(default=None, ge=0, description="Layer size in bytes")
    completed: int | None = Field(default=None, ge=0, description="Bytes downloaded so far")
    error: str | None = Field(default=None, description="Error reported by the server")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percentage(self) -> float:
        """Progress of the current layer in percent, 0 when unknown."""
        if not self.total or self.completed is None:
            return 0.0
        return min(100.0, self.completed * 100.0 / self.total)

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    @property
    def key(self) -> str:
        """Identity of the phase this record belongs to."""
        return f"{self.status}_{self.digest or ''}"

    @property
    def label(self) -> str:
        """Display text for the record."""
        if self.error:
            return f"Error: {self.error}"
        if self.status in STATUS_LABELS:
            return STATUS_LABELS[self.status]
        if self.total:
            return f"{self.status} ({self.percentage:.0f}%)"
        return self.status


class ModelInfo(BaseModel):
    """A locally available model as listed by /api/tags."""

    model_config = ConfigDict(extra="ignore")

    name: str
    size: int | None = Field(default=None, ge=0, description="Size on disk in bytes")
    digest: str | None = None
    modified_at: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def size_gb(self) -> str:
        """Format size in GB for display."""
        if self.size is None:
            return "-"
        gb = self.size / (1024 * 1024 * 1024)
        if gb >= 10:
            return f"{gb:.0f} GB"
        return f"{gb:.1f} GB"


class ModelsResponse(BaseModel):
    """Body of GET /api/tags."""

    models: list[ModelInfo] = Field(default_factory=list)


class PullRequest(BaseModel):
    name: str
    stream: bool = False


class ChatMessage(BaseModel):
    role: str
    content: str


class GenerateResponse(BaseModel):
    """Body of a non-streaming POST /api/generate."""

    model_config = ConfigDict(extra="ignore")

    model: str = ""
    response: str = ""
    done: bool = True


class ChatResponse(BaseModel):
    """Body of a non-streaming POST /api/chat."""

    model_config = ConfigDict(extra="ignore")

    model: str = ""
    message: ChatMessage
    done: bool = True
