"""
Type definitions for the Flashcard Distiller.

This module defines the data structures passed between the vault, the
generation service and the distillation pipeline.
"""

from enum import Enum
from typing import Any, Callable, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class SourceItem(BaseModel):
    """
    A note read from the vault.

    Attributes:
        path: Vault-relative path, forward-slash separated
        content: Text content snapshot taken at read time
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Vault-relative note path")
    content: str = Field(default="", description="Note content at read time")

    @property
    def basename(self) -> str:
        """File name without directories and extension."""
        name = self.path.rsplit("/", 1)[-1]
        return name.rsplit(".", 1)[0] if "." in name else name


class ProviderInfo(BaseModel):
    """
    A provider exposed by the generation service.
    """

    id: str = Field(..., description="Unique provider id")
    name: str = Field(default="", description="Display name")
    model: str = Field(default="gpt-4o-mini", description="Model requested from the provider")
    base_url: Optional[str] = Field(default=None, description="OpenAI-compatible endpoint, None for the default")
    api_key_env: str = Field(default="OPENAI_API_KEY", description="Environment variable holding the API key")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0, description="Sampling temperature")
    stream: bool = Field(default=True, description="Stream partial output through the progress callback")

    @property
    def display_name(self) -> str:
        return self.name or self.model or self.id


ProgressCallback = Callable[[str, str], None]


class GenerationRequest(BaseModel):
    """
    One request to the generation service, built fresh per invocation.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    provider: ProviderInfo
    prompt: str
    on_progress: Optional[ProgressCallback] = Field(default=None, description="Receives (chunk, accumulated_total)")


class PlainResult(BaseModel):
    """Raw result was a non-empty string."""

    kind: Literal["plain"] = "plain"
    text: str


class StreamedResult(BaseModel):
    """Text accumulated from streaming progress callbacks."""

    kind: Literal["streamed"] = "streamed"
    text: str


class StructuredResult(BaseModel):
    """Raw result was a mapping-like object."""

    kind: Literal["structured"] = "structured"
    fields: Dict[str, Any] = Field(default_factory=dict)


class OpaqueResult(BaseModel):
    """Raw result of any other non-null type."""

    kind: Literal["opaque"] = "opaque"
    value: Any


GenerationResult = Union[PlainResult, StreamedResult, StructuredResult, OpaqueResult]


class DistillStatus(str, Enum):
    """Terminal states of one distillation run."""

    SKIPPED = "skipped"
    DONE = "done"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why a distillation run ended in the failed state."""

    PROVIDER_UNAVAILABLE = "provider_unavailable"
    NO_PROVIDER = "no_provider"
    EMPTY_RESPONSE = "empty_response"
    EMPTY_AFTER_SANITIZE = "empty_after_sanitize"
    READ_FAILURE = "read_failure"
    WRITE_FAILURE = "write_failure"
    GENERATION_FAILURE = "generation_failure"


class DistillationOutcome(BaseModel):
    """
    Result of one distillation run.
    """

    status: DistillStatus
    source_path: str
    destination_path: Optional[str] = None
    reason: Optional[FailureReason] = None
    message: str = ""
    provider_id: Optional[str] = None
    flashcards: Optional[str] = Field(default=None, description="Sanitized model output written to the artifact")

    @property
    def ok(self) -> bool:
        return self.status != DistillStatus.FAILED
