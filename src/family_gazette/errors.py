"""Error taxonomy for the print pipeline."""

from dataclasses import dataclass, field


@dataclass(eq=False)
class PipelineError(Exception):
    """Base error carrying a stable code for localized display."""

    code: str
    message: str
    details: dict[str, object] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(PipelineError):
    """Client-side, user-correctable error raised before any network call."""


class TooManyFilesError(ValidationError):
    """A batch exceeds the number of files a gazette can hold."""

    def __init__(self, count: int, max_files: int) -> None:
        super().__init__(
            code="TOO_MANY_FILES",
            message=f"Too many files: {count} submitted, at most {max_files} allowed",
            details={"count": count, "max_files": max_files},
        )


class TransportError(PipelineError):
    """Network failure that persisted after all retries."""


class BackendError(PipelineError):
    """The backend rejected a request or failed to process it."""


class GenerationError(BackendError):
    """Gazette generation was rejected or failed on the backend."""


class PipelineTimeoutError(PipelineError):
    """A status poll or fetch exceeded its time bound."""


class InFlightError(PipelineError):
    """An operation for the same entity is already running."""


class InvalidStateError(PipelineError):
    """The entity is not in a state that allows the requested transition."""


class UploadCancelledError(PipelineError):
    """The upload was aborted by the caller."""
