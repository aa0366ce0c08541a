"""Print-quality gate for candidate uploads."""

from dataclasses import dataclass
from enum import StrEnum

from family_gazette.config import Settings, parse_csv_set
from family_gazette.domain.content import (
    MAX_CONTENT_SIZE,
    MIN_IMAGE_RESOLUTION,
    SUPPORTED_COLOR_SPACES,
    SUPPORTED_MIME_TYPES,
    PrintRules,
    UploadAsset,
)
from family_gazette.errors import TooManyFilesError, ValidationError

MAX_TEXT_LENGTH = 500


class RejectionReason(StrEnum):
    """Why a candidate asset was rejected."""

    SIZE_EXCEEDED = "SIZE_EXCEEDED"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    LOW_RESOLUTION = "LOW_RESOLUTION"
    INVALID_COLOR_SPACE = "INVALID_COLOR_SPACE"
    EMPTY_TEXT = "EMPTY_TEXT"
    TEXT_TOO_LONG = "TEXT_TOO_LONG"


@dataclass(frozen=True)
class UploadConstraints:
    """Hard limits an asset must satisfy before it is uploaded."""

    max_size: int = MAX_CONTENT_SIZE
    allowed_mime_types: frozenset[str] = SUPPORTED_MIME_TYPES
    min_resolution: int = MIN_IMAGE_RESOLUTION
    allowed_color_spaces: frozenset[str] = SUPPORTED_COLOR_SPACES
    max_text_length: int = MAX_TEXT_LENGTH

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadConstraints":
        """Build constraints from application settings."""
        return cls(
            max_size=settings.max_content_size,
            allowed_mime_types=parse_csv_set(settings.allowed_mime_types),
            min_resolution=settings.min_resolution,
            allowed_color_spaces=parse_csv_set(
                settings.allowed_color_spaces, upper=True
            ),
            max_text_length=settings.max_text_length,
        )

    def print_rules(self) -> PrintRules:
        """Return the print readiness rules implied by these constraints."""
        return PrintRules(
            min_resolution=self.min_resolution,
            allowed_color_spaces=self.allowed_color_spaces,
            max_content_size=self.max_size,
        )


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating an asset."""

    reason: RejectionReason | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        """Whether the asset passed every check."""
        return self.reason is None

    def raise_for_reason(self) -> None:
        """Raise a ``ValidationError`` when the asset was rejected."""
        if self.reason is not None:
            raise ValidationError(code=self.reason, message=self.message)


def validate_asset(asset: UploadAsset, constraints: UploadConstraints) -> ValidationResult:
    """Check an asset against print constraints, stopping at the first failure.

    Checks run in a fixed order: size, MIME type, resolution, color space.
    """
    if asset.byte_size > constraints.max_size:
        return ValidationResult(
            RejectionReason.SIZE_EXCEEDED,
            f"Content size exceeds maximum limit of {constraints.max_size} bytes",
        )
    mime_type = resolve_mime_type(asset)
    if mime_type not in constraints.allowed_mime_types:
        return ValidationResult(
            RejectionReason.UNSUPPORTED_TYPE,
            f"Unsupported content type: {mime_type or 'unknown'}",
        )
    if asset.dpi < constraints.min_resolution:
        return ValidationResult(
            RejectionReason.LOW_RESOLUTION,
            "Image resolution below minimum requirement of "
            f"{constraints.min_resolution} DPI",
        )
    color_space = (asset.color_space or "").upper()
    if color_space not in constraints.allowed_color_spaces:
        return ValidationResult(
            RejectionReason.INVALID_COLOR_SPACE,
            f"Unsupported color space: {asset.color_space or 'unknown'}",
        )
    return ValidationResult()


def ensure_valid(asset: UploadAsset, constraints: UploadConstraints) -> None:
    """Raise a ``ValidationError`` if the asset fails validation."""
    validate_asset(asset, constraints).raise_for_reason()


def validate_text(text: str, max_length: int = MAX_TEXT_LENGTH) -> ValidationResult:
    """Check a text contribution for emptiness and length."""
    stripped = text.strip()
    if not stripped:
        return ValidationResult(RejectionReason.EMPTY_TEXT, "Text content is empty")
    if len(stripped) > max_length:
        return ValidationResult(
            RejectionReason.TEXT_TOO_LONG,
            f"Text exceeds maximum length of {max_length} characters",
        )
    return ValidationResult()


def ensure_batch_size(count: int, max_files: int) -> None:
    """Reject a batch with more files than a gazette can hold."""
    if count > max_files:
        raise TooManyFilesError(count=count, max_files=max_files)


def resolve_mime_type(asset: UploadAsset) -> str | None:
    """Return the declared MIME type or one inferred from the file signature."""
    if asset.mime_type:
        return asset.mime_type.lower()
    return detect_mime_type(asset.data)


def detect_mime_type(data: bytes) -> str | None:
    """Infer an image MIME type from file signatures."""
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:4] in {b"II*\x00", b"MM\x00*"}:
        return "image/tiff"
    return None
