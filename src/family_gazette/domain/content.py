"""Domain models for uploaded family content."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from uuid import uuid4

MAX_CONTENT_SIZE = 10 * 1024 * 1024
MIN_IMAGE_RESOLUTION = 300
MIN_IMAGE_QUALITY = 85
SUPPORTED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/tiff"})
SUPPORTED_COLOR_SPACES = frozenset({"RGB", "CMYK"})
SUPPORTED_LANGUAGES = ("en", "he", "fr", "es", "de", "ru", "ar", "zh")


class ContentKind(StrEnum):
    """Supported kinds of content."""

    PHOTO = "PHOTO"
    TEXT = "TEXT"


class ContentStatus(StrEnum):
    """Processing status of a content record."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    READY = "READY"
    ERROR = "ERROR"


class TranslationStatus(StrEnum):
    """Status of a single language translation."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ContentMetadata:
    """Descriptive and print-relevant metadata of a content item."""

    description: str = ""
    original_language: str = "en"
    width: int = 0
    height: int = 0
    byte_size: int = 0
    mime_type: str | None = None
    dpi: int = 0
    color_space: str | None = None
    quality: int = 0


@dataclass(frozen=True)
class ContentTranslation:
    """A translated description for one language."""

    language: str
    description: str
    status: TranslationStatus
    last_updated: datetime


@dataclass(frozen=True)
class Content:
    """A content record as owned by the content store."""

    id: str
    kind: ContentKind
    url: str
    creator_id: str
    family_id: str
    metadata: ContentMetadata
    status: ContentStatus
    created_at: datetime
    updated_at: datetime
    translations: tuple[ContentTranslation, ...] = ()
    gazette_ids: frozenset[str] = frozenset()
    processing_errors: tuple[str, ...] = ()
    print_ready: bool = False


@dataclass(frozen=True)
class PrintRules:
    """Thresholds a content item must meet to be printable."""

    min_resolution: int = MIN_IMAGE_RESOLUTION
    allowed_color_spaces: frozenset[str] = SUPPORTED_COLOR_SPACES
    max_content_size: int = MAX_CONTENT_SIZE


@dataclass(frozen=True)
class UploadAsset:
    """A candidate file to be validated and uploaded."""

    data: bytes
    filename: str = "upload"
    mime_type: str | None = None
    dpi: int = 0
    color_space: str | None = None
    width: int = 0
    height: int = 0
    file_id: str = field(default_factory=lambda: str(uuid4()))

    @property
    def byte_size(self) -> int:
        """Size of the asset payload in bytes."""
        return len(self.data)


def compute_print_ready(content: Content, rules: PrintRules) -> bool:
    """Return whether a content item satisfies every print requirement."""
    metadata = content.metadata
    return (
        content.status == ContentStatus.READY
        and metadata.dpi >= rules.min_resolution
        and metadata.color_space in rules.allowed_color_spaces
        and metadata.byte_size <= rules.max_content_size
    )


def with_print_readiness(content: Content, rules: PrintRules) -> Content:
    """Return the content with its derived print readiness recomputed."""
    print_ready = compute_print_ready(content, rules)
    if content.print_ready == print_ready:
        return content
    return replace(content, print_ready=print_ready)
