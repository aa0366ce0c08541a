"""Domain models for gazettes and their print layout."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

DEFAULT_RESOLUTION = 300
DEFAULT_BLEED_MM = 3
MAX_PHOTOS_PER_GAZETTE = 28


class GazetteStatus(StrEnum):
    """Lifecycle states of a gazette."""

    DRAFT = "DRAFT"
    PROCESSING = "PROCESSING"
    READY_FOR_PRINT = "READY_FOR_PRINT"
    ERROR = "ERROR"
    APPROVED = "APPROVED"


TERMINAL_POLL_STATUSES = frozenset(
    {GazetteStatus.READY_FOR_PRINT, GazetteStatus.ERROR, GazetteStatus.APPROVED}
)


class PageSize(StrEnum):
    """Page sizes (ISO 216)."""

    A4 = "A4"


class LayoutColorSpace(StrEnum):
    """Color spaces a print layout may request."""

    CMYK = "CMYK"
    RGB = "RGB"


class BindingType(StrEnum):
    """Binding types for gazette production."""

    PERFECT = "PERFECT"


class LayoutStyle(StrEnum):
    """Visual styles for gazette layouts."""

    CLASSIC = "CLASSIC"
    MODERN = "MODERN"
    COMPACT = "COMPACT"


@dataclass(frozen=True)
class GazetteLayout:
    """Print layout settings for a gazette."""

    page_size: str = PageSize.A4
    color_space: str = LayoutColorSpace.CMYK
    resolution: int = DEFAULT_RESOLUTION
    bleed: float = DEFAULT_BLEED_MM
    binding: str = BindingType.PERFECT
    style: str = LayoutStyle.CLASSIC


@dataclass(frozen=True)
class PhaseTimings:
    """Elapsed milliseconds for the phases of a gazette's lifecycle."""

    validation_ms: float = 0.0
    generation_ms: float = 0.0
    preview_ms: float = 0.0


@dataclass(frozen=True)
class PrintApproval:
    """Who approved a gazette for print and how."""

    approved_by: str
    quality_checked: bool
    notes: str | None = None
    approved_at: datetime | None = None


@dataclass(frozen=True)
class Gazette:
    """A generated gazette."""

    id: str
    family_id: str
    status: GazetteStatus
    layout: GazetteLayout
    created_at: datetime
    updated_at: datetime
    content_ids: tuple[str, ...] = ()
    preview_url: str | None = None
    generated_url: str | None = None
    approval: PrintApproval | None = None
