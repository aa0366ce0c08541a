"""Pydantic models for backend JSON payloads."""

from datetime import UTC, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from family_gazette.domain.content import (
    Content,
    ContentKind,
    ContentMetadata,
    ContentStatus,
    ContentTranslation,
    TranslationStatus,
)
from family_gazette.domain.gazette import (
    Gazette,
    GazetteLayout,
    GazetteStatus,
    PrintApproval,
)


def _now() -> datetime:
    return datetime.now(tz=UTC)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ContentMetadataPayload(_CamelModel):
    """Content metadata payload."""

    description: str = ""
    original_language: str = Field(default="en", alias="originalLanguage")
    width: int = 0
    height: int = 0
    byte_size: int = Field(
        default=0,
        validation_alias=AliasChoices("byteSize", "size", "byte_size"),
        serialization_alias="byteSize",
    )
    mime_type: str | None = Field(default=None, alias="mimeType")
    dpi: int = 0
    color_space: str | None = Field(default=None, alias="colorSpace")
    quality: int = 0

    @classmethod
    def from_domain(cls, metadata: ContentMetadata) -> "ContentMetadataPayload":
        """Build the payload sent alongside an upload."""
        return cls(
            description=metadata.description,
            original_language=metadata.original_language,
            width=metadata.width,
            height=metadata.height,
            byte_size=metadata.byte_size,
            mime_type=metadata.mime_type,
            dpi=metadata.dpi,
            color_space=metadata.color_space,
            quality=metadata.quality,
        )

    def to_domain(self) -> ContentMetadata:
        """Convert to the domain metadata."""
        return ContentMetadata(
            description=self.description,
            original_language=self.original_language,
            width=self.width,
            height=self.height,
            byte_size=self.byte_size,
            mime_type=self.mime_type,
            dpi=self.dpi,
            color_space=self.color_space,
            quality=self.quality,
        )


class TranslationPayload(_CamelModel):
    """Single translation payload."""

    language: str
    description: str = ""
    status: TranslationStatus = TranslationStatus.PENDING
    last_updated: datetime = Field(default_factory=_now, alias="lastUpdated")

    def to_domain(self) -> ContentTranslation:
        """Convert to the domain translation."""
        return ContentTranslation(
            language=self.language,
            description=self.description,
            status=self.status,
            last_updated=self.last_updated,
        )


class ContentPayload(_CamelModel):
    """Content record payload."""

    id: str
    type: ContentKind
    url: str = ""
    creator_id: str = Field(default="", alias="creatorId")
    family_id: str = Field(default="", alias="familyId")
    metadata: ContentMetadataPayload = Field(default_factory=ContentMetadataPayload)
    translations: list[TranslationPayload] = Field(default_factory=list)
    status: ContentStatus = ContentStatus.PENDING
    gazette_ids: list[str] = Field(default_factory=list, alias="gazetteIds")
    created_at: datetime = Field(default_factory=_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=_now, alias="updatedAt")
    processing_errors: list[str] = Field(
        default_factory=list, alias="processingErrors"
    )

    def to_domain(self) -> Content:
        """Convert to the domain record.

        ``printReady`` from the wire is ignored; the store derives it.
        """
        return Content(
            id=self.id,
            kind=self.type,
            url=self.url,
            creator_id=self.creator_id,
            family_id=self.family_id,
            metadata=self.metadata.to_domain(),
            status=self.status,
            created_at=self.created_at,
            updated_at=self.updated_at,
            translations=tuple(item.to_domain() for item in self.translations),
            gazette_ids=frozenset(self.gazette_ids),
            processing_errors=tuple(self.processing_errors),
        )


class PrintReadinessPayload(_CamelModel):
    """Backend print validation verdict."""

    print_ready: bool = Field(alias="printReady")


class LayoutPayload(_CamelModel):
    """Gazette layout payload."""

    page_size: str = Field(alias="pageSize")
    color_space: str = Field(alias="colorSpace")
    resolution: int
    bleed: float
    binding: str = "PERFECT"
    style: str = "CLASSIC"

    @classmethod
    def from_domain(cls, layout: GazetteLayout) -> "LayoutPayload":
        """Build the payload sent with a generation request."""
        return cls(
            page_size=str(layout.page_size),
            color_space=str(layout.color_space),
            resolution=layout.resolution,
            bleed=layout.bleed,
            binding=str(layout.binding),
            style=str(layout.style),
        )

    def to_domain(self) -> GazetteLayout:
        """Convert to the domain layout."""
        return GazetteLayout(
            page_size=self.page_size,
            color_space=self.color_space,
            resolution=self.resolution,
            bleed=self.bleed,
            binding=self.binding,
            style=self.style,
        )


class ApprovalPayload(_CamelModel):
    """Print approval payload."""

    approved_by: str = Field(alias="approvedBy")
    quality_checked: bool = Field(alias="qualityChecked")
    notes: str | None = None
    approved_at: datetime | None = Field(default=None, alias="approvedAt")

    def to_domain(self) -> PrintApproval:
        """Convert to the domain approval."""
        return PrintApproval(
            approved_by=self.approved_by,
            quality_checked=self.quality_checked,
            notes=self.notes,
            approved_at=self.approved_at,
        )


class GazettePayload(_CamelModel):
    """Gazette payload."""

    id: str
    family_id: str = Field(alias="familyId")
    status: GazetteStatus
    layout: LayoutPayload
    content_ids: list[str] = Field(default_factory=list, alias="contentIds")
    preview_url: str | None = Field(default=None, alias="previewUrl")
    generated_url: str | None = Field(default=None, alias="generatedUrl")
    approval: ApprovalPayload | None = None
    created_at: datetime = Field(default_factory=_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=_now, alias="updatedAt")

    def to_domain(self) -> Gazette:
        """Convert to the domain gazette."""
        return Gazette(
            id=self.id,
            family_id=self.family_id,
            status=self.status,
            layout=self.layout.to_domain(),
            created_at=self.created_at,
            updated_at=self.updated_at,
            content_ids=tuple(self.content_ids),
            preview_url=self.preview_url,
            generated_url=self.generated_url,
            approval=self.approval.to_domain() if self.approval else None,
        )


class GazetteStatusPayload(_CamelModel):
    """Gazette status poll payload."""

    status: GazetteStatus
    message: str | None = None


class PreviewPayload(_CamelModel):
    """Gazette preview payload."""

    url: str = Field(validation_alias=AliasChoices("url", "previewUrl"))
