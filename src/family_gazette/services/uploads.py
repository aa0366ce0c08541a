"""Upload orchestration for validated content."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

import httpx

from family_gazette.adapters.backend_client import BackendClient
from family_gazette.adapters.payloads import (
    ContentMetadataPayload,
    ContentPayload,
    PrintReadinessPayload,
)
from family_gazette.domain.content import (
    MIN_IMAGE_QUALITY,
    Content,
    ContentKind,
    ContentMetadata,
    ContentStatus,
    UploadAsset,
)
from family_gazette.domain.gazette import MAX_PHOTOS_PER_GAZETTE
from family_gazette.errors import BackendError, UploadCancelledError, ValidationError
from family_gazette.services.imaging import (
    PhotoEncoder,
    PillowPhotoEncoder,
    with_file_facts,
)
from family_gazette.services.inflight import InFlightRegistry
from family_gazette.services.retry import RetryPolicy, backend_message
from family_gazette.services.validation import (
    RejectionReason,
    UploadConstraints,
    ensure_batch_size,
    ensure_valid,
    resolve_mime_type,
    validate_text,
)

NOT_PRINT_READY_MESSAGE = "Content does not meet print requirements"

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadProgress:
    """Progress notification for a single file."""

    file_id: str
    progress: int


ProgressCallback = Callable[[UploadProgress], None]


@dataclass
class ContentUploadOrchestrator:
    """Validates, re-encodes and uploads content with retry and progress."""

    client: BackendClient
    constraints: UploadConstraints = field(default_factory=UploadConstraints)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    encoder: PhotoEncoder = field(default_factory=PillowPhotoEncoder)
    min_image_quality: int = MIN_IMAGE_QUALITY
    chunk_size: int = 1024 * 1024
    max_batch_size: int = MAX_PHOTOS_PER_GAZETTE
    in_flight: InFlightRegistry = field(
        default_factory=lambda: InFlightRegistry(name="upload")
    )

    async def upload(
        self,
        asset: UploadAsset,
        kind: ContentKind,
        metadata: ContentMetadata | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        abort: asyncio.Event | None = None,
    ) -> Content:
        """Upload one asset and return its PROCESSING content record.

        Validation failures are raised before any network call and are never
        retried. The returned record still has to be registered in the store.
        """
        self.check(asset, kind)
        resolved_metadata = metadata or ContentMetadata()
        return await self.in_flight.run(
            asset.file_id,
            lambda: self._upload(asset, kind, resolved_metadata, on_progress, abort),
        )

    async def upload_batch(
        self,
        assets: Sequence[UploadAsset],
        kind: ContentKind,
        metadata_for: Callable[[UploadAsset], ContentMetadata] | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        abort: asyncio.Event | None = None,
    ) -> list[Content]:
        """Upload a batch sequentially after checking the batch size."""
        ensure_batch_size(len(assets), self.max_batch_size)
        uploaded: list[Content] = []
        for asset in assets:
            metadata = metadata_for(asset) if metadata_for else None
            uploaded.append(
                await self.upload(
                    asset, kind, metadata, on_progress=on_progress, abort=abort
                )
            )
        return uploaded

    def check(self, asset: UploadAsset, kind: ContentKind) -> None:
        """Raise a ``ValidationError`` if the asset may not be uploaded.

        Photos are judged on the density and color mode stored in the file;
        declared values only fill in what the file does not record.
        """
        if kind == ContentKind.PHOTO:
            if asset.byte_size <= self.constraints.max_size:
                asset = with_file_facts(asset)
            ensure_valid(asset, self.constraints)
            return
        if asset.byte_size > self.constraints.max_size:
            raise ValidationError(
                code=RejectionReason.SIZE_EXCEEDED,
                message=(
                    "Content size exceeds maximum limit of "
                    f"{self.constraints.max_size} bytes"
                ),
            )
        try:
            text = asset.data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValidationError(
                code=RejectionReason.UNSUPPORTED_TYPE,
                message="Text content must be UTF-8 encoded",
            ) from exc
        validate_text(text, self.constraints.max_text_length).raise_for_reason()

    async def finalize(self, content: Content) -> Content:
        """Settle a PROCESSING record into READY or ERROR.

        Text content is ready once accepted; photos need the backend's print
        validation verdict.
        """
        if content.kind == ContentKind.TEXT:
            return _settle(content, ContentStatus.READY)
        try:
            payload = await self.retry_policy.call(
                lambda: self.client.validate_content(content.id),
                action=f"validate {content.id}",
            )
        except httpx.HTTPStatusError as exc:
            raise BackendError(
                code="VALIDATION_REJECTED",
                message=backend_message(exc),
                details={"content_id": content.id},
            ) from exc
        verdict = PrintReadinessPayload.model_validate(payload)
        if verdict.print_ready:
            return _settle(content, ContentStatus.READY)
        _logger.info("Content %s failed print validation", content.id)
        return _settle(content, ContentStatus.ERROR, NOT_PRINT_READY_MESSAGE)

    async def _upload(
        self,
        asset: UploadAsset,
        kind: ContentKind,
        metadata: ContentMetadata,
        on_progress: ProgressCallback | None,
        abort: asyncio.Event | None,
    ) -> Content:
        emitter = _ProgressEmitter(asset.file_id, on_progress, abort)
        emitter.check_abort()
        mime_type = resolve_mime_type(asset)
        quality = metadata.quality
        if kind == ContentKind.PHOTO:
            quality = max(metadata.quality, self.min_image_quality)
            encoded = await asyncio.to_thread(
                self.encoder.encode, asset.data, quality=quality
            )
            mime_type = encoded.mime_type
            asset = replace(
                asset,
                data=encoded.data,
                mime_type=encoded.mime_type,
                dpi=encoded.dpi or asset.dpi,
                color_space=encoded.color_space or asset.color_space,
                width=encoded.width,
                height=encoded.height,
            )
            # Re-encoding can grow the body.
            ensure_valid(asset, self.constraints)
        elif mime_type is None:
            mime_type = "text/plain"
        data = asset.data

        wire_metadata = ContentMetadataPayload.from_domain(
            _with_asset_facts(metadata, asset, mime_type, quality)
        ).model_dump(mode="json", by_alias=True)

        async def send() -> dict[str, object]:
            emitter.check_abort()
            return await self.client.upload_content(
                filename=asset.filename,
                data=data,
                mime_type=mime_type,
                kind=str(kind),
                metadata=wire_metadata,
                chunk_size=self.chunk_size,
                on_chunk=emitter.on_chunk,
            )

        emitter.emit(0)
        try:
            payload = await self.retry_policy.call(
                send, action=f"upload {asset.file_id}"
            )
        except httpx.HTTPStatusError as exc:
            raise BackendError(
                code="UPLOAD_REJECTED",
                message=backend_message(exc),
                details={
                    "file_id": asset.file_id,
                    "status_code": exc.response.status_code,
                },
            ) from exc
        emitter.emit(100)

        content = ContentPayload.model_validate(payload).to_domain()
        _logger.info("Uploaded %s as content %s", asset.file_id, content.id)
        return replace(
            content, status=ContentStatus.PROCESSING, updated_at=datetime.now(tz=UTC)
        )


class _ProgressEmitter:
    """Turns transport chunk counts into monotonic 0-100 notifications."""

    def __init__(
        self,
        file_id: str,
        callback: ProgressCallback | None,
        abort: asyncio.Event | None,
    ) -> None:
        self.file_id = file_id
        self.callback = callback
        self.abort = abort
        self.last = -1

    def check_abort(self) -> None:
        if self.abort is not None and self.abort.is_set():
            raise UploadCancelledError(
                code="UPLOAD_CANCELLED",
                message=f"Upload of {self.file_id} was cancelled",
                details={"file_id": self.file_id},
            )

    def on_chunk(self, sent: int, total: int) -> None:
        self.check_abort()
        # 100 is reserved for the backend accepting the upload.
        self.emit(min(sent * 100 // max(total, 1), 99))

    def emit(self, progress: int) -> None:
        if progress <= self.last:
            return
        self.last = progress
        if self.callback is None:
            return
        try:
            self.callback(UploadProgress(file_id=self.file_id, progress=progress))
        except Exception:
            _logger.exception("Progress listener failed for %s", self.file_id)


def _with_asset_facts(
    metadata: ContentMetadata, asset: UploadAsset, mime_type: str | None, quality: int
) -> ContentMetadata:
    """Fill metadata fields the caller left unset from the asset itself."""
    return replace(
        metadata,
        width=metadata.width or asset.width,
        height=metadata.height or asset.height,
        byte_size=metadata.byte_size or asset.byte_size,
        mime_type=metadata.mime_type or mime_type,
        dpi=metadata.dpi or asset.dpi,
        color_space=metadata.color_space or asset.color_space,
        quality=quality,
    )


def _settle(content: Content, status: ContentStatus, error: str | None = None) -> Content:
    errors = content.processing_errors + ((error,) if error else ())
    return replace(
        content,
        status=status,
        processing_errors=errors,
        updated_at=datetime.now(tz=UTC),
    )
