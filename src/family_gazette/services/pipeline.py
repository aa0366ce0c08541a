"""Ingestion facade tying uploads to the content store."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from family_gazette.adapters.backend_client import BackendClient
from family_gazette.adapters.payloads import ContentPayload
from family_gazette.domain.content import (
    Content,
    ContentKind,
    ContentMetadata,
    ContentStatus,
    UploadAsset,
)
from family_gazette.errors import InFlightError, PipelineError
from family_gazette.services.inflight import FlightState
from family_gazette.services.retry import RetryPolicy
from family_gazette.services.store import ContentStateStore
from family_gazette.services.uploads import ContentUploadOrchestrator, ProgressCallback
from family_gazette.services.validation import ensure_batch_size

_logger = logging.getLogger(__name__)


@dataclass
class ContentPipeline:
    """Uploads content and keeps the store in step with each stage."""

    orchestrator: ContentUploadOrchestrator
    store: ContentStateStore
    client: BackendClient
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    async def ingest(  # noqa: PLR0913
        self,
        asset: UploadAsset,
        kind: ContentKind,
        metadata: ContentMetadata | None = None,
        *,
        family_id: str = "",
        creator_id: str = "",
        on_progress: ProgressCallback | None = None,
        abort: asyncio.Event | None = None,
    ) -> Content:
        """Upload an asset and return its settled record.

        A PENDING placeholder keyed by the asset's ``file_id`` is stored first
        and swapped for the backend record once the upload is accepted. If any
        stage fails or the call is cancelled, the record is kept as ERROR with
        the failure message and the exception is re-raised.
        """
        self.orchestrator.check(asset, kind)
        now = datetime.now(tz=UTC)
        placeholder = Content(
            id=asset.file_id,
            kind=kind,
            url="",
            creator_id=creator_id,
            family_id=family_id,
            metadata=metadata or ContentMetadata(),
            status=ContentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        previous = self.store.get(asset.file_id)
        if previous is None:
            self.store.add(placeholder)
        elif self.orchestrator.in_flight.state(asset.file_id) == FlightState.IN_FLIGHT:
            raise InFlightError(
                code="ALREADY_IN_FLIGHT",
                message=f"An upload for {asset.file_id} is already in progress",
                details={"key": asset.file_id},
            )
        elif previous.status in (ContentStatus.PENDING, ContentStatus.ERROR):
            # A leftover placeholder is reused when the same file is retried.
            self.store.update(placeholder)
        else:
            self.store.add(placeholder)
        current_id = placeholder.id
        try:
            uploaded = await self.orchestrator.upload(
                asset, kind, metadata, on_progress=on_progress, abort=abort
            )
            self.store.replace(current_id, uploaded)
            current_id = uploaded.id
            settled = await self.orchestrator.finalize(uploaded)
        except BaseException as exc:
            self._mark_failed(current_id, _failure_message(exc))
            raise
        return self.store.update(settled)

    async def ingest_batch(  # noqa: PLR0913
        self,
        assets: Sequence[UploadAsset],
        kind: ContentKind,
        metadata_for: Callable[[UploadAsset], ContentMetadata] | None = None,
        *,
        family_id: str = "",
        creator_id: str = "",
        on_progress: ProgressCallback | None = None,
        abort: asyncio.Event | None = None,
    ) -> list[Content]:
        """Ingest a batch sequentially; oversized batches are rejected whole."""
        ensure_batch_size(len(assets), self.orchestrator.max_batch_size)
        ingested: list[Content] = []
        for asset in assets:
            ingested.append(
                await self.ingest(
                    asset,
                    kind,
                    metadata_for(asset) if metadata_for else None,
                    family_id=family_id,
                    creator_id=creator_id,
                    on_progress=on_progress,
                    abort=abort,
                )
            )
        return ingested

    async def refresh(self, family_id: str) -> tuple[Content, ...]:
        """Reload a family's content from the backend into the store."""
        payload = await self.retry_policy.call(
            lambda: self.client.list_family_content(family_id),
            action=f"list content for {family_id}",
        )
        self.store.set_all(
            ContentPayload.model_validate(item).to_domain() for item in payload
        )
        _logger.info("Loaded %s content items for family %s", len(self.store), family_id)
        return self.store.items()

    def _mark_failed(self, content_id: str, message: str) -> None:
        current = self.store.get(content_id)
        if current is None:
            return
        self.store.update(
            replace(
                current,
                status=ContentStatus.ERROR,
                processing_errors=current.processing_errors + (message,),
                updated_at=datetime.now(tz=UTC),
            )
        )
        _logger.warning("Ingestion of %s failed: %s", content_id, message)


def _failure_message(exc: BaseException) -> str:
    if isinstance(exc, PipelineError):
        return exc.message
    if isinstance(exc, asyncio.CancelledError):
        return "Ingestion was cancelled"
    return str(exc) or type(exc).__name__
