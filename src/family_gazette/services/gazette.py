"""Gazette generation, status tracking, preview and print approval."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

import httpx

from family_gazette.adapters.backend_client import BackendClient
from family_gazette.adapters.payloads import (
    ApprovalPayload,
    GazettePayload,
    GazetteStatusPayload,
    LayoutPayload,
    PreviewPayload,
)
from family_gazette.domain.content import Content, ContentKind, ContentStatus
from family_gazette.domain.gazette import (
    MAX_PHOTOS_PER_GAZETTE,
    TERMINAL_POLL_STATUSES,
    Gazette,
    GazetteLayout,
    GazetteStatus,
    LayoutColorSpace,
    PageSize,
    PhaseTimings,
    PrintApproval,
)
from family_gazette.errors import (
    BackendError,
    GenerationError,
    InvalidStateError,
    ValidationError,
)
from family_gazette.services.cache import InMemoryPreviewCache, PreviewCache
from family_gazette.services.inflight import InFlightRegistry
from family_gazette.services.polling import StatusPoller
from family_gazette.services.retry import RetryPolicy, backend_message
from family_gazette.services.validation import ensure_batch_size

MIN_LAYOUT_RESOLUTION = 300
MIN_BLEED_MM = 3

GazetteListener = Callable[[Gazette], None]

_logger = logging.getLogger(__name__)


def validate_layout(layout: GazetteLayout) -> None:
    """Reject layouts that cannot be printed."""
    if layout.page_size != PageSize.A4:
        _layout_error("Only A4 page size is supported", "page_size")
    if layout.color_space != LayoutColorSpace.CMYK:
        _layout_error("CMYK color space required for print", "color_space")
    if layout.resolution < MIN_LAYOUT_RESOLUTION:
        _layout_error("Minimum 300 DPI resolution required", "resolution")
    if layout.bleed < MIN_BLEED_MM:
        _layout_error("Minimum 3mm bleed required", "bleed")


def _layout_error(message: str, field_name: str) -> None:
    raise ValidationError(
        code="VALIDATION_ERROR", message=message, details={"field": field_name}
    )


@dataclass
class GazetteAssembler:
    """Drives a gazette from layout validation to print approval.

    Approved gazettes are never modified; any further change goes through a
    new ``generate`` call that yields a new gazette.
    """

    client: BackendClient
    preview_cache: PreviewCache = field(default_factory=InMemoryPreviewCache)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    max_photos: int = MAX_PHOTOS_PER_GAZETTE
    poll_interval_ms: int = 5000
    poll_timeout_seconds: float = 600.0
    poll_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    clock: Callable[[], float] = time.perf_counter
    generations: InFlightRegistry = field(
        default_factory=lambda: InFlightRegistry(name="gazette generation")
    )
    previews: InFlightRegistry = field(
        default_factory=lambda: InFlightRegistry(name="preview fetch")
    )
    last_timings: PhaseTimings = field(default_factory=PhaseTimings)
    _gazettes: dict[str, Gazette] = field(default_factory=dict)
    _pollers: dict[str, StatusPoller] = field(default_factory=dict)
    _timings: dict[str, PhaseTimings] = field(default_factory=dict)

    def get(self, gazette_id: str) -> Gazette | None:
        """Return a known gazette by id."""
        return self._gazettes.get(gazette_id)

    def gazettes_for(self, family_id: str) -> list[Gazette]:
        """Return the known gazettes of a family, oldest first."""
        return [g for g in self._gazettes.values() if g.family_id == family_id]

    def timings(self, gazette_id: str) -> PhaseTimings:
        """Return the recorded phase timings of a gazette."""
        return self._timings.get(gazette_id, PhaseTimings())

    def poller(self, gazette_id: str) -> StatusPoller | None:
        """Return the status poller of a gazette, if one was started."""
        return self._pollers.get(gazette_id)

    async def generate(
        self,
        family_id: str,
        layout: GazetteLayout,
        contents: Sequence[Content] = (),
        *,
        on_status: GazetteListener | None = None,
    ) -> Gazette:
        """Validate the layout and content, then request generation.

        Nothing is sent to the backend when validation fails. The returned
        gazette is PROCESSING and a status poller is running for it.
        """
        started = self.clock()
        try:
            validate_layout(layout)
            self._check_contents(contents)
        finally:
            validation_ms = self._elapsed_ms(started)
            self.last_timings = PhaseTimings(validation_ms=validation_ms)
        return await self.generations.run(
            family_id,
            lambda: self._generate(family_id, layout, contents, validation_ms, on_status),
        )

    async def regenerate(
        self,
        gazette_id: str,
        layout: GazetteLayout | None = None,
        contents: Sequence[Content] = (),
        *,
        on_status: GazetteListener | None = None,
    ) -> Gazette:
        """Start a new gazette from an existing one, leaving the original as is."""
        previous = self._require(gazette_id)
        return await self.generate(
            previous.family_id,
            layout or previous.layout,
            contents,
            on_status=on_status,
        )

    async def wait_until_settled(self, gazette_id: str) -> Gazette:
        """Wait for polling to reach a terminal status and return the gazette."""
        poller = self._pollers.get(gazette_id)
        if poller is not None:
            await poller.wait()
        return self._require(gazette_id)

    def cancel(self, gazette_id: str) -> None:
        """Stop status polling for a gazette."""
        poller = self._pollers.get(gazette_id)
        if poller is not None:
            poller.cancel()

    def dispose(self) -> None:
        """Stop every running status poller."""
        for poller in self._pollers.values():
            poller.cancel()

    async def get_preview(self, gazette_id: str) -> str:
        """Return the preview URL, fetching it once per gazette."""
        cached = self.preview_cache.get(gazette_id)
        if cached is not None:
            return cached
        return await self.previews.run(
            gazette_id, lambda: self._fetch_preview(gazette_id), coalesce=True
        )

    async def approve(
        self,
        gazette_id: str,
        approved_by: str,
        quality_checked: bool = True,
        notes: str | None = None,
    ) -> Gazette:
        """Approve a READY_FOR_PRINT gazette for print."""
        gazette = self._require(gazette_id)
        if gazette.status == GazetteStatus.APPROVED:
            raise InvalidStateError(
                code="INVALID_STATE",
                message=(
                    f"Gazette {gazette_id} is already approved; "
                    "generate a new gazette to make changes"
                ),
                details={"gazette_id": gazette_id, "status": gazette.status},
            )
        if gazette.status != GazetteStatus.READY_FOR_PRINT:
            raise InvalidStateError(
                code="INVALID_STATE",
                message=(
                    f"Gazette {gazette_id} is {gazette.status}; "
                    "only READY_FOR_PRINT gazettes can be approved"
                ),
                details={"gazette_id": gazette_id, "status": gazette.status},
            )
        if not approved_by.strip():
            raise ValidationError(
                code="APPROVAL_INCOMPLETE",
                message="Approval must include approver information",
            )
        if not quality_checked:
            raise ValidationError(
                code="APPROVAL_INCOMPLETE",
                message="Quality check must be completed before approval",
            )

        body = ApprovalPayload(
            approved_by=approved_by, quality_checked=quality_checked, notes=notes
        ).model_dump(mode="json", by_alias=True, exclude_none=True)
        try:
            payload = await self.retry_policy.call(
                lambda: self.client.approve_gazette(gazette_id, body),
                action=f"approve gazette {gazette_id}",
            )
        except httpx.HTTPStatusError as exc:
            raise BackendError(
                code="APPROVAL_REJECTED",
                message=f"Print approval failed: {backend_message(exc)}",
                details={"gazette_id": gazette_id},
            ) from exc

        approved = GazettePayload.model_validate(payload).to_domain()
        if approved.status != GazetteStatus.APPROVED:
            raise BackendError(
                code="APPROVAL_REJECTED",
                message=f"Backend left gazette {gazette_id} as {approved.status}",
                details={"gazette_id": gazette_id},
            )
        approved = replace(
            approved,
            preview_url=approved.preview_url or gazette.preview_url,
            approval=approved.approval
            or PrintApproval(
                approved_by=approved_by,
                quality_checked=quality_checked,
                notes=notes,
                approved_at=datetime.now(tz=UTC),
            ),
        )
        self.cancel(gazette_id)
        self._gazettes[gazette_id] = approved
        _logger.info("Gazette %s approved by %s", gazette_id, approved_by)
        return approved

    async def history(self, family_id: str) -> list[Gazette]:
        """Fetch a family's gazettes and remember them."""
        payload = await self.retry_policy.call(
            lambda: self.client.list_gazettes(family_id),
            action=f"list gazettes for {family_id}",
        )
        gazettes = [GazettePayload.model_validate(item).to_domain() for item in payload]
        for gazette in gazettes:
            known = self._gazettes.get(gazette.id)
            if known is None or known.status != GazetteStatus.APPROVED:
                self._gazettes[gazette.id] = gazette
        return [self._gazettes[gazette.id] for gazette in gazettes]

    def _check_contents(self, contents: Sequence[Content]) -> None:
        photos = [item for item in contents if item.kind == ContentKind.PHOTO]
        ensure_batch_size(len(photos), self.max_photos)
        not_ready = [item.id for item in contents if item.status != ContentStatus.READY]
        if not_ready:
            raise ValidationError(
                code="CONTENT_NOT_READY",
                message=f"Content not ready for print: {', '.join(not_ready)}",
                details={"content_ids": not_ready},
            )

    async def _generate(
        self,
        family_id: str,
        layout: GazetteLayout,
        contents: Sequence[Content],
        validation_ms: float,
        on_status: GazetteListener | None,
    ) -> Gazette:
        layout_body = LayoutPayload.from_domain(layout).model_dump(
            mode="json", by_alias=True
        )
        content_ids = [item.id for item in contents]
        started = self.clock()
        try:
            payload = await self.retry_policy.call(
                lambda: self.client.generate_gazette(family_id, layout_body, content_ids),
                action=f"generate gazette for {family_id}",
            )
        except httpx.HTTPStatusError as exc:
            raise GenerationError(
                code="GENERATION_ERROR",
                message=f"Gazette generation failed: {backend_message(exc)}",
                details={"family_id": family_id},
            ) from exc
        generation_ms = self._elapsed_ms(started)

        gazette = GazettePayload.model_validate(payload).to_domain()
        known = self._gazettes.get(gazette.id)
        if gazette.status == GazetteStatus.APPROVED or (
            known is not None and known.status == GazetteStatus.APPROVED
        ):
            raise GenerationError(
                code="GENERATION_ERROR",
                message=f"Backend returned approved gazette {gazette.id} for a new draft",
                details={"family_id": family_id, "gazette_id": gazette.id},
            )
        if gazette.status == GazetteStatus.DRAFT:
            gazette = replace(gazette, status=GazetteStatus.PROCESSING)

        self.preview_cache.clear()
        self._gazettes[gazette.id] = gazette
        timings = PhaseTimings(validation_ms=validation_ms, generation_ms=generation_ms)
        self._timings[gazette.id] = timings
        self.last_timings = timings
        _logger.info(
            "Gazette %s generation requested for family %s", gazette.id, family_id
        )
        if gazette.status not in TERMINAL_POLL_STATUSES:
            self._start_polling(gazette.id, on_status)
        return gazette

    def _start_polling(self, gazette_id: str, on_status: GazetteListener | None) -> None:
        async def fetch() -> GazetteStatus:
            try:
                payload = await self.retry_policy.call(
                    lambda: self.client.get_gazette_status(gazette_id),
                    action=f"poll gazette {gazette_id}",
                )
            except httpx.HTTPStatusError as exc:
                raise BackendError(
                    code="STATUS_REJECTED",
                    message=f"Status retrieval failed: {backend_message(exc)}",
                    details={"gazette_id": gazette_id},
                ) from exc
            return GazetteStatusPayload.model_validate(payload).status

        def on_update(status: GazetteStatus) -> None:
            gazette = self._apply_status(gazette_id, status)
            if on_status is not None and gazette is not None:
                on_status(gazette)

        previous = self._pollers.get(gazette_id)
        if previous is not None:
            previous.cancel()
        self._pollers[gazette_id] = StatusPoller(
            gazette_id,
            fetch,
            interval_seconds=self.poll_interval_ms / 1000,
            timeout_seconds=self.poll_timeout_seconds,
            on_update=on_update,
            sleep=self.poll_sleep,
        ).start()

    def _apply_status(self, gazette_id: str, status: GazetteStatus) -> Gazette | None:
        gazette = self._gazettes.get(gazette_id)
        if gazette is None or gazette.status == GazetteStatus.APPROVED:
            return gazette
        if gazette.status != status:
            gazette = replace(gazette, status=status, updated_at=datetime.now(tz=UTC))
            self._gazettes[gazette_id] = gazette
            if status == GazetteStatus.ERROR:
                _logger.warning("Gazette %s generation failed", gazette_id)
        return gazette

    async def _fetch_preview(self, gazette_id: str) -> str:
        started = self.clock()
        try:
            payload = await self.retry_policy.call(
                lambda: self.client.get_gazette_preview(gazette_id),
                action=f"fetch preview {gazette_id}",
            )
        except httpx.HTTPStatusError as exc:
            raise BackendError(
                code="PREVIEW_ERROR",
                message=f"Preview retrieval failed: {backend_message(exc)}",
                details={"gazette_id": gazette_id},
            ) from exc
        url = PreviewPayload.model_validate(payload).url
        self.preview_cache.put(gazette_id, url)

        timings = replace(self.timings(gazette_id), preview_ms=self._elapsed_ms(started))
        self._timings[gazette_id] = timings
        self.last_timings = timings
        gazette = self._gazettes.get(gazette_id)
        if gazette is not None and gazette.status != GazetteStatus.APPROVED:
            self._gazettes[gazette_id] = replace(gazette, preview_url=url)
        return url

    def _require(self, gazette_id: str) -> Gazette:
        gazette = self._gazettes.get(gazette_id)
        if gazette is None:
            raise InvalidStateError(
                code="INVALID_STATE",
                message=f"Gazette {gazette_id} is not known to this session",
                details={"gazette_id": gazette_id},
            )
        return gazette

    def _elapsed_ms(self, started: float) -> float:
        return (self.clock() - started) * 1000
