"""Cancellable status polling for generated gazettes."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from family_gazette.domain.gazette import TERMINAL_POLL_STATUSES, GazetteStatus
from family_gazette.errors import InvalidStateError, PipelineTimeoutError

StatusFetcher = Callable[[], Awaitable[GazetteStatus]]
StatusListener = Callable[[GazetteStatus], None]

_logger = logging.getLogger(__name__)


class StatusPoller:
    """Polls a gazette's status on an interval until it settles.

    The poller runs as its own task: ``start`` launches it, ``cancel`` stops
    it, and ``wait`` returns the terminal status. Polling stops by itself on a
    terminal status, on a fetch error, or when ``timeout_seconds`` elapses.
    """

    def __init__(  # noqa: PLR0913
        self,
        gazette_id: str,
        fetch: StatusFetcher,
        *,
        interval_seconds: float = 5.0,
        timeout_seconds: float = 600.0,
        on_update: StatusListener | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.gazette_id = gazette_id
        self.fetch = fetch
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.on_update = on_update
        self.sleep = sleep
        self.clock = clock
        self.status: GazetteStatus | None = None
        self.error: BaseException | None = None
        self.polls = 0
        self._task: asyncio.Task[GazetteStatus] | None = None

    @property
    def running(self) -> bool:
        """Whether the polling task is still active."""
        return self._task is not None and not self._task.done()

    @property
    def cancelled(self) -> bool:
        """Whether polling was cancelled before settling."""
        return self._task is not None and self._task.cancelled()

    def start(self) -> "StatusPoller":
        """Launch the polling task; a running poller is left untouched."""
        if self.running:
            return self
        self._task = asyncio.ensure_future(self._run())
        self._task.add_done_callback(self._on_done)
        return self

    def cancel(self) -> None:
        """Stop polling."""
        if self._task is not None and not self._task.done():
            _logger.info("Polling for gazette %s cancelled", self.gazette_id)
            self._task.cancel()

    async def wait(self) -> GazetteStatus:
        """Wait for the terminal status."""
        if self._task is None:
            raise InvalidStateError(
                code="INVALID_STATE",
                message=f"Polling for gazette {self.gazette_id} was never started",
            )
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
        raise InvalidStateError(
            code="POLL_CANCELLED",
            message=f"Polling for gazette {self.gazette_id} was cancelled",
            details={"gazette_id": self.gazette_id},
        )

    async def _run(self) -> GazetteStatus:
        started = self.clock()
        while True:
            await self.sleep(self.interval_seconds)
            if self.clock() - started > self.timeout_seconds:
                raise PipelineTimeoutError(
                    code="TIMEOUT",
                    message=(
                        f"Gazette {self.gazette_id} did not settle within "
                        f"{self.timeout_seconds:g} seconds"
                    ),
                    details={"gazette_id": self.gazette_id, "polls": self.polls},
                )
            status = await self.fetch()
            self.polls += 1
            self.status = status
            self._notify(status)
            if status in TERMINAL_POLL_STATUSES:
                _logger.info("Gazette %s settled as %s", self.gazette_id, status)
                return status

    def _notify(self, status: GazetteStatus) -> None:
        if self.on_update is None:
            return
        try:
            self.on_update(status)
        except Exception:
            _logger.exception("Status listener failed for gazette %s", self.gazette_id)

    def _on_done(self, task: "asyncio.Task[GazetteStatus]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.error = error
            _logger.warning("Polling for gazette %s stopped: %s", self.gazette_id, error)
