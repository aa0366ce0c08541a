"""Registry of in-flight operations keyed by entity id."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeVar

from family_gazette.errors import InFlightError

T = TypeVar("T")


class FlightState(StrEnum):
    """Where an entity's operation currently stands."""

    IDLE = "IDLE"
    IN_FLIGHT = "IN_FLIGHT"
    DONE = "DONE"


@dataclass
class InFlightRegistry:
    """Tracks one running operation per key.

    A second call for a key that is still running is either rejected with
    ``InFlightError`` or, with ``coalesce=True``, joins the running call and
    receives its result. Only the most recent ``max_done`` finished keys are
    remembered as DONE; older ones fall back to IDLE.
    """

    name: str = "operation"
    max_done: int = 1024
    _tasks: dict[str, "asyncio.Task[object]"] = field(default_factory=dict)
    _done: dict[str, None] = field(default_factory=dict)

    def state(self, key: str) -> FlightState:
        """Return the state of the operation for ``key``."""
        if key in self._tasks:
            return FlightState.IN_FLIGHT
        if key in self._done:
            return FlightState.DONE
        return FlightState.IDLE

    async def run(
        self, key: str, func: Callable[[], Awaitable[T]], *, coalesce: bool = False
    ) -> T:
        """Run ``func`` as the single in-flight operation for ``key``."""
        running = self._tasks.get(key)
        if running is not None:
            if not coalesce:
                raise InFlightError(
                    code="ALREADY_IN_FLIGHT",
                    message=f"A {self.name} for {key} is already in progress",
                    details={"key": key},
                )
            return await asyncio.shield(running)  # type: ignore[return-value]

        task: asyncio.Task[T] = asyncio.ensure_future(func())
        self._tasks[key] = task  # type: ignore[assignment]
        self._done.pop(key, None)
        try:
            return await task
        finally:
            self._tasks.pop(key, None)
            self._remember_done(key)

    def _remember_done(self, key: str) -> None:
        self._done[key] = None
        while len(self._done) > self.max_done:
            del self._done[next(iter(self._done))]
