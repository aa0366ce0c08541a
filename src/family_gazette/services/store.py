"""Authoritative in-session collection of content records."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from family_gazette.domain.content import (
    Content,
    ContentStatus,
    PrintRules,
    with_print_readiness,
)

_PENDING_STATUSES = frozenset({ContentStatus.PENDING, ContentStatus.PROCESSING})

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentStats:
    """Aggregate print readiness of the stored content."""

    total: int = 0
    ready: int = 0
    pending: int = 0
    failed: int = 0


class ContentStateStore:
    """Ordered content collection with derived statistics.

    Every mutator re-derives ``print_ready`` on the records it touches and
    re-folds the statistics over the whole collection, so neither can drift
    from the records themselves.
    """

    def __init__(self, rules: PrintRules | None = None) -> None:
        self.rules = rules or PrintRules()
        self._items: dict[str, Content] = {}
        self._stats = ContentStats()

    def set_all(self, items: Iterable[Content]) -> None:
        """Replace the whole collection."""
        self._items = {}
        for item in items:
            self._items[item.id] = with_print_readiness(item, self.rules)
        self._recompute()

    def add(self, item: Content) -> Content:
        """Append a new record."""
        if item.id in self._items:
            raise ValueError(f"Content {item.id} already exists")
        stored = with_print_readiness(item, self.rules)
        self._items[item.id] = stored
        self._recompute()
        return stored

    def update(self, item: Content) -> Content:
        """Replace an existing record, keeping its position."""
        if item.id not in self._items:
            raise KeyError(item.id)
        stored = with_print_readiness(item, self.rules)
        self._items[item.id] = stored
        self._recompute()
        return stored

    def replace(self, old_id: str, item: Content) -> Content:
        """Swap the record stored under ``old_id`` for ``item`` in place."""
        if old_id not in self._items:
            raise KeyError(old_id)
        if item.id != old_id and item.id in self._items:
            raise ValueError(f"Content {item.id} already exists")
        stored = with_print_readiness(item, self.rules)
        self._items = {
            (stored.id if key == old_id else key): (stored if key == old_id else value)
            for key, value in self._items.items()
        }
        self._recompute()
        return stored

    def remove(self, content_id: str) -> None:
        """Delete a record; unknown ids are ignored."""
        if self._items.pop(content_id, None) is not None:
            self._recompute()

    def get(self, content_id: str) -> Content | None:
        """Return a record by id, if present."""
        return self._items.get(content_id)

    def items(self) -> tuple[Content, ...]:
        """Return the records in insertion order."""
        return tuple(self._items.values())

    def ready_items(self) -> tuple[Content, ...]:
        """Return the records that finished processing successfully."""
        return tuple(
            item for item in self._items.values() if item.status == ContentStatus.READY
        )

    def by_family(self, family_id: str) -> tuple[Content, ...]:
        """Return the records of one family."""
        return tuple(
            item for item in self._items.values() if item.family_id == family_id
        )

    def stats(self) -> ContentStats:
        """Return the current aggregate statistics."""
        return self._stats

    def __len__(self) -> int:
        return len(self._items)

    def _recompute(self) -> None:
        self._stats = compute_stats(self._items.values())
        _logger.debug("Content stats recomputed: %s", self._stats)


def compute_stats(items: Iterable[Content]) -> ContentStats:
    """Fold records into aggregate statistics."""
    total = ready = pending = failed = 0
    for item in items:
        total += 1
        if item.print_ready:
            ready += 1
        if item.status in _PENDING_STATUSES:
            pending += 1
        if item.status == ContentStatus.ERROR and not item.print_ready:
            failed += 1
    return ContentStats(total=total, ready=ready, pending=pending, failed=failed)
