"""Session-scoped cache of gazette preview URLs."""

from dataclasses import dataclass
from typing import Protocol


class PreviewCache(Protocol):
    """Cache interface for generated preview URLs keyed by gazette id."""

    def get(self, gazette_id: str) -> str | None:
        """Return the cached preview URL, if present."""

    def put(self, gazette_id: str, url: str) -> None:
        """Store the preview URL for a gazette."""

    def clear(self) -> None:
        """Drop every cached preview."""


@dataclass
class InMemoryPreviewCache(PreviewCache):
    """In-memory preview cache without eviction.

    Previews are immutable for a given generation, so entries never expire;
    callers clear the cache when a new gazette version is generated.
    """

    _entries: dict[str, str]

    def __init__(self) -> None:
        self._entries = {}

    def get(self, gazette_id: str) -> str | None:
        """Return the cached preview URL, if present."""
        return self._entries.get(gazette_id)

    def put(self, gazette_id: str, url: str) -> None:
        """Store the preview URL for a gazette."""
        self._entries[gazette_id] = url

    def clear(self) -> None:
        """Drop every cached preview."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
