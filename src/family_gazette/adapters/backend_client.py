"""Gazette backend API client."""

import json
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Protocol

import httpx

ChunkCallback = Callable[[int, int], None]


class BackendClient(Protocol):
    """Interface for the content and gazette backend."""

    async def upload_content(  # noqa: PLR0913
        self,
        *,
        filename: str,
        data: bytes,
        mime_type: str | None,
        kind: str,
        metadata: dict[str, object],
        chunk_size: int,
        on_chunk: ChunkCallback | None = None,
    ) -> dict[str, object]:
        """Upload a content file with its metadata and return the record."""

    async def translate_content(
        self, content_id: str, languages: list[str], options: dict[str, object]
    ) -> dict[str, object]:
        """Request translations of a content description."""

    async def validate_content(self, content_id: str) -> dict[str, object]:
        """Return the backend print validation verdict."""

    async def list_family_content(self, family_id: str) -> list[dict[str, object]]:
        """Return every content record of a family."""

    async def generate_gazette(
        self, family_id: str, layout: dict[str, object], content_ids: list[str]
    ) -> dict[str, object]:
        """Request generation of a gazette."""

    async def get_gazette_status(self, gazette_id: str) -> dict[str, object]:
        """Return the current status of a gazette."""

    async def get_gazette_preview(self, gazette_id: str) -> dict[str, object]:
        """Return the preview location of a gazette."""

    async def approve_gazette(
        self, gazette_id: str, approval: dict[str, object]
    ) -> dict[str, object]:
        """Approve a gazette for print."""

    async def list_gazettes(self, family_id: str) -> list[dict[str, object]]:
        """Return the gazette history of a family."""


@dataclass
class HttpxBackendClient(BackendClient):
    """HTTPX-backed backend client."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 30.0

    @classmethod
    def create(
        cls, base_url: str, api_token: str | None = None, timeout: float = 30.0
    ) -> "HttpxBackendClient":
        """Create a backend client with a managed httpx session."""
        headers = {"Authorization": f"Bearer {api_token}"} if api_token else None
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(headers=headers),
            timeout=timeout,
        )

    async def upload_content(  # noqa: PLR0913
        self,
        *,
        filename: str,
        data: bytes,
        mime_type: str | None,
        kind: str,
        metadata: dict[str, object],
        chunk_size: int,
        on_chunk: ChunkCallback | None = None,
    ) -> dict[str, object]:
        """Upload a multipart body in chunks, reporting each sent chunk."""
        url = f"{self.base_url}/content"
        prepared = httpx.Request(
            "POST",
            url,
            files={
                "content": (filename, data, mime_type or "application/octet-stream")
            },
            data={"type": kind, "metadata": json.dumps(metadata)},
        )
        body = prepared.read()
        headers = {
            "Content-Type": prepared.headers["Content-Type"],
            "Content-Length": str(len(body)),
        }
        response = await self.http_client.post(
            url,
            content=_iter_chunks(body, chunk_size, on_chunk),
            headers=headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def translate_content(
        self, content_id: str, languages: list[str], options: dict[str, object]
    ) -> dict[str, object]:
        """Request translations for the given languages."""
        url = f"{self.base_url}/content/{content_id}/translate"
        response = await self.http_client.post(
            url,
            json={"languages": languages, "options": options},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def validate_content(self, content_id: str) -> dict[str, object]:
        """Fetch the print validation verdict."""
        url = f"{self.base_url}/content/{content_id}/validate"
        response = await self.http_client.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    async def list_family_content(self, family_id: str) -> list[dict[str, object]]:
        """Fetch every content record of a family."""
        url = f"{self.base_url}/families/{family_id}/content"
        response = await self.http_client.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    async def generate_gazette(
        self, family_id: str, layout: dict[str, object], content_ids: list[str]
    ) -> dict[str, object]:
        """Request gazette generation."""
        url = f"{self.base_url}/gazette/generate"
        response = await self.http_client.post(
            url,
            json={"familyId": family_id, "layout": layout, "contentIds": content_ids},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def get_gazette_status(self, gazette_id: str) -> dict[str, object]:
        """Fetch the gazette status."""
        url = f"{self.base_url}/gazette/{gazette_id}/status"
        response = await self.http_client.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    async def get_gazette_preview(self, gazette_id: str) -> dict[str, object]:
        """Fetch the gazette preview location."""
        url = f"{self.base_url}/gazette/{gazette_id}/preview"
        response = await self.http_client.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    async def approve_gazette(
        self, gazette_id: str, approval: dict[str, object]
    ) -> dict[str, object]:
        """Approve a gazette for print."""
        url = f"{self.base_url}/gazette/{gazette_id}/approve"
        response = await self.http_client.post(url, json=approval, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    async def list_gazettes(self, family_id: str) -> list[dict[str, object]]:
        """Fetch the gazette history of a family."""
        url = f"{self.base_url}/gazette/history"
        response = await self.http_client.get(
            url, params={"familyId": family_id}, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


async def _iter_chunks(
    body: bytes, chunk_size: int, on_chunk: ChunkCallback | None
) -> AsyncIterator[bytes]:
    """Yield the body in chunks and report bytes consumed by the transport."""
    total = len(body)
    sent = 0
    step = max(chunk_size, 1)
    for start in range(0, total, step):
        chunk = body[start : start + step]
        yield chunk
        sent += len(chunk)
        if on_chunk is not None:
            on_chunk(sent, total)
