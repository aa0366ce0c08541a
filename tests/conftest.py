"""Shared test fixtures."""

import asyncio
import io
from dataclasses import dataclass, field
from datetime import UTC, datetime

import httpx
import pytest
from PIL import Image

from family_gazette.adapters.backend_client import BackendClient, ChunkCallback
from family_gazette.config import Settings
from family_gazette.domain.content import (
    Content,
    ContentKind,
    ContentMetadata,
    ContentStatus,
    UploadAsset,
)
from family_gazette.services.retry import RetryPolicy

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


async def no_sleep(_: float) -> None:
    await asyncio.sleep(0)


def fast_retry(max_retries: int = 3) -> RetryPolicy:
    return RetryPolicy(max_retries=max_retries, sleep=no_sleep)


def make_image(
    *,
    image_format: str = "JPEG",
    mode: str = "RGB",
    dpi: int = 300,
    size: tuple[int, int] = (64, 48),
) -> bytes:
    color = {"CMYK": (0, 128, 255, 0), "L": 128}.get(mode, (200, 120, 40))
    image = Image.new(mode, size, color)
    output = io.BytesIO()
    image.save(output, format=image_format, dpi=(dpi, dpi))
    return output.getvalue()


def photo_asset(
    *,
    file_id: str = "file-1",
    dpi: int = 300,
    color_space: str = "RGB",
    mime_type: str | None = "image/jpeg",
    data: bytes | None = None,
) -> UploadAsset:
    return UploadAsset(
        data=data if data is not None else make_image(dpi=dpi),
        filename=f"{file_id}.jpg",
        mime_type=mime_type,
        dpi=dpi,
        color_space=color_space,
        width=64,
        height=48,
        file_id=file_id,
    )


def make_content(  # noqa: PLR0913
    content_id: str = "content-1",
    *,
    kind: ContentKind = ContentKind.PHOTO,
    status: ContentStatus = ContentStatus.READY,
    dpi: int = 300,
    color_space: str | None = "RGB",
    byte_size: int = 1024,
    family_id: str = "family-1",
    print_ready: bool = False,
) -> Content:
    return Content(
        id=content_id,
        kind=kind,
        url=f"https://cdn.example.com/{content_id}",
        creator_id="member-1",
        family_id=family_id,
        metadata=ContentMetadata(
            description="Grandma's birthday",
            dpi=dpi,
            color_space=color_space,
            byte_size=byte_size,
        ),
        status=status,
        created_at=NOW,
        updated_at=NOW,
        print_ready=print_ready,
    )


def content_payload(
    content_id: str,
    *,
    kind: str = "PHOTO",
    status: str = "PROCESSING",
    metadata: dict[str, object] | None = None,
    translations: list[dict[str, object]] | None = None,
) -> dict[str, object]:
    return {
        "id": content_id,
        "type": kind,
        "url": f"https://cdn.example.com/{content_id}",
        "creatorId": "member-1",
        "familyId": "family-1",
        "metadata": metadata or {"description": "Grandma's birthday"},
        "translations": translations or [],
        "status": status,
        "createdAt": NOW.isoformat(),
        "updatedAt": NOW.isoformat(),
        "printReady": True,
    }


def gazette_payload(
    gazette_id: str = "gazette-1",
    *,
    status: str = "PROCESSING",
    family_id: str = "family-1",
    content_ids: list[str] | None = None,
) -> dict[str, object]:
    return {
        "id": gazette_id,
        "familyId": family_id,
        "status": status,
        "layout": {
            "pageSize": "A4",
            "colorSpace": "CMYK",
            "resolution": 300,
            "bleed": 3,
            "binding": "PERFECT",
            "style": "CLASSIC",
        },
        "contentIds": content_ids or [],
        "createdAt": NOW.isoformat(),
        "updatedAt": NOW.isoformat(),
    }


def http_status_error(status_code: int, message: str | None = None) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.com/test")
    body = {"message": message} if message else {}
    response = httpx.Response(status_code, json=body, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


@dataclass
class FakeBackendClient(BackendClient):
    """In-memory backend that records every call."""

    upload_failures: list[Exception] = field(default_factory=list)
    uploads: list[dict[str, object]] = field(default_factory=list)
    upload_attempts: int = 0
    print_ready: dict[str, bool] = field(default_factory=dict)
    failing_languages: set[str] = field(default_factory=set)
    omitted_languages: set[str] = field(default_factory=set)
    translate_calls: list[tuple[str, list[str], dict[str, object]]] = field(
        default_factory=list
    )
    family_content: list[dict[str, object]] = field(default_factory=list)
    generate_calls: list[tuple[str, dict[str, object], list[str]]] = field(
        default_factory=list
    )
    generate_error: Exception | None = None
    generated_status: str = "DRAFT"
    statuses: list[str] = field(default_factory=lambda: ["READY_FOR_PRINT"])
    status_calls: int = 0
    preview_calls: int = 0
    approvals: list[tuple[str, dict[str, object]]] = field(default_factory=list)
    history: list[dict[str, object]] = field(default_factory=list)
    _gazette_count: int = 0

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
        self.upload_attempts += 1
        if self.upload_failures:
            raise self.upload_failures.pop(0)
        if on_chunk is not None:
            sent = 0
            while sent < len(data):
                sent = min(sent + max(chunk_size, 1), len(data))
                on_chunk(sent, len(data))
        self.uploads.append(
            {"filename": filename, "data": data, "mime_type": mime_type, "kind": kind}
            | {"metadata": metadata}
        )
        return content_payload(
            f"content-{len(self.uploads)}", kind=kind, metadata=metadata
        )

    async def translate_content(
        self, content_id: str, languages: list[str], options: dict[str, object]
    ) -> dict[str, object]:
        self.translate_calls.append((content_id, languages, options))
        translations = [
            {
                "language": language,
                "description": f"[{language}] Grandma's birthday",
                "status": "ERROR" if language in self.failing_languages else "COMPLETED",
                "lastUpdated": NOW.isoformat(),
            }
            for language in languages
            if language not in self.omitted_languages
        ]
        return content_payload(content_id, status="READY", translations=translations)

    async def validate_content(self, content_id: str) -> dict[str, object]:
        return {"printReady": self.print_ready.get(content_id, True)}

    async def list_family_content(self, family_id: str) -> list[dict[str, object]]:
        return self.family_content

    async def generate_gazette(
        self, family_id: str, layout: dict[str, object], content_ids: list[str]
    ) -> dict[str, object]:
        self.generate_calls.append((family_id, layout, content_ids))
        if self.generate_error is not None:
            raise self.generate_error
        self._gazette_count += 1
        return gazette_payload(
            f"gazette-{self._gazette_count}",
            status=self.generated_status,
            family_id=family_id,
            content_ids=content_ids,
        )

    async def get_gazette_status(self, gazette_id: str) -> dict[str, object]:
        self.status_calls += 1
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return {"status": status}

    async def get_gazette_preview(self, gazette_id: str) -> dict[str, object]:
        self.preview_calls += 1
        return {"url": f"https://cdn.example.com/{gazette_id}/preview.pdf"}

    async def approve_gazette(
        self, gazette_id: str, approval: dict[str, object]
    ) -> dict[str, object]:
        self.approvals.append((gazette_id, approval))
        payload = gazette_payload(gazette_id, status="APPROVED")
        payload["approval"] = approval | {"approvedAt": NOW.isoformat()}
        return payload

    async def list_gazettes(self, family_id: str) -> list[dict[str, object]]:
        return self.history


@pytest.fixture
def settings() -> Settings:
    return Settings(api_base_url="https://api.example.com", api_token="token")


@pytest.fixture
def backend() -> FakeBackendClient:
    return FakeBackendClient()
