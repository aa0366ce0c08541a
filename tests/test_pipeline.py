"""Tests for the ingestion facade."""

import asyncio

import httpx
import pydantic
import pytest

from family_gazette.domain.content import ContentKind, ContentMetadata, ContentStatus
from family_gazette.errors import (
    InFlightError,
    TooManyFilesError,
    TransportError,
    ValidationError,
)
from family_gazette.services.pipeline import ContentPipeline
from family_gazette.services.store import ContentStateStore, ContentStats
from family_gazette.services.uploads import ContentUploadOrchestrator
from tests.conftest import (
    FakeBackendClient,
    content_payload,
    fast_retry,
    make_content,
    photo_asset,
)


def _pipeline(backend: FakeBackendClient) -> ContentPipeline:
    retry = fast_retry()
    return ContentPipeline(
        orchestrator=ContentUploadOrchestrator(client=backend, retry_policy=retry),
        store=ContentStateStore(),
        client=backend,
        retry_policy=retry,
    )


def test_photo_ingested_to_print_ready(backend: FakeBackendClient) -> None:
    pipeline = _pipeline(backend)

    content = asyncio.run(
        pipeline.ingest(
            photo_asset(),
            ContentKind.PHOTO,
            ContentMetadata(description="Beach day"),
            family_id="family-1",
        )
    )

    assert content.status == ContentStatus.READY
    assert content.print_ready
    assert content.metadata.description == "Beach day"
    assert [item.id for item in pipeline.store.items()] == [content.id]
    assert pipeline.store.stats() == ContentStats(total=1, ready=1, pending=0, failed=0)


def test_failed_print_validation_counts_as_failed(backend: FakeBackendClient) -> None:
    backend.print_ready = {"content-1": False}
    pipeline = _pipeline(backend)

    content = asyncio.run(pipeline.ingest(photo_asset(), ContentKind.PHOTO))

    assert content.status == ContentStatus.ERROR
    assert pipeline.store.stats() == ContentStats(total=1, ready=0, pending=0, failed=1)


def test_invalid_asset_leaves_store_untouched(backend: FakeBackendClient) -> None:
    pipeline = _pipeline(backend)

    with pytest.raises(ValidationError):
        asyncio.run(pipeline.ingest(photo_asset(dpi=72), ContentKind.PHOTO))

    assert len(pipeline.store) == 0
    assert backend.upload_attempts == 0


def test_transport_failure_marks_placeholder_error(backend: FakeBackendClient) -> None:
    backend.upload_failures = [httpx.ConnectError("offline") for _ in range(4)]
    pipeline = _pipeline(backend)

    with pytest.raises(TransportError):
        asyncio.run(pipeline.ingest(photo_asset(), ContentKind.PHOTO))

    placeholder = pipeline.store.get("file-1")
    assert placeholder is not None
    assert placeholder.status == ContentStatus.ERROR
    assert placeholder.processing_errors == ("offline",)
    assert pipeline.store.stats().failed == 1

    content = asyncio.run(pipeline.ingest(photo_asset(), ContentKind.PHOTO))

    assert content.status == ContentStatus.READY
    assert [item.id for item in pipeline.store.items()] == [content.id]


def test_batch_of_29_rejected_before_any_upload(backend: FakeBackendClient) -> None:
    pipeline = _pipeline(backend)
    pipeline.store.add(make_content("existing"))
    before = pipeline.store.items()
    assets = [photo_asset(file_id=f"file-{index}") for index in range(29)]

    with pytest.raises(TooManyFilesError):
        asyncio.run(pipeline.ingest_batch(assets, ContentKind.PHOTO))

    assert backend.upload_attempts == 0
    assert pipeline.store.items() == before


def test_batch_ingests_each_asset(backend: FakeBackendClient) -> None:
    pipeline = _pipeline(backend)
    assets = [photo_asset(file_id=f"file-{index}") for index in range(3)]

    ingested = asyncio.run(
        pipeline.ingest_batch(assets, ContentKind.PHOTO, family_id="family-1")
    )

    assert [item.id for item in ingested] == ["content-1", "content-2", "content-3"]
    assert pipeline.store.stats() == ContentStats(total=3, ready=3, pending=0, failed=0)


def test_refresh_replaces_store_contents(backend: FakeBackendClient) -> None:
    backend.family_content = [
        content_payload(
            "remote-1",
            status="READY",
            metadata={"dpi": 300, "colorSpace": "CMYK", "size": 2048},
        ),
        content_payload("remote-2", status="PROCESSING"),
    ]
    pipeline = _pipeline(backend)
    pipeline.store.add(make_content("stale"))

    items = asyncio.run(pipeline.refresh("family-1"))

    assert [item.id for item in items] == ["remote-1", "remote-2"]
    assert items[0].print_ready
    assert items[0].metadata.byte_size == 2048
    assert pipeline.store.stats() == ContentStats(total=2, ready=1, pending=1, failed=0)


class StallingBackend(FakeBackendClient):
    async def upload_content(self, **kwargs):  # type: ignore[no-untyped-def, override]
        self.upload_attempts += 1
        await asyncio.get_running_loop().create_future()


class MalformedBackend(FakeBackendClient):
    async def upload_content(self, **kwargs):  # type: ignore[no-untyped-def, override]
        self.upload_attempts += 1
        return {"unexpected": True}


def test_cancelled_ingest_marks_placeholder_error() -> None:
    backend = StallingBackend()
    pipeline = _pipeline(backend)

    async def scenario() -> None:
        task = asyncio.ensure_future(pipeline.ingest(photo_asset(), ContentKind.PHOTO))
        while backend.upload_attempts == 0:
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    placeholder = pipeline.store.get("file-1")
    assert placeholder is not None
    assert placeholder.status == ContentStatus.ERROR
    assert placeholder.processing_errors == ("Ingestion was cancelled",)
    assert pipeline.store.stats() == ContentStats(total=1, ready=0, pending=0, failed=1)


def test_same_file_ingested_after_cancellation(backend: FakeBackendClient) -> None:
    stalling = StallingBackend()
    pipeline = _pipeline(stalling)

    async def cancelled() -> None:
        task = asyncio.ensure_future(pipeline.ingest(photo_asset(), ContentKind.PHOTO))
        while stalling.upload_attempts == 0:
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(cancelled())
    pipeline.orchestrator.client = backend

    content = asyncio.run(pipeline.ingest(photo_asset(), ContentKind.PHOTO))

    assert content.status == ContentStatus.READY
    assert [item.id for item in pipeline.store.items()] == [content.id]


def test_malformed_upload_response_marks_placeholder_error() -> None:
    pipeline = _pipeline(MalformedBackend())

    with pytest.raises(pydantic.ValidationError):
        asyncio.run(pipeline.ingest(photo_asset(), ContentKind.PHOTO))

    placeholder = pipeline.store.get("file-1")
    assert placeholder is not None
    assert placeholder.status == ContentStatus.ERROR
    assert pipeline.store.stats().pending == 0


def test_leftover_pending_placeholder_reused(backend: FakeBackendClient) -> None:
    pipeline = _pipeline(backend)
    pipeline.store.add(make_content("file-1", status=ContentStatus.PENDING))

    content = asyncio.run(pipeline.ingest(photo_asset(), ContentKind.PHOTO))

    assert content.status == ContentStatus.READY
    assert [item.id for item in pipeline.store.items()] == [content.id]


def test_duplicate_ingest_while_uploading_rejected() -> None:
    backend = StallingBackend()
    pipeline = _pipeline(backend)

    async def scenario() -> None:
        first = asyncio.ensure_future(pipeline.ingest(photo_asset(), ContentKind.PHOTO))
        while backend.upload_attempts == 0:
            await asyncio.sleep(0)
        with pytest.raises(InFlightError):
            await pipeline.ingest(photo_asset(), ContentKind.PHOTO)
        placeholder = pipeline.store.get("file-1")
        assert placeholder is not None
        assert placeholder.status == ContentStatus.PENDING
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

    asyncio.run(scenario())
