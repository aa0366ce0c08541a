"""End-to-end flows against a FastAPI backend over ASGI."""

import asyncio

import httpx

from family_gazette.adapters.backend_client import HttpxBackendClient
from family_gazette.domain.content import ContentKind, ContentMetadata, ContentStatus
from family_gazette.domain.gazette import GazetteLayout, GazetteStatus
from family_gazette.services.gazette import GazetteAssembler
from family_gazette.services.pipeline import ContentPipeline
from family_gazette.services.store import ContentStateStore, ContentStats
from family_gazette.services.translation import TranslationCoordinator
from family_gazette.services.uploads import ContentUploadOrchestrator, UploadProgress
from tests.conftest import fast_retry, no_sleep, photo_asset
from tests.fake_backend import BackendState, create_fake_backend


def _client(state: BackendState) -> HttpxBackendClient:
    transport = httpx.ASGITransport(app=create_fake_backend(state))
    return HttpxBackendClient(
        base_url="http://testserver",
        http_client=httpx.AsyncClient(transport=transport),
    )


def test_photo_to_approved_gazette() -> None:
    state = BackendState()
    client = _client(state)
    retry = fast_retry()
    store = ContentStateStore()
    pipeline = ContentPipeline(
        orchestrator=ContentUploadOrchestrator(
            client=client, retry_policy=retry, chunk_size=512
        ),
        store=store,
        client=client,
        retry_policy=retry,
    )
    translations = TranslationCoordinator(client=client, store=store, retry_policy=retry)
    assembler = GazetteAssembler(client=client, retry_policy=retry, poll_sleep=no_sleep)
    progress: list[UploadProgress] = []

    async def scenario():
        content = await pipeline.ingest(
            photo_asset(),
            ContentKind.PHOTO,
            ContentMetadata(description="Family picnic", original_language="en"),
            family_id="family-1",
            on_progress=progress.append,
        )
        translated = await translations.translate(content.id, ["he", "fr"])
        gazette = await assembler.generate(
            "family-1", GazetteLayout(), store.ready_items()
        )
        ready = await assembler.wait_until_settled(gazette.id)
        preview = await assembler.get_preview(gazette.id)
        await assembler.get_preview(gazette.id)
        approved = await assembler.approve(gazette.id, "Dana")
        history = await assembler.history("family-1")
        await client.close()
        return content, translated, ready, preview, approved, history

    content, translated, ready, preview, approved, history = asyncio.run(scenario())

    assert content.status == ContentStatus.READY
    assert content.print_ready
    assert content.metadata.description == "Family picnic"
    assert content.metadata.dpi == 300
    assert content.metadata.byte_size == state.received_bytes[0]
    assert progress[0].progress == 0
    assert progress[-1].progress == 100
    assert store.stats() == ContentStats(total=1, ready=1, pending=0, failed=0)

    assert {item.language for item in translated.translations} == {"he", "fr"}
    assert store.get(content.id) == translated

    assert ready.status == GazetteStatus.READY_FOR_PRINT
    assert ready.content_ids == (content.id,)
    assert state.status_polls["gazette-1"] == 2
    assert preview == "https://cdn.example.com/gazette-1/preview.pdf"
    assert state.preview_requests == 1

    assert approved.status == GazetteStatus.APPROVED
    assert approved.approval is not None and approved.approval.quality_checked
    assert [item.status for item in history] == [GazetteStatus.APPROVED]
