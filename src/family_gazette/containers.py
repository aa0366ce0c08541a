"""Dependency container wiring for the pipeline."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from family_gazette.adapters.backend_client import BackendClient, HttpxBackendClient
from family_gazette.app_logging import configure_logging
from family_gazette.config import Settings
from family_gazette.services.cache import InMemoryPreviewCache
from family_gazette.services.gazette import GazetteAssembler
from family_gazette.services.pipeline import ContentPipeline
from family_gazette.services.retry import RetryPolicy
from family_gazette.services.store import ContentStateStore
from family_gazette.services.translation import TranslationCoordinator
from family_gazette.services.uploads import ContentUploadOrchestrator
from family_gazette.services.validation import UploadConstraints


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    backend_client: BackendClient
    content_store: ContentStateStore
    preview_cache: InMemoryPreviewCache
    upload_orchestrator: ContentUploadOrchestrator
    translation_coordinator: TranslationCoordinator
    gazette_assembler: GazetteAssembler
    content_pipeline: ContentPipeline
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    configure_logging(resolved_settings.log_level)
    backend_client = HttpxBackendClient.create(
        resolved_settings.api_base_url,
        api_token=resolved_settings.api_token,
        timeout=resolved_settings.request_timeout_seconds,
    )
    retry_policy = RetryPolicy(
        max_retries=resolved_settings.max_retries,
        base_delay_seconds=resolved_settings.retry_base_delay_seconds,
        jitter_seconds=resolved_settings.retry_jitter_seconds,
    )
    constraints = UploadConstraints.from_settings(resolved_settings)
    content_store = ContentStateStore(constraints.print_rules())
    preview_cache = InMemoryPreviewCache()
    upload_orchestrator = ContentUploadOrchestrator(
        client=backend_client,
        constraints=constraints,
        retry_policy=retry_policy,
        min_image_quality=resolved_settings.min_image_quality,
        chunk_size=resolved_settings.upload_chunk_size,
        max_batch_size=resolved_settings.max_photos_per_gazette,
    )
    translation_coordinator = TranslationCoordinator(
        client=backend_client, store=content_store, retry_policy=retry_policy
    )
    gazette_assembler = GazetteAssembler(
        client=backend_client,
        preview_cache=preview_cache,
        retry_policy=retry_policy,
        max_photos=resolved_settings.max_photos_per_gazette,
        poll_interval_ms=resolved_settings.poll_interval_ms,
        poll_timeout_seconds=resolved_settings.poll_timeout_seconds,
    )
    content_pipeline = ContentPipeline(
        orchestrator=upload_orchestrator,
        store=content_store,
        client=backend_client,
        retry_policy=retry_policy,
    )

    async def close_resources() -> None:
        gazette_assembler.dispose()
        await backend_client.close()

    return AppContainer(
        settings=resolved_settings,
        backend_client=backend_client,
        content_store=content_store,
        preview_cache=preview_cache,
        upload_orchestrator=upload_orchestrator,
        translation_coordinator=translation_coordinator,
        gazette_assembler=gazette_assembler,
        content_pipeline=content_pipeline,
        close_resources=close_resources,
    )
