"""Fan-out of content descriptions to target languages."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum

import httpx

from family_gazette.adapters.backend_client import BackendClient
from family_gazette.adapters.payloads import ContentPayload
from family_gazette.domain.content import (
    SUPPORTED_LANGUAGES,
    Content,
    ContentTranslation,
    TranslationStatus,
)
from family_gazette.errors import BackendError, PipelineError, ValidationError
from family_gazette.services.retry import RetryPolicy, backend_message
from family_gazette.services.store import ContentStateStore

MISSING_TRANSLATION_MESSAGE = "No translation returned"

_logger = logging.getLogger(__name__)


class TranslationPriority(StrEnum):
    """Backend scheduling priority for translation requests."""

    HIGH = "HIGH"
    NORMAL = "NORMAL"


@dataclass(frozen=True)
class TranslationOptions:
    """Options forwarded with a translation request."""

    priority: TranslationPriority = TranslationPriority.NORMAL
    notify_on_completion: bool = False
    preserve_formatting: bool = True

    def to_payload(self) -> dict[str, object]:
        """Serialize to the backend's option names."""
        return {
            "priority": str(self.priority),
            "notifyOnCompletion": self.notify_on_completion,
            "preserveFormatting": self.preserve_formatting,
        }


TranslationProgressCallback = Callable[[str, TranslationStatus], None]


@dataclass
class TranslationCoordinator:
    """Requests translations and tracks each language independently.

    A language that fails on the backend is recorded as ERROR on the returned
    record; it never fails the call as a whole.
    """

    client: BackendClient
    store: ContentStateStore | None = None
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    supported_languages: tuple[str, ...] = SUPPORTED_LANGUAGES
    _progress: dict[str, dict[str, TranslationStatus]] = field(default_factory=dict)

    def progress(self, content_id: str) -> dict[str, TranslationStatus]:
        """Return the per-language status of a content item's translations."""
        return dict(self._progress.get(content_id, {}))

    async def translate(
        self,
        content_id: str,
        target_languages: Sequence[str],
        options: TranslationOptions | None = None,
        *,
        on_progress: TranslationProgressCallback | None = None,
    ) -> Content:
        """Translate a content description into every target language."""
        languages = self.check_languages(target_languages)
        tracker = self._progress.setdefault(content_id, {})
        for language in languages:
            _track(tracker, language, TranslationStatus.PENDING, on_progress)

        resolved_options = options or TranslationOptions()
        try:
            payload = await self.retry_policy.call(
                lambda: self.client.translate_content(
                    content_id, languages, resolved_options.to_payload()
                ),
                action=f"translate {content_id}",
            )
        except httpx.HTTPStatusError as exc:
            for language in languages:
                _track(tracker, language, TranslationStatus.ERROR, on_progress)
            raise BackendError(
                code="TRANSLATION_REJECTED",
                message=backend_message(exc),
                details={"content_id": content_id, "languages": languages},
            ) from exc
        except PipelineError:
            for language in languages:
                _track(tracker, language, TranslationStatus.ERROR, on_progress)
            raise

        returned = ContentPayload.model_validate(payload).to_domain()
        existing = self.store.get(content_id) if self.store is not None else None
        merged = merge_translations(existing or returned, returned, languages)
        for translation in merged.translations:
            if translation.language in languages:
                _track(tracker, translation.language, translation.status, on_progress)

        failed = [lang for lang in languages if tracker[lang] == TranslationStatus.ERROR]
        if failed:
            _logger.warning(
                "Translation of %s failed for languages: %s",
                content_id,
                ", ".join(failed),
            )
        if existing is not None and self.store is not None:
            return self.store.update(merged)
        return merged

    def check_languages(self, target_languages: Sequence[str]) -> list[str]:
        """Normalize target languages, rejecting unsupported entries."""
        languages: list[str] = []
        for raw in target_languages:
            language = raw.strip().lower()
            if language not in languages:
                languages.append(language)
        if not languages:
            raise ValidationError(
                code="NO_TARGET_LANGUAGES",
                message="At least one target language is required",
            )
        unsupported = [lang for lang in languages if lang not in self.supported_languages]
        if unsupported:
            raise ValidationError(
                code="UNSUPPORTED_LANGUAGE",
                message=f"Unsupported languages: {', '.join(unsupported)}",
                details={"languages": unsupported},
            )
        return languages


def merge_translations(
    base: Content, returned: Content, requested: Sequence[str]
) -> Content:
    """Overlay returned translations onto ``base`` by language.

    Requested languages the backend did not answer for are marked ERROR.
    """
    now = datetime.now(tz=UTC)
    by_language: dict[str, ContentTranslation] = {
        item.language: item for item in base.translations
    }
    for item in returned.translations:
        by_language[item.language] = item
    for language in requested:
        if language not in {item.language for item in returned.translations}:
            by_language[language] = ContentTranslation(
                language=language,
                description=MISSING_TRANSLATION_MESSAGE,
                status=TranslationStatus.ERROR,
                last_updated=now,
            )
    return replace(base, translations=tuple(by_language.values()), updated_at=now)


def _track(
    tracker: dict[str, TranslationStatus],
    language: str,
    status: TranslationStatus,
    callback: TranslationProgressCallback | None,
) -> None:
    tracker[language] = status
    if callback is None:
        return
    try:
        callback(language, status)
    except Exception:
        _logger.exception("Translation listener failed for %s", language)
