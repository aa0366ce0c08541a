"""Tests for settings parsing."""

from family_gazette.config import Settings, parse_csv_set


def test_settings_read_prefixed_environment(monkeypatch) -> None:
    monkeypatch.setenv("GAZETTE_API_BASE_URL", "https://backend.example.com")
    monkeypatch.setenv("GAZETTE_MAX_PHOTOS_PER_GAZETTE", "12")
    monkeypatch.setenv("GAZETTE_POLL_INTERVAL_MS", "250")

    settings = Settings()

    assert settings.api_base_url == "https://backend.example.com"
    assert settings.max_photos_per_gazette == 12
    assert settings.poll_interval_ms == 250
    assert settings.min_resolution == 300
    assert settings.max_content_size == 10 * 1024 * 1024


def test_parse_csv_set() -> None:
    assert parse_csv_set(" image/JPEG, ,image/png ") == frozenset(
        {"image/jpeg", "image/png"}
    )
    assert parse_csv_set("rgb,cmyk", upper=True) == frozenset({"RGB", "CMYK"})
    assert parse_csv_set(None) == frozenset()
