"""Tests for configuration helpers."""

from nutri_sync.config import Settings, parse_media_patterns


def test_parse_media_patterns() -> None:
    assert parse_media_patterns(" image/* , Application/PDF,,image/*") == (
        "image/*",
        "application/pdf",
    )


def test_parse_media_patterns_none() -> None:
    assert parse_media_patterns(None) == ()


def test_settings_defaults() -> None:
    settings = Settings(openai_api_key="key", supabase_url=None)

    assert settings.history_limit == 50
    assert settings.free_tier_credits == 3
    assert settings.uses_supabase is False
