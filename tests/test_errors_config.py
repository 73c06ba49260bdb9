"""Tests for friendly error messages and environment settings."""

from __future__ import annotations

import pytest

from services.config import DEFAULT_MODEL, Settings
from services.errors import (
    BlockedContentError,
    GenerationInterruptedError,
    InitializationError,
    MalformedInputError,
    NoImageReturnedError,
    TryOnError,
    get_friendly_error_message,
)


def test_error_taxonomy_shares_base_class() -> None:
    for error in (
        InitializationError(),
        BlockedContentError("SAFETY"),
        GenerationInterruptedError("RECITATION"),
        NoImageReturnedError(),
        MalformedInputError("bad"),
    ):
        assert isinstance(error, TryOnError)
    assert isinstance(MalformedInputError("bad"), ValueError)


def test_friendly_message_prefixes_context() -> None:
    message = get_friendly_error_message(GenerationInterruptedError("OTHER"), "Failed to change pose")

    assert message.startswith("Failed to change pose. Image generation stopped unexpectedly. Reason: OTHER.")


def test_friendly_message_handles_strings_and_empty_values() -> None:
    assert get_friendly_error_message("timeout", "Failed") == "Failed. timeout"
    assert get_friendly_error_message(None, "Failed") == "Failed. An unknown error occurred."
    assert get_friendly_error_message(RuntimeError(), "Failed") == "Failed. RuntimeError"


def test_unsupported_mime_type_gets_format_hint() -> None:
    plain = get_friendly_error_message(RuntimeError("400 Unsupported MIME type: image/bmp"), "Failed")
    no_type = get_friendly_error_message("Unsupported MIME type:", "Failed")

    assert plain == (
        "File format not supported. Please upload an image format like PNG, JPEG, or WEBP. (Mime type: image/bmp)"
    )
    assert no_type == "File format not supported. Please upload an image format like PNG, JPEG, or WEBP."


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "GOOGLE_API_KEY",
        "GEMINI_API_KEY",
        "GEMINI_IMAGE_MODEL",
        "SECRET_KEY",
        "PORT",
        "MAX_UPLOAD_MB",
        "SESSION_TIMEOUT_MINUTES",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_settings_defaults_without_credentials(clean_env) -> None:
    settings = Settings.from_env(dotenv=False)

    assert settings.api_key is None
    assert settings.has_api_key is False
    assert settings.model == DEFAULT_MODEL
    assert settings.port == 5001
    assert settings.log_level == "INFO"


def test_settings_read_environment(clean_env) -> None:
    clean_env.setenv("GEMINI_API_KEY", "fallback-key")
    clean_env.setenv("GEMINI_IMAGE_MODEL", "gemini-test-image")
    clean_env.setenv("PORT", "8080")
    clean_env.setenv("MAX_UPLOAD_MB", "lots")
    clean_env.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env(dotenv=False)

    assert settings.api_key == "fallback-key"
    assert settings.model == "gemini-test-image"
    assert settings.port == 8080
    assert settings.max_upload_mb == 25
    assert settings.log_level == "DEBUG"

    clean_env.setenv("GOOGLE_API_KEY", "primary-key")
    assert Settings.from_env(dotenv=False).api_key == "primary-key"
