"""Tests for normalizing generate_content responses."""

from __future__ import annotations

import base64

import pytest
from google.genai import types

from services.errors import BlockedContentError, GenerationInterruptedError, NoImageReturnedError
from services.gemini_generator import handle_api_response
from tests.fakes import blocked_response, image_response, text_response


def test_inline_image_becomes_data_url_with_same_mime_and_payload() -> None:
    response = image_response(data=b"\x89PNG-fake-bytes", mime_type="image/webp")

    result = handle_api_response(response)

    assert result == "data:image/webp;base64," + base64.b64encode(b"\x89PNG-fake-bytes").decode("ascii")


def test_first_image_in_any_candidate_is_used() -> None:
    response = types.GenerateContentResponse(
        candidates=[
            types.Candidate(
                content=types.Content(role="model", parts=[types.Part(text="thinking about it")]),
                finish_reason="STOP",
            ),
            types.Candidate(
                content=types.Content(
                    role="model",
                    parts=[
                        types.Part(text="here you go"),
                        types.Part(inline_data=types.Blob(data=b"second", mime_type="image/jpeg")),
                        types.Part(inline_data=types.Blob(data=b"third", mime_type="image/png")),
                    ],
                ),
                finish_reason="STOP",
            ),
        ]
    )

    assert handle_api_response(response) == "data:image/jpeg;base64," + base64.b64encode(b"second").decode("ascii")


def test_blocked_prompt_raises_with_reason() -> None:
    response = blocked_response(reason="SAFETY", message="Contains unsafe content.")

    with pytest.raises(BlockedContentError) as excinfo:
        handle_api_response(response)

    assert excinfo.value.reason == "SAFETY"
    assert "Reason: SAFETY" in str(excinfo.value)
    assert "Contains unsafe content." in str(excinfo.value)


def test_non_stop_finish_reason_raises_interrupted() -> None:
    with pytest.raises(GenerationInterruptedError) as excinfo:
        handle_api_response(text_response(None, finish_reason="MAX_TOKENS"))

    assert excinfo.value.finish_reason == "MAX_TOKENS"
    assert "MAX_TOKENS" in str(excinfo.value)


def test_text_only_response_includes_model_text() -> None:
    with pytest.raises(NoImageReturnedError) as excinfo:
        handle_api_response(text_response("  I cannot edit this photo.  "))

    assert excinfo.value.text == "I cannot edit this photo."
    assert 'The model responded with text: "I cannot edit this photo."' in str(excinfo.value)


def test_stop_without_text_gives_generic_hint() -> None:
    with pytest.raises(NoImageReturnedError) as excinfo:
        handle_api_response(text_response(None))

    assert excinfo.value.text is None
    assert "safety filters" in str(excinfo.value)


def test_empty_response_reports_no_image() -> None:
    with pytest.raises(NoImageReturnedError):
        handle_api_response(types.GenerateContentResponse())
