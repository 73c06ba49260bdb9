"""
Error types for the try-on services

Every failure the generation service or the screens can report derives from
TryOnError, so the web layer can map the whole family to a response at once.
"""

import json


class TryOnError(Exception):
    """Base class for all try-on failures"""


class InitializationError(TryOnError):
    """The Gemini client could not be created (usually a missing API key)"""

    def __init__(self, message=None):
        super().__init__(
            message
            or "Gemini API is not initialized. Make sure the GOOGLE_API_KEY environment variable is set."
        )


class BlockedContentError(TryOnError):
    """The request was rejected by the model's safety filter"""

    def __init__(self, reason, detail=None):
        self.reason = reason
        self.detail = detail
        message = f"Request was blocked. Reason: {reason}."
        if detail:
            message += f" {detail}"
        super().__init__(message)


class GenerationInterruptedError(TryOnError):
    """Generation stopped with a finish reason other than STOP"""

    def __init__(self, finish_reason):
        self.finish_reason = finish_reason
        super().__init__(
            f"Image generation stopped unexpectedly. Reason: {finish_reason}. "
            "This often relates to safety settings."
        )


class NoImageReturnedError(TryOnError):
    """The model answered without any image part"""

    def __init__(self, text=None):
        self.text = text
        message = "The AI model did not return an image. "
        if text:
            message += f'The model responded with text: "{text}"'
        else:
            message += (
                "This can happen due to safety filters or if the request is too complex. "
                "Please try a different image."
            )
        super().__init__(message)


class MalformedInputError(TryOnError, ValueError):
    """An image reference or instruction could not be used as input"""


UNSUPPORTED_MIME_MESSAGE = "File format not supported. Please upload an image format like PNG, JPEG, or WEBP."


def get_friendly_error_message(error, context):
    """
    Turn an exception into a message fit for the UI.

    Args:
        error: The exception (or string) that was raised
        context: Short description of the failed action, e.g. "Failed to create model"

    Returns:
        str: "<context>. <reason>", or a format hint for unsupported uploads
    """
    if isinstance(error, BaseException):
        raw_message = str(error) or error.__class__.__name__
    elif isinstance(error, str):
        raw_message = error
    elif error:
        raw_message = str(error)
    else:
        raw_message = "An unknown error occurred."

    if "Unsupported MIME type" in raw_message:
        mime_type = _extract_unsupported_mime(raw_message)
        if mime_type:
            return f"{UNSUPPORTED_MIME_MESSAGE} (Mime type: {mime_type})"
        return UNSUPPORTED_MIME_MESSAGE

    return f"{context}. {raw_message}"


def _extract_unsupported_mime(raw_message):
    """Pull the offending MIME type out of an API error body, if there is one."""
    try:
        payload = json.loads(raw_message)
        message = payload.get("error", {}).get("message", "")
    except (ValueError, AttributeError):
        message = raw_message

    marker = "Unsupported MIME type:"
    if marker not in message:
        return None
    tokens = message.split(marker, 1)[1].split()
    return tokens[0] if tokens else None
