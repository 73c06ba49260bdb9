"""
Configuration loaded from the environment (.env supported)
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash-image"


def _int_env(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, value, default)
        return default


@dataclass
class Settings:
    """Runtime settings for the web app and generation client"""
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    secret_key: str = "tryon-studio-secret-key-change-in-production"
    port: int = 5001
    max_upload_mb: int = 25
    session_timeout_minutes: int = 60
    log_level: str = "INFO"

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls, dotenv=True):
        """
        Build settings from environment variables.

        A missing API key is not an error here; the generation client
        reports it on every call instead.
        """
        if dotenv:
            load_dotenv()

        return cls(
            api_key=os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY") or None,
            model=os.getenv("GEMINI_IMAGE_MODEL") or DEFAULT_MODEL,
            secret_key=os.getenv("SECRET_KEY") or cls.secret_key,
            port=_int_env("PORT", cls.port),
            max_upload_mb=_int_env("MAX_UPLOAD_MB", cls.max_upload_mb),
            session_timeout_minutes=_int_env("SESSION_TIMEOUT_MINUTES", cls.session_timeout_minutes),
            log_level=(os.getenv("LOG_LEVEL") or cls.log_level).upper(),
        )
