"""
Baruc Core - Gemini Developer API Integration.

Uses Gemini Developer API (API key). The conversation core only needs plain
text generation: callers parse whatever comes back.
"""

import logging
import os

from baruc.config import get_settings
from baruc.exceptions import ExternalServiceException

logger = logging.getLogger(__name__)

_client = None


def _get_api_key() -> str:
    """
    Get Gemini API key.

    Resolution order:
    1. GEMINI_API_KEY environment variable
    2. Settings (.env)
    """
    api_key = os.environ.get("GEMINI_API_KEY")
    if api_key:
        return api_key

    api_key = (get_settings().gemini.api_key or "").strip()
    if api_key:
        return api_key

    raise ExternalServiceException(
        "Gemini API",
        "No API key found. Set GEMINI_API_KEY environment variable.",
    )


def has_api_key() -> bool:
    """True when a Gemini key is configured (otherwise the bot runs offline)."""
    try:
        _get_api_key()
    except ExternalServiceException:
        return False
    return True


def get_gemini_client():
    """
    Get configured Gemini client.

    Uses API key authentication (Gemini Developer API).
    """
    global _client

    if _client is not None:
        return _client

    from google import genai

    api_key = _get_api_key()
    _client = genai.Client(api_key=api_key)

    logger.info("Gemini client initialized with API key")
    return _client


class GeminiService:
    """Text generation oracle backed by Gemini."""

    def __init__(self, model: str | None = None, client=None):
        self.model = model or get_settings().gemini.model
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_gemini_client()
        return self._client

    async def generate(self, prompt: str, temperature: float | None = None) -> str:
        """
        Generate text for a prompt.

        Raises:
            ExternalServiceException: on any API failure.
        """
        from google.genai import types

        config = None
        if temperature is not None:
            config = types.GenerateContentConfig(temperature=temperature)

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )
        except ExternalServiceException:
            raise
        except Exception as e:
            logger.error(f"Generation failed: {e}")
            raise ExternalServiceException("Gemini", str(e))

        return (response.text or "").strip()
