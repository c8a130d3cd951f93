"""Google Gemini provider: cheap multimodal model, strict free-tier rate limits."""

from __future__ import annotations

import logging

import httpx
from google import genai
from google.genai import errors, types

from board_harvester.config import Settings
from board_harvester.imaging import ImagePayload
from board_harvester.providers.base import (
    RateLimitedError,
    ServiceError,
    TransportError,
    VisionProvider,
    parse_retry_after,
)

logger = logging.getLogger(__name__)


class GeminiProvider(VisionProvider):
    name = "gemini"

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required for the Gemini provider")
        self._client = genai.Client(api_key=settings.gemini_api_key)
        self._model = settings.gemini_model

    async def generate(self, instructions: str, payload: ImagePayload) -> str:
        """Send instructions plus the inline JPEG and return the first candidate's text."""
        config = types.GenerateContentConfig(temperature=self.settings.temperature)
        contents = [
            instructions,
            types.Part.from_bytes(data=payload.data, mime_type=payload.mime_type),
        ]
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=contents,
                config=config,
            )
        except errors.APIError as exc:
            message = exc.message or str(exc)
            if exc.code == 429:
                logger.info("Gemini rate limit: %s", message)
                raise RateLimitedError(message, parse_retry_after(message)) from exc
            logger.error("Gemini API error %s: %s", exc.code, message)
            raise ServiceError(exc.code, message) from exc
        except httpx.TransportError as exc:
            raise TransportError(f"Gemini request failed: {exc}") from exc

        return (response.text or "").strip()

    async def aclose(self) -> None:
        await self._client.aio.aclose()
