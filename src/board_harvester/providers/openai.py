"""OpenAI provider: vision chat completions with an inline base64 image."""

from __future__ import annotations

import logging

import openai
from openai import AsyncOpenAI

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


def _retry_after_header(exc: openai.APIStatusError) -> float | None:
    raw = exc.response.headers.get("retry-after") if exc.response is not None else None
    try:
        return float(raw) if raw else None
    except ValueError:
        return None


class OpenAIProvider(VisionProvider):
    name = "openai"

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required for the OpenAI provider")
        # Retries are owned by RetryPolicy, not the SDK.
        self._client = AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)
        self._model = settings.openai_model

    async def generate(self, instructions: str, payload: ImagePayload) -> str:
        data_url = f"data:{payload.mime_type};base64,{payload.b64}"
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                temperature=self.settings.temperature,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": instructions},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    }
                ],
            )
        except openai.RateLimitError as exc:
            retry_after = _retry_after_header(exc)
            if retry_after is None:
                retry_after = parse_retry_after(exc.message)
            logger.info("OpenAI rate limit: %s", exc.message)
            raise RateLimitedError(exc.message, retry_after) from exc
        except openai.APIStatusError as exc:
            logger.error("OpenAI API error %s: %s", exc.status_code, exc.message)
            raise ServiceError(exc.status_code, exc.message) from exc
        except openai.APIConnectionError as exc:
            raise TransportError(f"OpenAI request failed: {exc}") from exc

        return (response.choices[0].message.content or "").strip()

    async def aclose(self) -> None:
        await self._client.close()
