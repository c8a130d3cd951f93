"""Tests for provider registry, base helpers and SDK error mapping."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from board_harvester.config import Settings
from board_harvester.imaging import ImagePayload
from board_harvester.models import PreferenceHints
from board_harvester.providers import get_provider, list_providers
from board_harvester.providers.base import (
    NoStructuredPayloadError,
    RateLimitedError,
    ServiceError,
    TransportError,
    VisionProvider,
    build_instructions,
    parse_link_candidates,
    parse_retry_after,
    shopping_search_url,
)
from fakes import SAMPLE_SERVICE_TEXT

PAYLOAD = ImagePayload(data=b"\xff\xd8jpeg", width=10, height=10)


class TestProviderRegistry:
    def test_list_providers(self):
        assert list_providers() == ["gemini", "openai"]

    def test_get_provider_unknown_raises(self, settings):
        with pytest.raises(ValueError, match="Unknown provider 'nonexistent'"):
            get_provider("nonexistent", settings)

    def test_get_provider_unknown_shows_available(self, settings):
        with pytest.raises(ValueError, match="Available:"):
            get_provider("bad", settings)

    def test_get_provider_gemini(self, settings):
        provider = get_provider("gemini", settings)
        assert provider.name == "gemini"
        assert isinstance(provider, VisionProvider)

    def test_gemini_requires_api_key(self):
        with pytest.raises(ValueError, match="GEMINI_API_KEY"):
            get_provider("gemini", Settings(gemini_api_key=""))

    def test_openai_requires_api_key(self):
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            get_provider("openai", Settings(openai_api_key=""))


class TestInstructions:
    def test_without_hints_has_no_preferred_url(self):
        text = build_instructions(None)
        assert "exact_url" in text
        assert "preferred_url" not in text
        assert "JSON array" in text

    def test_empty_hints_treated_as_none(self):
        assert build_instructions(PreferenceHints()) == build_instructions(None)

    def test_hints_add_preferred_url_rule(self):
        hints = PreferenceHints(target_audience="Women", preferred_brands="COS, Arket")
        text = build_instructions(hints)
        assert "preferred_url" in text
        assert "Target Audience: Women, Preferred Brands: COS, Arket" in text

    def test_asks_for_specific_terms(self):
        assert "specific descriptive terms" in build_instructions()


class TestParseLinkCandidates:
    def test_parses_fenced_array_with_prose(self):
        candidates = parse_link_candidates(SAMPLE_SERVICE_TEXT)
        assert [c.item for c in candidates] == [
            "Camel Wool Double-Breasted Coat",
            "White Leather Low-Top Sneakers",
        ]
        assert candidates[0].preferred_url.endswith("Women+COS")
        assert candidates[1].preferred_url is None

    def test_bare_array(self):
        candidates = parse_link_candidates('[{"item": "Red Scarf", "exact_url": "https://x.com/s"}]')
        assert candidates[0].exact_url == "https://x.com/s"

    def test_skips_leading_non_object_array(self):
        text = 'Items [1, 2] found: [{"item": "Hat", "exact_url": "https://x.com/h"}]'
        assert parse_link_candidates(text)[0].item == "Hat"

    def test_missing_exact_url_gets_search_url(self):
        candidates = parse_link_candidates('[{"item": "Green Silk Scarf"}]')
        assert candidates[0].exact_url == shopping_search_url("Green Silk Scarf")

    def test_null_exact_url_gets_search_url(self):
        candidates = parse_link_candidates(
            '[{"item": "Green Silk Scarf", "exact_url": null}, {"item": "Hat", "exact_url": "https://x.com/h"}]'
        )
        assert [c.item for c in candidates] == ["Green Silk Scarf", "Hat"]
        assert candidates[0].exact_url == shopping_search_url("Green Silk Scarf")
        assert candidates[1].exact_url == "https://x.com/h"

    def test_non_http_preferred_url_dropped(self):
        candidates = parse_link_candidates(
            '[{"item": "Hat", "exact_url": "https://x.com/h", "preferred_url": "n/a"}]'
        )
        assert candidates[0].preferred_url is None

    def test_malformed_entries_skipped(self):
        candidates = parse_link_candidates(
            '[{"item": ""}, {"name": "x"}, {"item": "Belt", "exact_url": "https://x.com/b"}]'
        )
        assert [c.item for c in candidates] == ["Belt"]

    @pytest.mark.parametrize("text", [
        "",
        "I could not identify any items.",
        "[]",
        '{"item": "Hat"}',
        "[{broken json",
        '[{"name": "no item key"}]',
    ])
    def test_no_structured_payload(self, text):
        with pytest.raises(NoStructuredPayloadError):
            parse_link_candidates(text)


class TestHelpers:
    def test_parse_retry_after(self):
        assert parse_retry_after("Quota exceeded. Please retry in 12.5s.") == 12.5
        assert parse_retry_after("Please retry in 3 s") == 3.0
        assert parse_retry_after("Quota exceeded") is None
        assert parse_retry_after(None) is None

    def test_shopping_search_url(self):
        assert shopping_search_url("Gray Zip-up Sweater") == (
            "https://www.google.com/search?tbm=shop&q=Gray+Zip-up+Sweater"
        )


class TestGeminiProvider:
    def _provider(self, settings, side_effect=None, text="[]"):
        provider = get_provider("gemini", settings)
        generate = AsyncMock(side_effect=side_effect, return_value=MagicMock(text=text))
        provider._client = MagicMock()
        provider._client.aio.models.generate_content = generate
        return provider, generate

    def test_returns_text_and_sends_image(self, settings):
        provider, generate = self._provider(settings, text="  [1]  ")
        assert asyncio.run(provider.generate("identify", PAYLOAD)) == "[1]"

        kwargs = generate.await_args.kwargs
        assert kwargs["model"] == settings.gemini_model
        assert kwargs["contents"][0] == "identify"
        assert kwargs["config"].temperature == settings.temperature

    def test_429_maps_to_rate_limited_with_advice(self, settings):
        from google.genai import errors

        exc = errors.ClientError(
            429,
            {"error": {"code": 429, "message": "Please retry in 4.2s.", "status": "RESOURCE_EXHAUSTED"}},
        )
        provider, _ = self._provider(settings, side_effect=exc)
        with pytest.raises(RateLimitedError) as info:
            asyncio.run(provider.generate("identify", PAYLOAD))
        assert info.value.retry_after == 4.2

    def test_other_status_maps_to_service_error(self, settings):
        from google.genai import errors

        exc = errors.ClientError(
            400,
            {"error": {"code": 400, "message": "API key not valid.", "status": "INVALID_ARGUMENT"}},
        )
        provider, _ = self._provider(settings, side_effect=exc)
        with pytest.raises(ServiceError) as info:
            asyncio.run(provider.generate("identify", PAYLOAD))
        assert info.value.status == 400

    def test_transport_error_mapped(self, settings):
        provider, _ = self._provider(settings, side_effect=httpx.ConnectError("refused"))
        with pytest.raises(TransportError):
            asyncio.run(provider.generate("identify", PAYLOAD))

    def test_aclose_closes_async_client(self, settings):
        provider, _ = self._provider(settings)
        provider._client.aio.aclose = AsyncMock()
        asyncio.run(provider.aclose())
        provider._client.aio.aclose.assert_awaited_once()


class TestOpenAIProvider:
    def _provider(self, settings, side_effect=None, content="[]"):
        provider = get_provider("openai", settings)
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = content
        create = AsyncMock(side_effect=side_effect, return_value=response)
        provider._client = MagicMock()
        provider._client.chat.completions.create = create
        return provider, create

    def test_sends_data_url(self, settings):
        provider, create = self._provider(settings, content=" [x] ")
        assert asyncio.run(provider.generate("identify", PAYLOAD)) == "[x]"
        content = create.await_args.kwargs["messages"][0]["content"]
        assert content[0] == {"type": "text", "text": "identify"}
        assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")

    def test_rate_limit_mapped_with_retry_after_header(self, settings):
        import openai

        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        response = httpx.Response(429, headers={"retry-after": "6"}, request=request)
        exc = openai.RateLimitError("Rate limit reached", response=response, body=None)
        provider, _ = self._provider(settings, side_effect=exc)
        with pytest.raises(RateLimitedError) as info:
            asyncio.run(provider.generate("identify", PAYLOAD))
        assert info.value.retry_after == 6.0

    def test_connection_error_mapped(self, settings):
        import openai

        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        provider, _ = self._provider(settings, side_effect=openai.APIConnectionError(request=request))
        with pytest.raises(TransportError):
            asyncio.run(provider.generate("identify", PAYLOAD))

    def test_sdk_retries_disabled(self, settings):
        with patch("board_harvester.providers.openai.AsyncOpenAI") as mock_client:
            get_provider("openai", settings)
        assert mock_client.call_args.kwargs["max_retries"] == 0
