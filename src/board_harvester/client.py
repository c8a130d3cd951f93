"""Enrichment client: one identify-and-search call per record, retried and normalized."""

from __future__ import annotations

import logging
from urllib.parse import urlparse

import httpx

from board_harvester.config import Settings
from board_harvester.imaging import ImagePayload, PayloadError, load_image_payload
from board_harvester.models import LinkCandidate, PreferenceHints, Record
from board_harvester.providers.base import (
    EnrichmentError,
    NoStructuredPayloadError,
    VisionProvider,
    build_instructions,
    parse_link_candidates,
)
from board_harvester.retry import RetryPolicy

logger = logging.getLogger(__name__)


def _origin(url: str) -> str | None:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/" if parsed.netloc else None


class EnrichmentClient:
    """Wraps a VisionProvider with payload preparation, retries and parsing.

    ``enrich`` never raises for service trouble: every failure mode comes back
    as ``None`` so callers can treat it the same as "no match".
    """

    def __init__(
        self,
        provider: VisionProvider,
        settings: Settings,
        *,
        retry: RetryPolicy | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.provider = provider
        self.settings = settings
        self.retry = retry or RetryPolicy.from_settings(settings)
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=settings.image_timeout)

    async def __aenter__(self) -> EnrichmentClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()
        await self.provider.aclose()

    async def prepare_payload(self, record: Record) -> ImagePayload:
        """Fetch and shrink the record's image. Raises PayloadError."""
        return await load_image_payload(
            record.media_url,
            self._http,
            self.settings,
            self.retry,
            referer=_origin(record.link),
        )

    async def enrich(
        self,
        record: Record,
        hints: PreferenceHints | None = None,
        *,
        payload: ImagePayload | None = None,
    ) -> list[LinkCandidate] | None:
        """Identify items in the record's image and return link candidates, or None."""
        if payload is None:
            try:
                payload = await self.prepare_payload(record)
            except PayloadError as exc:
                logger.warning("No payload for %s: %s", record.link, exc)
                return None

        instructions = build_instructions(hints)
        try:
            text = await self.retry.call(self.provider.generate, instructions, payload)
        except EnrichmentError as exc:
            logger.warning("%s call failed for %s: %s", self.provider.name, record.link, exc)
            return None

        try:
            candidates = parse_link_candidates(text)
        except NoStructuredPayloadError as exc:
            logger.warning("Unusable %s response for %s: %s", self.provider.name, record.link, exc)
            return None

        logger.info("Identified %d items for %s", len(candidates), record.link)
        return candidates
