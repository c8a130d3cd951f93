"""Abstract base class for vision providers, shared prompt and response parsing."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from urllib.parse import quote_plus

from pydantic import ValidationError

from board_harvester.config import Settings
from board_harvester.models import LinkCandidate, PreferenceHints

if TYPE_CHECKING:
    from board_harvester.imaging import ImagePayload

logger = logging.getLogger(__name__)

RETRY_IN_PATTERN = re.compile(r"retry in\s+([0-9.]+)\s*s", re.IGNORECASE)

SHOPPING_SEARCH_URL = "https://www.google.com/search?tbm=shop&q={query}"

IDENTIFY_INSTRUCTIONS = """\
Identify every clothing item and accessory visible in this image.

For each item:
- Name it with specific descriptive terms: color, material, cut and style \
(e.g. "Camel Wool Double-Breasted Coat", not "coat"). Never use generic nouns alone.
- "exact_url": a Google Shopping search URL for that description, built as \
https://www.google.com/search?tbm=shop&q=<terms joined with +>. Do NOT guess \
product pages.
{preferred_rule}
Return ONLY a valid JSON array of objects with the keys {keys}. \
No markdown, no conversational text."""

PREFERRED_RULE = """\
- "preferred_url": a second Google Shopping search URL for the same item, \
biased toward these preferences: {hints}. Add the audience and brand names \
to the query terms.
"""


class EnrichmentError(Exception):
    """Base class for inference-call failures."""


class RateLimitedError(EnrichmentError):
    """The service refused the request because of its rate limit."""

    def __init__(self, message: str = "", retry_after: float | None = None) -> None:
        super().__init__(message or "rate limited")
        self.message = message
        self.retry_after = retry_after


class ServiceError(EnrichmentError):
    """Non-success response that is not worth retrying."""

    def __init__(self, status: int | None, message: str = "") -> None:
        super().__init__(f"service error {status}: {message}")
        self.status = status
        self.message = message


class TransportError(EnrichmentError):
    """The request never got a response (connection, DNS, timeout)."""


class NoStructuredPayloadError(EnrichmentError):
    """The response text holds no usable JSON array of items."""


def parse_retry_after(message: str | None) -> float | None:
    """Seconds the service asked us to wait ('Please retry in 12.3s'), if it said."""
    match = RETRY_IN_PATTERN.search(message or "")
    return float(match.group(1)) if match else None


def shopping_search_url(*terms: str) -> str:
    query = " ".join(t.strip() for t in terms if t and t.strip())
    return SHOPPING_SEARCH_URL.format(query=quote_plus(query))


def build_instructions(hints: PreferenceHints | None = None) -> str:
    """Instructions for one identify-and-search request."""
    if hints:
        return IDENTIFY_INSTRUCTIONS.format(
            preferred_rule=PREFERRED_RULE.format(hints=hints.render()),
            keys='"item", "exact_url" and "preferred_url"',
        )
    return IDENTIFY_INSTRUCTIONS.format(
        preferred_rule="",
        keys='"item" and "exact_url"',
    )


def _iter_json_arrays(text: str):
    """Yield every JSON array that decodes cleanly, scanning left to right."""
    decoder = json.JSONDecoder()
    start = text.find("[")
    while start != -1:
        try:
            value, _end = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            pass
        else:
            if isinstance(value, list):
                yield value
        start = text.find("[", start + 1)


def parse_link_candidates(text: str) -> list[LinkCandidate]:
    """Find the first non-empty array of item objects in free-form service text.

    Raises:
        NoStructuredPayloadError: if no such array exists or it has no valid items.
    """
    for value in _iter_json_arrays(text or ""):
        if not value or not all(isinstance(entry, dict) for entry in value):
            continue
        candidates: list[LinkCandidate] = []
        for entry in value:
            try:
                candidate = LinkCandidate.model_validate(entry)
            except ValidationError:
                logger.debug("Skipping malformed item: %s", entry)
                continue
            if not candidate.exact_url.startswith(("http://", "https://")):
                candidate.exact_url = shopping_search_url(candidate.item)
            if candidate.preferred_url and not candidate.preferred_url.startswith(
                ("http://", "https://")
            ):
                candidate.preferred_url = None
            candidates.append(candidate)
        if candidates:
            return candidates
        break

    raise NoStructuredPayloadError(
        f"No JSON array of items in response: {(text or '')[:200]}"
    )


class VisionProvider(ABC):
    """Contract for a multimodal inference service."""

    name: str

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @abstractmethod
    async def generate(self, instructions: str, payload: ImagePayload) -> str:
        """
        Send one request with the instructions and the JPEG payload.

        Returns:
            The response text.

        Raises:
            RateLimitedError: on a rate-limit response (advisory wait attached if given).
            ServiceError: on any other non-success response.
            TransportError: when no response was received.
        """
        ...

    async def aclose(self) -> None:
        """Release SDK resources; providers override when they hold any."""
