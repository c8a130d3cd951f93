"""Fetch pin images and normalize them into small JPEG payloads for inference."""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from board_harvester.config import Settings
from board_harvester.providers.base import EnrichmentError, TransportError
from board_harvester.retry import RetryPolicy

logger = logging.getLogger(__name__)

JPEG_MIME = "image/jpeg"

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class PayloadError(Exception):
    """Raised when an image cannot be fetched or decoded."""


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    width: int
    height: int
    mime_type: str = JPEG_MIME

    @property
    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


def normalize_image(data: bytes, max_edge: int = 800, quality: int = 80) -> ImagePayload:
    """Decode, cap the longer edge at *max_edge* (aspect kept) and re-encode as JPEG."""
    try:
        with Image.open(io.BytesIO(data)) as raw:
            image = raw.convert("RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise PayloadError(f"Could not decode image: {exc}") from exc

    width, height = image.size
    longest_edge = max(width, height)
    if longest_edge > max_edge:
        scale = max_edge / float(longest_edge)
        new_size = (
            max(1, round(width * scale)),
            max(1, round(height * scale)),
        )
        image = image.resize(new_size, Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return ImagePayload(data=buffer.getvalue(), width=image.width, height=image.height)


async def _get_bytes(http: httpx.AsyncClient, url: str, referer: str | None) -> bytes:
    headers = {"User-Agent": USER_AGENT}
    if referer:
        headers["Referer"] = referer
    try:
        response = await http.get(url, headers=headers, follow_redirects=True)
    except httpx.TransportError as exc:
        raise TransportError(f"GET {url} failed: {exc}") from exc
    response.raise_for_status()
    return response.content


async def fetch_image(
    url: str,
    http: httpx.AsyncClient,
    retry: RetryPolicy,
    *,
    referer: str | None = None,
) -> bytes:
    """Download image bytes; connection failures are retried, HTTP errors are not."""
    try:
        data = await retry.call(_get_bytes, http, url, referer)
    except (EnrichmentError, httpx.HTTPError) as exc:
        logger.error("Image fetch failed for %s: %s", url, exc)
        raise PayloadError(f"Failed to fetch {url}: {exc}") from exc
    if not data:
        raise PayloadError(f"Empty image body from {url}")
    logger.debug("Fetched %d image bytes from %s", len(data), url)
    return data


async def load_image_payload(
    url: str,
    http: httpx.AsyncClient,
    settings: Settings,
    retry: RetryPolicy,
    *,
    referer: str | None = None,
) -> ImagePayload:
    """Fetch and normalize one image. Raises PayloadError on any failure."""
    if referer is None:
        parsed = urlparse(url)
        referer = f"{parsed.scheme}://{parsed.netloc}/" if parsed.netloc else None
    data = await fetch_image(url, http, retry, referer=referer)
    payload = normalize_image(data, settings.max_image_edge, settings.jpeg_quality)
    logger.debug(
        "Normalized %s to %dx%d (%d bytes)",
        url, payload.width, payload.height, len(payload.data),
    )
    return payload
