"""Extract pin records from a snapshot of the rendered board.

The extractor is a pure function of the current DOM: it knows nothing about
earlier passes. The harvester calls it repeatedly while scrolling and merges
the results.
"""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup, Tag

from board_harvester.keys import (
    absolute_url,
    host_matches,
    identity_key,
    slug_label,
)
from board_harvester.models import Record

logger = logging.getLogger(__name__)

PIN_LINK_PATTERN = re.compile(r"/pin/[\w%-]*\d")

CARD_TEST_IDS = ["pinWrapper", "pin", "pin-card", "pin-card-wrapper"]
TITLE_TEST_IDS = ["pinTitle", "title"]
DESCRIPTION_TEST_IDS = ["pinDescription", "fullDescription"]

# Boilerplate that carries no information about the depicted item.
GENERIC_PHRASES = [
    re.compile(r"(an? )?(image|photo|picture|pin) (of|for)\b.*"),
    re.compile(r"(this )?((image|photo|pin) )?(may|might) contain\b.*"),
    re.compile(r"no (description|title|caption)( available| provided)?\.?"),
    re.compile(r"(pinterest|pin|pin image|pin card|image|photo)\.?"),
    re.compile(r"via @[\w.]+\.?"),
    re.compile(r"untitled( pin)?\.?"),
]


def is_generic(text: str) -> bool:
    """True if text is empty or one of the known boilerplate phrases."""
    normalized = " ".join(text.split()).lower()
    if len(normalized) < 2:
        return True
    return any(pattern.fullmatch(normalized) for pattern in GENERIC_PHRASES)


def _clean(text: str | None) -> str:
    if not text:
        return ""
    text = " ".join(text.split())
    return "" if is_generic(text) else text


def _card_for(anchor: Tag) -> Tag:
    card = anchor.find_parent(attrs={"data-test-id": CARD_TEST_IDS})
    return card if card is not None else anchor


def _image_url(image: Tag, page_url: str) -> str | None:
    srcset = image.get("srcset") or ""
    from_srcset = ""
    if srcset:
        last = srcset.split(",")[-1].strip()
        from_srcset = last.split()[0] if last else ""
    for candidate in (
        image.get("data-pin-media"),
        image.get("data-src"),
        image.get("src"),
        from_srcset,
    ):
        url = absolute_url(candidate, page_url)
        if url:
            return url
    return None


def _video_url(card: Tag, page_url: str) -> str | None:
    video = card.find("video")
    if video is None:
        return None
    direct = video.get("src") or ""
    # blob: URLs die with the render session
    for src in [direct, *(source.get("src") or "" for source in video.find_all("source"))]:
        if src and not src.startswith("blob:"):
            url = absolute_url(src, page_url)
            if url:
                return url
    return None


def _heading_text(card: Tag) -> str:
    heading = card.find(attrs={"data-test-id": TITLE_TEST_IDS}) or card.find(
        ["h1", "h2", "h3", "h4"]
    )
    return heading.get_text(" ", strip=True) if heading is not None else ""


def _description(card: Tag) -> str:
    element = card.find(attrs={"data-test-id": DESCRIPTION_TEST_IDS})
    return _clean(element.get_text(" ", strip=True)) if element is not None else ""


def resolve_title(
    image: Tag | None,
    anchor: Tag,
    card: Tag,
    link: str,
) -> str:
    """First usable label from image, link, heading, container; else the link slug."""
    candidates = []
    if image is not None:
        candidates += [image.get("alt"), image.get("aria-label")]
    candidates += [
        anchor.get("aria-label"),
        _heading_text(card),
        card.get("aria-label"),
    ]
    for candidate in candidates:
        title = _clean(candidate)
        if title:
            return title
    return slug_label(link)


def extract_records(
    html: str,
    page_url: str,
    *,
    media_host: str = "pinimg.com",
    key_mode: str = "link_media",
) -> list[Record]:
    """Return the qualifying records visible in one DOM snapshot."""
    soup = BeautifulSoup(html, "html.parser")
    records: list[Record] = []
    seen: set[tuple[str, ...]] = set()

    for anchor in soup.find_all("a", href=True):
        link = absolute_url(anchor["href"], page_url)
        if not link or not PIN_LINK_PATTERN.search(link):
            continue

        card = _card_for(anchor)
        description = _description(card)
        video_url = _video_url(card, page_url)

        for image in card.find_all("img"):
            media_url = _image_url(image, page_url)
            if not media_url or not host_matches(media_url, media_host):
                continue

            record = Record(
                link=link,
                media_url=media_url,
                secondary_media_url=video_url,
                title=resolve_title(image, anchor, card, link),
                description=description,
            )
            key = identity_key(record, key_mode)
            if key in seen:
                continue
            seen.add(key)
            records.append(record)

    logger.debug("Extracted %d records from %s", len(records), page_url)
    return records
