"""Identity keys, URL helpers and label derivation shared by extractor and harvester."""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import unquote, urljoin, urlparse

from board_harvester.models import Record

_TRAILING_ID = re.compile(r"-{1,2}\d{6,}$")
_SEPARATORS = re.compile(r"[-_+]+")


def identity_key(record: Record, mode: str = "link_media") -> tuple[str, ...]:
    """Key used to deduplicate records across extraction passes."""
    if mode == "link":
        return (record.link,)
    return (record.link, record.media_url)


def merge_records(
    accumulator: dict[tuple[str, ...], Record],
    records: Iterable[Record],
    mode: str = "link_media",
) -> int:
    """Merge records into the accumulator; first seen wins. Returns how many were new."""
    added = 0
    for record in records:
        key = identity_key(record, mode)
        if key in accumulator:
            continue
        accumulator[key] = record
        added += 1
    return added


def absolute_url(href: str | None, base_url: str) -> str | None:
    if not href:
        return None
    href = href.strip()
    if not href:
        return None
    try:
        resolved = urljoin(base_url, href)
    except ValueError:
        return None
    if urlparse(resolved).scheme not in ("http", "https"):
        return None
    return resolved


def host_matches(url: str, host: str) -> bool:
    """True if url's hostname is host or one of its subdomains."""
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        return False
    return hostname == host or hostname.endswith("." + host)


def title_case_slug(slug: str) -> str:
    words = _SEPARATORS.sub(" ", unquote(slug)).split()
    return " ".join(w[:1].upper() + w[1:] for w in words)


def slug_label(link: str) -> str:
    """Derive a label from a pin link's slug, e.g. /pin/red-wool-coat--123/ -> 'Red Wool Coat'."""
    segments = [s for s in urlparse(link).path.split("/") if s]
    for segment in reversed(segments):
        if segment == "pin" or segment.isdigit():
            continue
        stripped = _TRAILING_ID.sub("", segment)
        label = title_case_slug(stripped)
        if label:
            return label
    return ""


def board_label(url: str, default: str = "Board") -> str:
    """Board name from the surface URL's last path segment, title-cased."""
    segments = [s for s in urlparse(url).path.split("/") if s]
    if not segments:
        return default
    return title_case_slug(segments[-1]) or default
