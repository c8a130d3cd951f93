"""Enrichment orchestrator and the top-level harvest-then-enrich run.

Records are processed strictly one at a time with a pacing delay between
them. A failure on one record never aborts the batch: every input record
comes back out, enriched or not, in the same order.
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace

from board_harvester.client import EnrichmentClient
from board_harvester.config import Settings
from board_harvester.harvester import harvest
from board_harvester.imaging import PayloadError
from board_harvester.models import (
    HarvestResult,
    LinkCandidate,
    PreferenceHints,
    Record,
    ShoppingLink,
)
from board_harvester.pacing import RateLimiter
from board_harvester.providers import get_provider
from board_harvester.surface import open_surface

logger = logging.getLogger(__name__)

# External visual-search collaborator: returns a comma-separated label or None.
LabelFallback = Callable[[Record], Awaitable[str | None]]

LINE = "=" * 60


def _out(msg: str = "") -> None:
    """Print a status message to stderr so it doesn't mix with JSON output."""
    print(msg, file=sys.stderr, flush=True)


def _elapsed(t: float) -> str:
    """Format elapsed seconds as human-readable string."""
    secs = time.time() - t
    if secs < 60:
        return f"{secs:.1f}s"
    return f"{secs / 60:.1f}m"


def apply_candidates(
    record: Record,
    candidates: list[LinkCandidate],
    hints: PreferenceHints | None = None,
) -> None:
    """Attach item labels and link lists to *record* in place."""
    record.analysis_items = [c.item for c in candidates]
    record.direct_links = [ShoppingLink(item=c.item, url=c.exact_url) for c in candidates]
    if hints:
        record.preferred_links = [
            ShoppingLink(item=c.item, url=c.preferred_url)
            for c in candidates
            if c.preferred_url
        ]


def _split_label(label: str) -> list[str]:
    return [part.strip() for part in label.split(",") if part.strip()]


def _build_client(
    credential: str | None,
    provider_name: str,
    settings: Settings,
) -> EnrichmentClient | None:
    if credential:
        settings = replace(settings, **{f"{provider_name}_api_key": credential})
    try:
        provider = get_provider(provider_name, settings)
    except ValueError as exc:
        logger.warning("Enrichment disabled: %s", exc)
        return None
    return EnrichmentClient(provider, settings)


async def _enrich_one(
    record: Record,
    client: EnrichmentClient,
    hints: PreferenceHints | None,
) -> None:
    try:
        payload = await client.prepare_payload(record)
    except PayloadError as exc:
        logger.error("Skipping enrichment for %s: %s", record.link, exc)
        return

    candidates = await client.enrich(record, hints, payload=payload)
    if candidates:
        apply_candidates(record, candidates, hints)


async def enrich_records(
    records: list[Record],
    credential: str | None = None,
    hints: PreferenceHints | None = None,
    *,
    settings: Settings | None = None,
    provider_name: str | None = None,
    client: EnrichmentClient | None = None,
    limiter: RateLimiter | None = None,
    fallback: LabelFallback | None = None,
) -> list[Record]:
    """
    Enrich records one by one and return all of them, in order.

    Args:
        credential: API key for the provider. Overrides the key in settings.
        hints: Audience/brand preferences; non-empty hints add preferred links.
        client: Ready-made client; built from provider_name/credential if None.
        limiter: Pacing between records; defaults to the service or fallback delay.
        fallback: Label source used when no inference service is available.
    """
    if settings is None:
        settings = Settings.from_env()
    provider_name = provider_name or settings.default_provider

    owns_client = client is None
    if client is None and (credential or settings.api_key_for(provider_name)):
        client = _build_client(credential, provider_name, settings)

    if client is None and fallback is None:
        logger.warning(
            "No %s credential and no fallback; returning %d records unenriched",
            provider_name, len(records),
        )
        return list(records)

    if limiter is None:
        interval = settings.enrich_delay if client is not None else settings.fallback_delay
        limiter = RateLimiter(interval)

    output: list[Record] = []
    total = len(records)
    limiter.reset()
    try:
        for i, record in enumerate(records):
            logger.info("Processing item %d of %d: %s", i + 1, total, record.link)
            try:
                # First acquire is free; later ones wait out the interval.
                await limiter.acquire()

                if client is not None:
                    await _enrich_one(record, client, hints)
                else:
                    label = await fallback(record)
                    if label and label.strip():
                        record.analysis_items = _split_label(label)
            except Exception as exc:
                logger.warning("Processing error for %s: %s", record.link, exc, exc_info=True)
            output.append(record)
    finally:
        if owns_client and client is not None:
            await client.aclose()

    enriched = sum(1 for r in output if r.enriched)
    logger.info("Enrichment complete: %d of %d records enriched", enriched, total)
    return output


async def collect_board(
    url: str,
    credential: str | None = None,
    hints: PreferenceHints | None = None,
    *,
    settings: Settings | None = None,
    provider_name: str | None = None,
    enrich: bool = True,
) -> HarvestResult:
    """Open a board, harvest every pin, then enrich them. Returns the combined result."""
    if settings is None:
        settings = Settings.from_env()
    provider_name = provider_name or settings.default_provider
    start = time.time()

    _out(f"\n{LINE}")
    _out("  Board Harvester")
    _out(LINE)
    _out(f"  URL:      {url}")
    _out(f"  Enrich:   {provider_name if enrich else 'off'}")
    if hints:
        _out(f"  Prefs:    {hints.render()}")
    _out(LINE)

    _out("  Harvesting board (scrolling until it stops growing)...")
    async with open_surface(url, settings) as surface:
        result = await harvest(surface, settings)
    _out(f"  Harvested {len(result.records)} pins in {result.passes} passes ({_elapsed(start)})")
    if result.truncated:
        _out("  [!] Scroll limit reached; the board may have more pins")

    if enrich and result.records:
        t0 = time.time()
        _out(f"  Enriching {len(result.records)} pins with {provider_name}...")
        result.records = await enrich_records(
            result.records,
            credential,
            hints,
            settings=settings,
            provider_name=provider_name,
        )
        enriched = sum(1 for r in result.records if r.enriched)
        _out(f"  Enriched {enriched} of {len(result.records)} pins ({_elapsed(t0)})")

    _out(LINE)
    _out(f"  Board:    {result.board_label}")
    _out(f"  Total:    {_elapsed(start)}")
    _out(LINE)
    return result
