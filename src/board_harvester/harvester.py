"""Convergence harvester: scroll a lazily loading board until it stops growing.

States:
  SCROLLING: step down by a fraction of the viewport, wait, extract, merge
  SETTLING:  at the bottom; wait longer and check whether the page grew
  DONE:      no growth after settling; one last pass, then return

The loop is capped by ``Settings.max_iterations``. Hitting the cap returns
what was collected so far with ``truncated=True``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable

from board_harvester.config import Settings
from board_harvester.extractor import extract_records
from board_harvester.keys import board_label, merge_records
from board_harvester.models import HarvestResult, Record
from board_harvester.surface import Surface

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class HarvestState(enum.Enum):
    SCROLLING = "scrolling"
    SETTLING = "settling"
    DONE = "done"


async def _at_bottom(surface: Surface, tolerance: int) -> bool:
    offset = await surface.scroll_offset()
    visible = await surface.visible_extent()
    total = await surface.total_extent()
    return offset + visible >= total - tolerance


async def harvest(
    surface: Surface,
    settings: Settings | None = None,
    *,
    sleep: Sleep = asyncio.sleep,
) -> HarvestResult:
    """Scroll *surface* to convergence and return every distinct record seen."""
    if settings is None:
        settings = Settings()

    accumulator: dict[tuple[str, ...], Record] = {}
    passes = 0

    async def extract_pass() -> int:
        nonlocal passes
        html = await surface.snapshot()
        records = extract_records(
            html,
            surface.url,
            media_host=settings.media_host,
            key_mode=settings.key_mode,
        )
        passes += 1
        added = merge_records(accumulator, records, settings.key_mode)
        logger.debug(
            "Pass %d: %d visible, %d new, %d total",
            passes, len(records), added, len(accumulator),
        )
        return added

    await surface.scroll_to_top()
    await sleep(settings.initial_delay)
    await extract_pass()

    state = HarvestState.SCROLLING
    settled_extent = 0
    iterations = 0
    truncated = False

    while state is not HarvestState.DONE:
        if iterations >= settings.max_iterations:
            truncated = True
            logger.warning(
                "Harvest truncated after %d iterations with %d records; "
                "the board never stopped growing",
                iterations, len(accumulator),
            )
            break
        iterations += 1

        if state is HarvestState.SCROLLING:
            await surface.scroll_by(settings.scroll_fraction)
            await sleep(settings.scroll_delay)
            await extract_pass()
            if await _at_bottom(surface, settings.bottom_tolerance):
                settled_extent = await surface.total_extent()
                state = HarvestState.SETTLING
                logger.debug("Reached bottom at extent %d, settling", settled_extent)

        elif state is HarvestState.SETTLING:
            await sleep(settings.settle_delay)
            total = await surface.total_extent()
            if total > settled_extent:
                logger.debug("Extent grew %d -> %d, scrolling again", settled_extent, total)
                state = HarvestState.SCROLLING
            else:
                await extract_pass()
                state = HarvestState.DONE

    logger.info(
        "Harvest finished: %d records in %d passes (%d iterations)%s",
        len(accumulator), passes, iterations, " [truncated]" if truncated else "",
    )
    return HarvestResult(
        source_url=surface.url,
        board_label=board_label(surface.url),
        records=list(accumulator.values()),
        passes=passes,
        truncated=truncated,
    )
