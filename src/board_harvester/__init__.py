"""Board Harvester - collect pins from an infinite-scroll board and enrich them with AI."""

__version__ = "0.1.0"

from board_harvester.harvester import harvest
from board_harvester.models import HarvestResult, PreferenceHints, Record
from board_harvester.pipeline import collect_board, enrich_records

__all__ = [
    "HarvestResult",
    "PreferenceHints",
    "Record",
    "collect_board",
    "enrich_records",
    "harvest",
]
