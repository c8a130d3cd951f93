"""Command-line interface for Board Harvester."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace

from board_harvester.config import KEY_MODES, Settings
from board_harvester.models import PreferenceHints
from board_harvester.pipeline import collect_board
from board_harvester.providers import list_providers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="board-harvester",
        description="Harvest every pin on a board and attach AI-identified shopping links.",
    )
    parser.add_argument("url", help="Board URL to harvest")
    parser.add_argument(
        "-p", "--provider",
        choices=list_providers(),
        default=None,
        help="Inference provider for enrichment (default: from .env DEFAULT_PROVIDER)",
    )
    parser.add_argument(
        "--api-key",
        default=None,
        help="API key for the provider (default: GEMINI_API_KEY / OPENAI_API_KEY from .env)",
    )
    parser.add_argument(
        "--audience",
        default=None,
        help="Target audience for preferred links, e.g. 'Women'",
    )
    parser.add_argument(
        "--brands",
        default=None,
        help="Preferred brands for preferred links, e.g. 'COS, Arket'",
    )
    parser.add_argument(
        "--no-enrich",
        action="store_true",
        help="Harvest only; skip the inference calls",
    )
    parser.add_argument(
        "--max-scrolls",
        type=int,
        default=None,
        help="Safety limit on scroll iterations (default: 400). The harvest stops "
             "naturally once the board stops growing.",
    )
    parser.add_argument(
        "--key-mode",
        choices=KEY_MODES,
        default=None,
        help="Deduplicate by link+image (default) or by link alone",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output file path (default: stdout)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    settings = Settings.from_env()

    # Apply CLI overrides
    overrides = {}
    if args.max_scrolls is not None:
        overrides["max_iterations"] = args.max_scrolls
    if args.key_mode:
        overrides["key_mode"] = args.key_mode
    if args.headed:
        overrides["headless"] = False
    if args.audience is not None:
        overrides["target_audience"] = args.audience
    if args.brands is not None:
        overrides["preferred_brands"] = args.brands
    if overrides:
        settings = replace(settings, **overrides)

    hints = PreferenceHints(
        target_audience=settings.target_audience,
        preferred_brands=settings.preferred_brands,
    )

    result = asyncio.run(
        collect_board(
            args.url,
            args.api_key,
            hints,
            settings=settings,
            provider_name=args.provider,
            enrich=not args.no_enrich,
        )
    )

    output = json.dumps(
        result.model_dump(by_alias=True, exclude_none=True),
        indent=2,
        ensure_ascii=False,
    )

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output)
        print(f"Output written to {args.output}", file=sys.stderr)
    else:
        print(output)

    return 0


if __name__ == "__main__":
    sys.exit(main())
