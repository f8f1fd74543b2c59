#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from dateutil import parser as date_parser
from dotenv import load_dotenv
from pydantic import ValidationError

from cards import select_cards
from errors import CardsError, InvalidInputError
from refresh import DirectorySink, render_all
from settings import AppSettings

logger = logging.getLogger("generate_cards")


def parse_now(value: str) -> datetime:
    """ISO timestamp for the end of the contribution range; naive values are UTC."""
    try:
        ts = date_parser.isoparse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO timestamp: {value!r}") from exc
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render GitHub and WakaTime profile cards as SVG files")
    parser.add_argument("--out-dir", default=None, help="Directory the SVGs are written to (default: OUT_DIR or assets)")
    parser.add_argument(
        "--card",
        dest="cards",
        action="append",
        default=None,
        metavar="CARD_ID",
        help="Render only this card; repeatable",
    )
    parser.add_argument(
        "--report",
        dest="reports",
        action="append",
        default=None,
        choices=["github", "wakatime"],
        help="Render only the cards of this report; repeatable",
    )
    parser.add_argument("--env-file", default=None, help="Load environment variables from this file first")
    parser.add_argument("--now", type=parse_now, default=None, help="Pin the current time (ISO 8601)")
    parser.add_argument("--mock", action="store_true", help="Use the built-in sample data instead of the APIs")
    parser.add_argument(
        "--log-level",
        default=None,
        type=str.upper,
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Override LOG_LEVEL",
    )
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> AppSettings:
    if args.env_file:
        load_dotenv(args.env_file, override=True)
    try:
        settings = AppSettings()
    except ValidationError as exc:
        raise InvalidInputError(f"invalid configuration: {exc}") from exc

    update = {}
    if args.out_dir:
        update["out_dir"] = args.out_dir
    if args.mock:
        update["use_mock_data"] = True
    if args.log_level:
        update["log_level"] = args.log_level
    return settings.model_copy(update=update) if update else settings


def run(argv: Optional[List[str]] = None) -> List[str]:
    args = parse_args(argv)
    settings = load_settings(args)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )

    cards = select_cards(args.cards, args.reports)
    if not cards:
        raise InvalidInputError("no cards selected")
    logger.info("Rendering %d cards into %s", len(cards), settings.out_dir)
    return asyncio.run(render_all(settings, DirectorySink(settings.out_dir), cards=cards, now=args.now))


def main(argv: Optional[List[str]] = None) -> None:
    try:
        written = run(argv)
    except (CardsError, KeyError) as exc:
        message = exc.args[0] if isinstance(exc, KeyError) and exc.args else exc
        print(f"Error: {message}", file=sys.stderr)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        print("Error: card generation interrupted by user.", file=sys.stderr)
        raise SystemExit(130)
    for name in written:
        print(f"Wrote {name}")


if __name__ == "__main__":
    main()
