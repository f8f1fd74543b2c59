# src/refresh.py
"""
Wiring between the upstream fetchers, the card catalog and an output sink.

``render_all`` is what the CLI and the Celery task call; ``ReportCache`` is
what the HTTP server uses so card requests do not hammer the upstream APIs.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Type, Union

from cards import ALL_CARDS
from reports.base import BaseCard, CardContext
from reports.github_cards import fetch_github_metrics
from reports.wakatime_cards import fetch_wakatime_metrics
from settings import AppSettings

logger = logging.getLogger(__name__)

ReportLoader = Callable[[str], Awaitable[Any]]


class OutputSink(Protocol):
    def write(self, name: str, document: str) -> None: ...


class DirectorySink:
    """Writes every card as ``<out_dir>/<name>``, creating the directory on first use."""

    def __init__(self, out_dir: Union[str, Path]) -> None:
        self.out_dir = Path(out_dir)

    def write(self, name: str, document: str) -> None:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        (self.out_dir / name).write_text(document, encoding="utf-8")


async def load_report(report_id: str, settings: AppSettings, now: Optional[datetime] = None) -> Any:
    if report_id == "github":
        return await fetch_github_metrics(settings, now=now)
    if report_id == "wakatime":
        return await fetch_wakatime_metrics(settings)
    raise KeyError(f"unknown report: {report_id}")


def report_ids(cards: Sequence[Type[BaseCard]]) -> List[str]:
    seen: List[str] = []
    for card in cards:
        if card.report_id not in seen:
            seen.append(card.report_id)
    return seen


async def render_all(
    settings: AppSettings,
    sink: OutputSink,
    cards: Optional[Sequence[Type[BaseCard]]] = None,
    now: Optional[datetime] = None,
    loader: Optional[ReportLoader] = None,
) -> List[str]:
    """
    Fetch each report the cards need once, then render and write every card.

    All reports are fetched before anything is written, so a failing upstream
    leaves the previous set of cards untouched. Returns the written names.
    """
    cards = list(ALL_CARDS if cards is None else cards)
    now = now or datetime.now(timezone.utc)
    loader = loader or (lambda report_id: load_report(report_id, settings, now))

    reports: Dict[str, Any] = {}
    for report_id in report_ids(cards):
        reports[report_id] = await loader(report_id)

    ctx = CardContext(updated_label=settings.updated_label)
    written: List[str] = []
    for card in cards:
        svg = card.render(reports[card.report_id], ctx)
        name = card.output_name()
        sink.write(name, svg)
        logger.info("Wrote %s", name)
        written.append(name)
    return written


class ReportCache:
    """Per-report memo with a time-to-live; concurrent misses share a single fetch."""

    def __init__(
        self,
        loader: ReportLoader,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def get(self, report_id: str) -> Any:
        lock = self._locks.setdefault(report_id, asyncio.Lock())
        async with lock:
            entry = self._entries.get(report_id)
            now = self._clock()
            if entry is not None and now - entry[0] < self._ttl:
                return entry[1]
            value = await self._loader(report_id)
            self._entries[report_id] = (now, value)
            logger.debug("Refreshed report %s", report_id)
            return value

    def clear(self) -> None:
        self._entries.clear()
