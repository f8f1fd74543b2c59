# src/reports/wakatime_cards.py
# | Card                  | Layout | Data shown                                 |
# | --------------------- | ------ | ------------------------------------------ |
# | WakaTimeLanguagesCard | bars   | all-time coding time per language          |
# | WakaTimeEditorsCard   | bars   | all-time coding time per editor            |
# | WakaTimeOsCard        | bars   | all-time coding time per operating system  |
from __future__ import annotations

import base64
import logging
from typing import Any, ClassVar, Dict, List, Optional, Sequence

import httpx

from aggregation import Denominator, derive_rows, top_row_label
from errors import ConfigurationError, UpstreamError
from formatting import fmt_seconds
from models import BarsCardSpec, MetricRow, TimeEntry, WakaTimeMetrics, parse_model
from render import WAKATIME_THEME
from reports.base import BaseCard, CardContext
from settings import AppSettings

logger = logging.getLogger(__name__)

REPORT_ID = "wakatime"


class WakaTimeClient:
    def __init__(
        self,
        api_key: str,
        url: str = "https://wakatime.com/api/v1/users/current/stats/all_time",
        timeout: float = 30.0,
        retries: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        # WakaTime takes the bare key, base64 encoded, as Basic credentials
        auth = base64.b64encode(api_key.encode("utf-8")).decode("ascii")
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Basic {auth}"},
            transport=transport or httpx.AsyncHTTPTransport(retries=retries),
        )

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "WakaTimeClient":
        return cls(
            api_key=settings.wakatime_api_key or "",
            url=settings.wakatime_api_url,
            timeout=settings.http_timeout,
            retries=settings.http_retries,
        )

    async def all_time_stats(self) -> Dict[str, Any]:
        try:
            r = await self._client.get(self.url)
            r.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                REPORT_ID, f"HTTP {exc.response.status_code}", status_code=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(REPORT_ID, f"request failed: {exc}") from exc
        try:
            payload = r.json()
        except ValueError as exc:
            raise UpstreamError(REPORT_ID, "response is not JSON") from exc
        return payload if isinstance(payload, dict) else {}

    async def aclose(self) -> None:
        await self._client.aclose()


def mock_wakatime_metrics() -> WakaTimeMetrics:
    """Fixed sample used when USE_MOCK_DATA is on."""
    hour = 3600
    return WakaTimeMetrics(
        languages=(
            TimeEntry(name="Python", total_seconds=612 * hour),
            TimeEntry(name="TypeScript", total_seconds=288 * hour + 1800),
            TimeEntry(name="Markdown", total_seconds=41 * hour),
            TimeEntry(name="YAML", total_seconds=17 * hour + 600),
            TimeEntry(name="Other", total_seconds=9 * hour),
            TimeEntry(name="Bash", total_seconds=2400),
        ),
        editors=(
            TimeEntry(name="VS Code", total_seconds=701 * hour),
            TimeEntry(name="PyCharm", total_seconds=262 * hour),
            TimeEntry(name="Vim", total_seconds=5 * hour + 1800),
        ),
        operating_systems=(
            TimeEntry(name="Linux", total_seconds=803 * hour),
            TimeEntry(name="Mac", total_seconds=165 * hour + 1800),
        ),
        total_seconds=968 * hour + 1800,
    )


async def fetch_wakatime_metrics(
    settings: AppSettings,
    client: Optional[WakaTimeClient] = None,
) -> WakaTimeMetrics:
    if settings.use_mock_data:
        return mock_wakatime_metrics()
    if not settings.wakatime_api_key:
        raise ConfigurationError("WAKATIME_API_KEY is not set")

    owns_client = client is None
    client = client or WakaTimeClient.from_settings(settings)
    try:
        payload = await client.all_time_stats()
    finally:
        if owns_client:
            await client.aclose()

    data = payload.get("data")
    if not isinstance(data, dict) or not data:
        raise UpstreamError(REPORT_ID, "returned empty data")

    metrics = parse_model(
        WakaTimeMetrics,
        {
            "languages": data.get("languages"),
            "editors": data.get("editors"),
            "operating_systems": data.get("operating_systems"),
            "total_seconds": data.get("total_seconds"),
        },
    )
    logger.info(
        "Fetched WakaTime stats: %d languages, %d editors, %d operating systems",
        len(metrics.languages),
        len(metrics.editors),
        len(metrics.operating_systems),
    )
    return metrics


TIME_DENOMINATOR = Denominator.SHOWN


def time_rows(entries: Sequence[TimeEntry]) -> List[MetricRow]:
    # The service already folds its long tail into "Other", so shares are of the rows shown.
    return derive_rows(
        [(entry.name, entry.total_seconds) for entry in entries],
        fmt_seconds,
        denominator=TIME_DENOMINATOR,
    )


class _WakaTimeBarsCard(BaseCard[WakaTimeMetrics]):
    report_id = REPORT_ID
    kind = "bars"
    theme = WAKATIME_THEME
    entries_field: ClassVar[str]

    @classmethod
    def build(cls, m: WakaTimeMetrics, ctx: CardContext) -> BarsCardSpec:
        rows = time_rows(getattr(m, cls.entries_field))
        return BarsCardSpec(
            title=cls.title,
            subtitle_left=ctx.updated_label,
            total_text=f"Total: {fmt_seconds(m.tracked_seconds)}",
            top_text=f"Top: {top_row_label(rows)}" if rows else "",
            rows=tuple(rows),
        )


class WakaTimeLanguagesCard(_WakaTimeBarsCard):
    card_id = "wakatime-langs"
    title = "💻 WakaTime • Languages"
    entries_field = "languages"


class WakaTimeEditorsCard(_WakaTimeBarsCard):
    card_id = "wakatime-editors"
    title = "🛠️ WakaTime • Editors"
    entries_field = "editors"


class WakaTimeOsCard(_WakaTimeBarsCard):
    card_id = "wakatime-os"
    title = "🖥️ WakaTime • OS"
    entries_field = "operating_systems"
