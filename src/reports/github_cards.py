# src/reports/github_cards.py
# | Card                | Layout | Data shown                                              |
# | ------------------- | ------ | ------------------------------------------------------- |
# | GitHubStatsCard     | grid   | repos, stars, followers, commits, PRs, issues + grade   |
# | GitHubActivityCard  | bars   | commits / PRs / issues / reviews share of contributions |
# | GitHubLanguagesCard | bars   | top languages by bytes across owned, non-fork repos     |
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from aggregation import (
    Denominator,
    RepositoryAccumulator,
    WindowAccumulator,
    activity_rows,
    compute_grade,
    derive_rows,
    grade_signals,
    pick_top_activity,
    top_row_label,
    year_windows,
)
from errors import ConfigurationError, UpstreamError
from formatting import fmt_number, human_bytes
from models import BarsCardSpec, ContributionTotals, GitHubMetrics, GridCardSpec, GridItem, RepositoryTotals
from render import GITHUB_THEME
from reports.base import BaseCard, CardContext
from settings import AppSettings

logger = logging.getLogger(__name__)

REPORT_ID = "github"
PAGE_SIZE = 100

USER_QUERY = """
query($login: String!) {
  user(login: $login) {
    login
    followers { totalCount }
    repositories(ownerAffiliations: OWNER) { totalCount }
  }
}
"""

# contributionsCollection rejects ranges longer than one year
CONTRIBUTIONS_QUERY = """
query($login: String!, $from: DateTime!, $to: DateTime!) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      totalCommitContributions
      totalIssueContributions
      totalPullRequestContributions
      totalPullRequestReviewContributions
    }
  }
}
"""

REPOSITORIES_QUERY = """
query($login: String!, $cursor: String, $first: Int!) {
  user(login: $login) {
    repositories(
      first: $first,
      after: $cursor,
      ownerAffiliations: OWNER,
      orderBy: { field: UPDATED_AT, direction: DESC }
    ) {
      pageInfo { hasNextPage endCursor }
      nodes {
        isFork
        stargazerCount
        languages(first: 10, orderBy: { field: SIZE, direction: DESC }) {
          edges { size node { name } }
        }
      }
    }
  }
}
"""


class GitHubClient:
    """Minimal GraphQL client: one POST per query, errors surface as UpstreamError."""

    def __init__(
        self,
        token: str,
        url: str = "https://api.github.com/graphql",
        timeout: float = 30.0,
        retries: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            transport=transport or httpx.AsyncHTTPTransport(retries=retries),
        )

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "GitHubClient":
        return cls(
            token=settings.github_token or "",
            url=settings.github_api_url,
            timeout=settings.http_timeout,
            retries=settings.http_retries,
        )

    async def query(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            r = await self._client.post(self.url, json={"query": query, "variables": variables})
        except httpx.HTTPError as exc:
            raise UpstreamError(REPORT_ID, f"request failed: {exc}") from exc

        try:
            payload = r.json()
        except ValueError:
            payload = None

        if r.status_code >= 400 or not isinstance(payload, dict):
            raise UpstreamError(REPORT_ID, f"HTTP {r.status_code}", status_code=r.status_code)
        if payload.get("errors"):
            raise UpstreamError(REPORT_ID, f"GraphQL errors: {json.dumps(payload['errors'])}")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise UpstreamError(REPORT_ID, "response carries no data")
        return data

    async def aclose(self) -> None:
        await self._client.aclose()


def _user(data: Dict[str, Any], login: str) -> Dict[str, Any]:
    user = data.get("user")
    if not isinstance(user, dict):
        raise UpstreamError(REPORT_ID, f"user {login!r} not found")
    return user


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


async def fetch_contributions(client: GitHubClient, login: str, from_year: int, now: datetime) -> ContributionTotals:
    acc = WindowAccumulator()
    for window in year_windows(from_year, now):
        start, end = window
        data = await client.query(CONTRIBUTIONS_QUERY, {"login": login, "from": _iso(start), "to": _iso(end)})
        acc.add(window, _user(data, login).get("contributionsCollection") or {})
    logger.debug("Summed %d contribution windows for %s", acc.windows, login)
    return acc.finalize()


async def fetch_repositories(client: GitHubClient, login: str, page_size: int = PAGE_SIZE) -> RepositoryTotals:
    acc = RepositoryAccumulator()
    cursor: Optional[str] = None
    pages = 0
    while True:
        data = await client.query(REPOSITORIES_QUERY, {"login": login, "cursor": cursor, "first": page_size})
        page = _user(data, login).get("repositories") or {}
        for node in page.get("nodes") or []:
            if node is not None:
                acc.add(node)
        pages += 1

        info = page.get("pageInfo") or {}
        if not info.get("hasNextPage"):
            break
        cursor = info.get("endCursor")
        if not cursor:
            raise UpstreamError(REPORT_ID, "hasNextPage is set but endCursor is missing")
    totals = acc.finalize()
    logger.debug("Read %d repository pages for %s (%d non-fork)", pages, login, totals.repositories_counted)
    return totals


def mock_github_metrics(from_year: int) -> GitHubMetrics:
    """Fixed sample used when USE_MOCK_DATA is on, so cards render without credentials."""
    return GitHubMetrics(
        login="octocat",
        followers=128,
        repos_total=42,
        stars_total=187,
        from_year=from_year,
        contributions=ContributionTotals(commits=2315, pull_requests=164, issues=58, reviews=97),
        languages={
            "Python": 1_843_221,
            "TypeScript": 912_004,
            "Go": 388_190,
            "Shell": 61_530,
            "Dockerfile": 9_812,
            "HTML": 4_100,
        },
    )


async def fetch_github_metrics(
    settings: AppSettings,
    now: Optional[datetime] = None,
    client: Optional[GitHubClient] = None,
) -> GitHubMetrics:
    if settings.use_mock_data:
        return mock_github_metrics(settings.from_year)
    if not settings.github_token:
        raise ConfigurationError("GH_TOKEN (or GITHUB_TOKEN) is not set")
    if not settings.github_username:
        raise ConfigurationError("GH_USERNAME is not set")

    login = settings.github_username
    now = now or datetime.now(timezone.utc)
    owns_client = client is None
    client = client or GitHubClient.from_settings(settings)
    try:
        user = _user(await client.query(USER_QUERY, {"login": login}), login)
        contributions = await fetch_contributions(client, login, settings.from_year, now)
        repos = await fetch_repositories(client, login)
    finally:
        if owns_client:
            await client.aclose()

    logger.info("Fetched GitHub metrics for %s since %d", login, settings.from_year)
    return GitHubMetrics(
        login=user.get("login") or login,
        followers=(user.get("followers") or {}).get("totalCount"),
        repos_total=(user.get("repositories") or {}).get("totalCount"),
        stars_total=repos.stars_total,
        from_year=settings.from_year,
        contributions=contributions,
        languages=repos.languages,
    )


def _range_subtitle(ctx: CardContext, m: GitHubMetrics) -> str:
    return f"{ctx.updated_label} • All-time (since {m.from_year}) • Includes private repositories"


def _contributions_text(m: GitHubMetrics) -> str:
    return f"Total: {fmt_number(m.contributions.total)} contributions"


class GitHubStatsCard(BaseCard[GitHubMetrics]):
    card_id = "github-stats"
    report_id = REPORT_ID
    kind = "grid"
    theme = GITHUB_THEME
    title = "📊 GitHub • Stats"

    @classmethod
    def items(cls, m: GitHubMetrics) -> List[GridItem]:
        since = f"since {m.from_year}"
        c = m.contributions
        return [
            GridItem(label="Repositories (Total)", value=fmt_number(m.repos_total)),
            GridItem(label="Stars (Total)", value=fmt_number(m.stars_total)),
            GridItem(label="Followers", value=fmt_number(m.followers)),
            GridItem(label=f"Commits ({since})", value=fmt_number(c.commits)),
            GridItem(label=f"Pull Requests ({since})", value=fmt_number(c.pull_requests)),
            GridItem(label=f"Issues ({since})", value=fmt_number(c.issues)),
        ]

    @classmethod
    def build(cls, m: GitHubMetrics, ctx: CardContext) -> GridCardSpec:
        grade = compute_grade(grade_signals(m.contributions, m.stars_total, m.repos_total))
        return GridCardSpec(
            title=cls.title,
            subtitle_left=_range_subtitle(ctx, m),
            total_text=_contributions_text(m),
            top_text=f"Top: {pick_top_activity(m.contributions)}",
            items=tuple(cls.items(m)),
            grade=grade,
        )


class GitHubActivityCard(BaseCard[GitHubMetrics]):
    card_id = "github-activity"
    report_id = REPORT_ID
    kind = "bars"
    theme = GITHUB_THEME
    title = "📈 GitHub • Activity"

    @classmethod
    def build(cls, m: GitHubMetrics, ctx: CardContext) -> BarsCardSpec:
        return BarsCardSpec(
            title=cls.title,
            subtitle_left=_range_subtitle(ctx, m),
            total_text=_contributions_text(m),
            top_text=f"Top: {pick_top_activity(m.contributions)}",
            rows=tuple(activity_rows(m.contributions)),
        )


LANGUAGE_DENOMINATOR = Denominator.ALL


def _languages_total(total: int, shown: int) -> str:
    if total > shown:
        return f"Total: {fmt_number(total)} langs (top {shown} shown)"
    return f"Total: {fmt_number(total)} langs"


class GitHubLanguagesCard(BaseCard[GitHubMetrics]):
    card_id = "github-langs"
    report_id = REPORT_ID
    kind = "bars"
    theme = GITHUB_THEME
    title = "💻 GitHub • Languages"

    @classmethod
    def build(cls, m: GitHubMetrics, ctx: CardContext) -> BarsCardSpec:
        # Closed set with no "other" bucket: shares are of every language, shown or not.
        rows = derive_rows(m.languages, human_bytes, denominator=LANGUAGE_DENOMINATOR)
        return BarsCardSpec(
            title=cls.title,
            subtitle_left=f"{ctx.updated_label} • Based on repository size (public + private)",
            total_text=_languages_total(len(m.languages), len(rows)),
            top_text=f"Top: {top_row_label(rows)}",
            rows=tuple(rows),
        )
