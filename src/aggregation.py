# src/aggregation.py
"""
Turns windowed, paginated upstream results into card-ready values.

Nothing in here performs I/O: the report fetchers feed already-resolved
payloads in, and get immutable models (totals, rows, grades) back.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from dateutil.relativedelta import relativedelta

from errors import InvalidInputError
from formatting import fmt_number, round_half_up
from models import (
    ContributionTotals,
    Grade,
    MetricRow,
    RepositoryNode,
    RepositoryTotals,
    grade_letter,
    parse_model,
)

MAX_ROWS = 10

Window = Tuple[datetime, datetime]
Weights = Union[Mapping[str, float], Iterable[Tuple[str, float]]]

# GraphQL contributionsCollection field -> ContributionTotals field
SIGNAL_FIELDS: Dict[str, str] = {
    "totalCommitContributions": "commits",
    "totalPullRequestContributions": "pull_requests",
    "totalIssueContributions": "issues",
    "totalPullRequestReviewContributions": "reviews",
}

# Soft caps: a signal at its target contributes its full weight.
DEFAULT_TARGETS: Dict[str, float] = {
    "commits": 4000,
    "prs": 200,
    "issues": 200,
    "reviews": 250,
    "stars": 300,
    "repos": 60,
}

DEFAULT_WEIGHTS: Dict[str, float] = {
    "commits": 0.35,
    "prs": 0.20,
    "issues": 0.10,
    "reviews": 0.10,
    "stars": 0.15,
    "repos": 0.10,
}

ACTIVITY_ROWS: Tuple[Tuple[str, str, str], ...] = (
    # (row label, short label, ContributionTotals field)
    ("Commits", "Commits", "commits"),
    ("Pull Requests", "PRs", "pull_requests"),
    ("Issues", "Issues", "issues"),
    ("Reviews", "Reviews", "reviews"),
)

NO_TOP_ENTRY = "—"


def _non_negative(value: Any) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(v) or v < 0:
        return 0.0
    return v


def _finite_or_zero(value: Any) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    return v if math.isfinite(v) else 0.0


# ---------------------------------------------------------------------------
# Time windows
# ---------------------------------------------------------------------------


def year_windows(from_year: int, now: datetime) -> List[Window]:
    """
    Split ``[from_year-01-01T00:00:00Z, now]`` into consecutive year-long windows.

    The last window is cut at ``now``. Windows share their boundaries, never
    overlap and leave no gaps. A naive ``now`` is read as UTC.
    """
    now = now.replace(tzinfo=timezone.utc) if now.tzinfo is None else now.astimezone(timezone.utc)
    start = datetime(from_year, 1, 1, tzinfo=timezone.utc)
    if start >= now:
        raise InvalidInputError(f"start year {from_year} is not before {now.isoformat()}")

    windows: List[Window] = []
    while start < now:
        end = min(start + relativedelta(years=1), now)
        windows.append((start, end))
        start = end
    return windows


class WindowAccumulator:
    """Sums contribution counts across time windows, one ``add`` per window."""

    def __init__(self) -> None:
        self._totals: Dict[str, int] = {name: 0 for name in SIGNAL_FIELDS.values()}
        self._seen: Set[Window] = set()

    @property
    def windows(self) -> int:
        return len(self._seen)

    def add(self, window: Window, counts: Mapping[str, Any]) -> None:
        if not isinstance(counts, Mapping):
            raise InvalidInputError(f"window counts must be a mapping, got {type(counts).__name__}")
        if window in self._seen:
            raise InvalidInputError(f"window {window[0].isoformat()} counted twice")
        self._seen.add(window)
        for api_field, name in SIGNAL_FIELDS.items():
            raw = counts.get(api_field, counts.get(name))
            self._totals[name] += int(_non_negative(raw))

    def finalize(self) -> ContributionTotals:
        return ContributionTotals(**self._totals)


# ---------------------------------------------------------------------------
# Paginated repositories
# ---------------------------------------------------------------------------


class RepositoryAccumulator:
    """Folds repository nodes into a star total and a language -> bytes map. Forks are skipped."""

    def __init__(self) -> None:
        self._stars = 0
        self._counted = 0
        self._languages: Dict[str, int] = {}

    def add(self, node: Union[RepositoryNode, Mapping[str, Any]]) -> bool:
        if not isinstance(node, RepositoryNode):
            node = parse_model(RepositoryNode, node)
        if node.is_fork:
            return False
        self._counted += 1
        self._stars += node.stargazer_count
        for name, size in node.language_sizes:
            self._languages[name] = self._languages.get(name, 0) + size
        return True

    def finalize(self) -> RepositoryTotals:
        return RepositoryTotals(
            stars_total=self._stars,
            repositories_counted=self._counted,
            languages=dict(self._languages),
        )


def aggregate_repository_pages(
    pages: Iterable[Iterable[Union[RepositoryNode, Mapping[str, Any]]]],
) -> RepositoryTotals:
    acc = RepositoryAccumulator()
    for page in pages:
        for node in page:
            acc.add(node)
    return acc.finalize()


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


class Denominator(str, Enum):
    """What a row percentage is a share of."""

    # Sum of the rows actually shown; for sources that already carry an "Other" bucket.
    SHOWN = "shown"
    # Sum of every input entry, including the ones cut by the row limit; for closed sets.
    ALL = "all"


def percent_of(part: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return (part / total) * 100.0


def derive_rows(
    weights: Weights,
    value_text: Callable[[float], str],
    *,
    limit: int = MAX_ROWS,
    denominator: Denominator = Denominator.SHOWN,
) -> List[MetricRow]:
    """
    Rank ``weights`` descending (ties keep input order) and keep at most ``limit`` rows.

    Entries repeating a name are merged so names stay unique within a card.
    Negative or non-finite weights count as 0. A zero total gives 0% rows.
    """
    items = weights.items() if isinstance(weights, Mapping) else weights
    merged: Dict[str, float] = {}
    for name, weight in items:
        key = str(name)
        merged[key] = merged.get(key, 0.0) + _non_negative(weight)

    ranked = sorted(merged.items(), key=lambda kv: kv[1], reverse=True)
    shown = ranked[: max(0, limit)]
    basis = shown if denominator is Denominator.SHOWN else ranked
    total = sum(weight for _, weight in basis)

    return [
        MetricRow(name=name, value_text=value_text(weight), percent=percent_of(weight, total))
        for name, weight in shown
    ]


def activity_rows(contributions: ContributionTotals) -> List[MetricRow]:
    total = contributions.total
    rows = []
    for label, _short, field in ACTIVITY_ROWS:
        value = getattr(contributions, field)
        rows.append(MetricRow(name=label, value_text=fmt_number(value), percent=percent_of(value, total)))
    return rows


def pick_top_activity(contributions: ContributionTotals) -> str:
    best_label, best_value = ACTIVITY_ROWS[0][1], -1
    for _label, short, field in ACTIVITY_ROWS:
        value = getattr(contributions, field)
        if value > best_value:
            best_label, best_value = short, value
    return f"{best_label}: {fmt_number(best_value)}"


def top_row_label(rows: Sequence[MetricRow]) -> str:
    if not rows:
        return NO_TOP_ENTRY
    top = rows[0]
    return f"{top.name} ({top.percent:.2f}%)"


# ---------------------------------------------------------------------------
# Grade
# ---------------------------------------------------------------------------


def normalize_signal(value: Any, target: Any) -> float:
    """``min(1, log1p(value) / log1p(target))`` with a zero target contributing nothing."""
    t = _non_negative(target)
    if t == 0:
        return 0.0
    return min(1.0, math.log1p(_non_negative(value)) / math.log1p(t))


def grade_signals(contributions: ContributionTotals, stars_total: int, repos_total: int) -> Dict[str, float]:
    return {
        "commits": contributions.commits,
        "prs": contributions.pull_requests,
        "issues": contributions.issues,
        "reviews": contributions.reviews,
        "stars": stars_total,
        "repos": repos_total,
    }


def compute_grade(
    signals: Mapping[str, Any],
    targets: Optional[Mapping[str, Any]] = None,
    weights: Optional[Mapping[str, Any]] = None,
) -> Grade:
    """
    Weighted, log-damped composite of ``signals``.

    Signals missing from ``signals`` count as 0; weights that are not finite
    count as 0. ``pct`` rounds half up, and the letter is a step function of it.
    """
    targets = DEFAULT_TARGETS if targets is None else targets
    weights = DEFAULT_WEIGHTS if weights is None else weights

    score = 0.0
    for name, weight in weights.items():
        score += _finite_or_zero(weight) * normalize_signal(signals.get(name, 0), targets.get(name, 0))
    score = min(1.0, max(0.0, score))

    pct = min(100, max(0, round_half_up(score * 100)))
    return Grade(score=score, pct=pct, letter=grade_letter(pct))
