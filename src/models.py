# src/models.py
from __future__ import annotations

import math
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from errors import InvalidInputError


def _coerce_count(value: object) -> object:
    """Missing, boolean or non-finite numbers become 0 instead of leaking NaN."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return value


GRADE_THRESHOLDS: Tuple[Tuple[int, str], ...] = ((85, "S"), (70, "A"), (55, "B"), (40, "C"))


def grade_letter(pct: int) -> str:
    for threshold, letter in GRADE_THRESHOLDS:
        if pct >= threshold:
            return letter
    return "D"


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


# ---------------------------------------------------------------------------
# Render input
# ---------------------------------------------------------------------------


class MetricRow(FrozenModel):
    name: str
    value_text: str
    percent: float = 0.0

    @field_validator("percent", mode="before")
    @classmethod
    def _finite_percent(cls, v: object) -> object:
        return _coerce_count(v)


class GridItem(FrozenModel):
    label: str
    value: str


class Grade(FrozenModel):
    score: float = Field(ge=0.0, le=1.0)
    pct: int = Field(ge=0, le=100)
    letter: Literal["D", "C", "B", "A", "S"]

    @model_validator(mode="after")
    def _letter_matches_pct(self) -> "Grade":
        expected = grade_letter(self.pct)
        if self.letter != expected:
            raise ValueError(f"letter {self.letter!r} does not match pct {self.pct} (expected {expected!r})")
        return self


class Theme(FrozenModel):
    name: str
    bg1: str
    bg2: str
    title: str
    text: str
    muted: str
    bar_bg: str
    stroke: str
    bars: Tuple[str, ...] = Field(min_length=1)
    glow_opacity: float = 0.06
    # Rows named "Other" are drawn in this colour, slightly transparent.
    other_color: Optional[str] = None
    # Rows under 1% get a softer name colour.
    dim_tiny_rows: bool = False
    tiny_text: str = "#cbd5e1"


class _CardHeader(FrozenModel):
    title: str
    subtitle_left: str = ""
    total_text: str = ""
    top_text: str = ""


class BarsCardSpec(_CardHeader):
    kind: Literal["bars"] = "bars"
    rows: Tuple[MetricRow, ...] = ()


class GridCardSpec(_CardHeader):
    kind: Literal["grid"] = "grid"
    items: Tuple[GridItem, ...] = ()
    grade: Optional[Grade] = None


CardSpec = Annotated[Union[BarsCardSpec, GridCardSpec], Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Raw metrics handed over by the report fetchers
# ---------------------------------------------------------------------------


class ContributionTotals(FrozenModel):
    commits: int = 0
    pull_requests: int = 0
    issues: int = 0
    reviews: int = 0

    @field_validator("commits", "pull_requests", "issues", "reviews", mode="before")
    @classmethod
    def _counts(cls, v: object) -> object:
        return _coerce_count(v)

    @property
    def total(self) -> int:
        return self.commits + self.pull_requests + self.issues + self.reviews


class LanguageEdge(FrozenModel):
    size: int = 0
    name: Optional[str] = None

    @field_validator("size", mode="before")
    @classmethod
    def _size(cls, v: object) -> object:
        return _coerce_count(v)


class RepositoryNode(FrozenModel):
    """One ``repositories.nodes[]`` entry of the GitHub GraphQL response."""

    is_fork: bool = Field(default=False, alias="isFork")
    stargazer_count: int = Field(default=0, alias="stargazerCount")
    languages: Tuple[LanguageEdge, ...] = ()

    @field_validator("is_fork", mode="before")
    @classmethod
    def _fork(cls, v: object) -> object:
        return bool(v)

    @field_validator("stargazer_count", mode="before")
    @classmethod
    def _stars(cls, v: object) -> object:
        return _coerce_count(v)

    @field_validator("languages", mode="before")
    @classmethod
    def _edges(cls, v: object) -> object:
        # {"edges": [{"size": 10, "node": {"name": "Go"}}]}
        if v is None:
            return ()
        if isinstance(v, dict):
            v = v.get("edges") or []
        edges = []
        for e in v:
            if isinstance(e, dict) and "node" in e:
                e = {"size": e.get("size"), "name": (e.get("node") or {}).get("name")}
            edges.append(e)
        return edges

    @property
    def language_sizes(self) -> List[Tuple[str, int]]:
        return [(edge.name, edge.size) for edge in self.languages if edge.name]


class RepositoryTotals(FrozenModel):
    stars_total: int = 0
    repositories_counted: int = 0
    languages: Dict[str, int] = Field(default_factory=dict)


class GitHubMetrics(FrozenModel):
    login: str
    followers: int = 0
    repos_total: int = 0
    stars_total: int = 0
    from_year: int
    contributions: ContributionTotals = Field(default_factory=ContributionTotals)
    languages: Dict[str, int] = Field(default_factory=dict)

    @field_validator("followers", "repos_total", "stars_total", mode="before")
    @classmethod
    def _counts(cls, v: object) -> object:
        return _coerce_count(v)


class TimeEntry(FrozenModel):
    name: str
    total_seconds: float = 0.0

    @field_validator("total_seconds", mode="before")
    @classmethod
    def _seconds(cls, v: object) -> object:
        return _coerce_count(v)


class WakaTimeMetrics(FrozenModel):
    languages: Tuple[TimeEntry, ...] = ()
    editors: Tuple[TimeEntry, ...] = ()
    operating_systems: Tuple[TimeEntry, ...] = ()
    total_seconds: float = 0.0

    @field_validator("languages", "editors", "operating_systems", mode="before")
    @classmethod
    def _entries(cls, v: object) -> object:
        return () if v is None else v

    @field_validator("total_seconds", mode="before")
    @classmethod
    def _seconds(cls, v: object) -> object:
        return _coerce_count(v)

    @property
    def tracked_seconds(self) -> float:
        """Language seconds (the service's 'Other' bucket included), else the reported total."""
        from_languages = sum(entry.total_seconds for entry in self.languages)
        return from_languages if from_languages > 0 else self.total_seconds


def parse_model(model_cls, payload: object):
    """Validate ``payload`` into ``model_cls`` and surface failures as InvalidInputError."""
    try:
        return model_cls.model_validate(payload)
    except ValidationError as exc:
        raise InvalidInputError(f"invalid {model_cls.__name__}: {exc}") from exc
