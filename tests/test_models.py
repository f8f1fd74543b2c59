import pytest
from pydantic import ValidationError

from errors import InvalidInputError
from models import (
    ContributionTotals,
    Grade,
    MetricRow,
    RepositoryNode,
    TimeEntry,
    WakaTimeMetrics,
    parse_model,
)


def test_missing_counts_default_to_zero():
    c = ContributionTotals(commits=None, pull_requests=float("nan"), issues=3)
    assert (c.commits, c.pull_requests, c.issues, c.reviews) == (0, 0, 3, 0)
    assert c.total == 3


def test_row_percent_never_nan():
    assert MetricRow(name="x", value_text="1", percent=float("nan")).percent == 0.0


def test_models_are_frozen():
    row = MetricRow(name="x", value_text="1", percent=1.0)
    with pytest.raises(ValidationError):
        row.name = "y"


def test_grade_bounds():
    with pytest.raises(ValidationError):
        Grade(score=1.5, pct=100, letter="S")
    with pytest.raises(ValidationError):
        Grade(score=0.5, pct=50, letter="E")


@pytest.mark.parametrize("pct,letter", [(90, "D"), (84, "S"), (55, "C"), (39, "C")])
def test_grade_letter_must_follow_pct(pct, letter):
    with pytest.raises(ValidationError, match="does not match pct"):
        Grade(score=pct / 100, pct=pct, letter=letter)


def test_grade_letter_at_boundaries():
    assert Grade(score=0.85, pct=85, letter="S").letter == "S"
    assert Grade(score=0.4, pct=40, letter="C").letter == "C"


def test_repository_node_reads_graphql_edges():
    node = RepositoryNode.model_validate({
        "isFork": False,
        "stargazerCount": 4,
        "languages": {"edges": [{"size": 10, "node": {"name": "Go"}}, {"size": 5, "node": None}]},
    })
    assert node.stargazer_count == 4
    assert node.language_sizes == [("Go", 10)]


def test_tracked_seconds_falls_back_to_total():
    metrics = WakaTimeMetrics(editors=(TimeEntry(name="Vim", total_seconds=60),), total_seconds=600)
    assert metrics.tracked_seconds == 600


def test_parse_model_wraps_validation_errors():
    with pytest.raises(InvalidInputError, match="RepositoryNode"):
        parse_model(RepositoryNode, {"stargazerCount": "many"})
    with pytest.raises(ValueError):
        parse_model(TimeEntry, {})
