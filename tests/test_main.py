"""Tests for the FastAPI server that serves cards on demand."""

import pytest
from fastapi.testclient import TestClient

from errors import UpstreamError
from main import create_app
from refresh import ReportCache, load_report


@pytest.fixture
def client(mock_settings):
    with TestClient(create_app(mock_settings)) as c:
        yield c


class TestServiceRoutes:
    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert r.json()["ok"] is True

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"ok": True, "mock": True}

    def test_catalog(self, client):
        cards = client.get("/cards").json()["cards"]
        assert [c["card_id"] for c in cards] == [
            "github-stats",
            "github-activity",
            "github-langs",
            "wakatime-langs",
            "wakatime-editors",
            "wakatime-os",
        ]
        assert cards[0]["path"] == "/cards/github-stats.svg"
        assert cards[0]["kind"] == "grid"


class TestCardRoutes:
    @pytest.mark.parametrize("card_id", ["github-stats", "github-langs", "wakatime-os"])
    def test_serves_svg(self, client, card_id):
        r = client.get(f"/cards/{card_id}.svg")
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("image/svg+xml")
        assert r.headers["cache-control"] == "max-age=3600"
        assert r.text.startswith("<?xml")

    def test_unknown_card_is_404(self, client):
        assert client.get("/cards/github-pie.svg").status_code == 404

    def test_missing_credentials_is_503(self, make_settings):
        app = create_app(make_settings(use_mock_data=False))
        with TestClient(app) as c:
            r = c.get("/cards/github-stats.svg")
        assert r.status_code == 503
        assert "GH_TOKEN" in r.json()["detail"]

    def test_upstream_failure_is_502(self, mock_settings):
        async def failing(report_id):
            raise UpstreamError(report_id, "HTTP 500", status_code=500)

        app = create_app(mock_settings)
        app.state.reports = ReportCache(failing, ttl_seconds=60)
        with TestClient(app) as c:
            r = c.get("/cards/wakatime-langs.svg")
        assert r.status_code == 502
        assert r.json()["detail"] == "wakatime: HTTP 500"

    def test_reports_are_cached_between_requests(self, mock_settings):
        calls = []

        async def loader(report_id):
            calls.append(report_id)
            return await load_report(report_id, mock_settings)

        app = create_app(mock_settings)
        app.state.reports = ReportCache(loader, ttl_seconds=60)
        with TestClient(app) as c:
            c.get("/cards/github-stats.svg")
            c.get("/cards/github-activity.svg")
            c.get("/cards/github-langs.svg")
        assert calls == ["github"]
