"""Tests for render_all, the directory sink and the server-side report cache."""

import asyncio

import pytest

from cards import ALL_CARDS, CARDS_BY_ID, select_cards
from errors import UpstreamError
from refresh import DirectorySink, ReportCache, load_report, render_all, report_ids
from reports.base import BaseCard
from reports.github_cards import mock_github_metrics


class MemorySink:
    def __init__(self):
        self.documents = {}

    def write(self, name, document):
        self.documents[name] = document


class TestCatalog:
    def test_six_cards_with_distinct_outputs(self):
        names = [card.output_name() for card in ALL_CARDS]
        assert len(names) == 6
        assert len(set(names)) == 6

    def test_select_by_report(self):
        selected = select_cards(report_ids=["wakatime"])
        assert [c.card_id for c in selected] == ["wakatime-langs", "wakatime-editors", "wakatime-os"]

    def test_select_by_id_keeps_catalog_order(self):
        selected = select_cards(card_ids=["github-langs", "github-stats"])
        assert [c.card_id for c in selected] == ["github-stats", "github-langs"]

    def test_unknown_card(self):
        with pytest.raises(KeyError):
            select_cards(card_ids=["github-pie"])

    def test_report_ids_are_unique_in_order(self):
        assert report_ids(ALL_CARDS) == ["github", "wakatime"]

    def test_every_catalog_card_is_concrete(self):
        for card in ALL_CARDS:
            assert card().app is None

    def test_card_without_build_cannot_be_registered(self):
        class Incomplete(BaseCard):
            card_id = "incomplete"
            report_id = "github"
            kind = "bars"

        with pytest.raises(TypeError):
            Incomplete()


class TestRenderAll:
    def test_writes_every_card_to_the_directory(self, mock_settings, tmp_path):
        out_dir = tmp_path / "cards"
        written = asyncio.run(render_all(mock_settings, DirectorySink(out_dir)))
        assert written == [card.output_name() for card in ALL_CARDS]
        for name in written:
            text = (out_dir / name).read_text(encoding="utf-8")
            assert text.startswith("<?xml")

    def test_each_report_is_loaded_once(self, mock_settings):
        calls = []

        async def loader(report_id):
            calls.append(report_id)
            return await load_report(report_id, mock_settings)

        sink = MemorySink()
        asyncio.run(render_all(mock_settings, sink, loader=loader))
        assert calls == ["github", "wakatime"]
        assert len(sink.documents) == 6

    def test_failing_report_writes_nothing(self, mock_settings):
        async def loader(report_id):
            if report_id == "wakatime":
                raise UpstreamError("wakatime", "HTTP 500", status_code=500)
            return mock_github_metrics(2021)

        sink = MemorySink()
        with pytest.raises(UpstreamError):
            asyncio.run(render_all(mock_settings, sink, loader=loader))
        assert sink.documents == {}

    def test_subset_only_loads_its_report(self, mock_settings):
        calls = []

        async def loader(report_id):
            calls.append(report_id)
            return mock_github_metrics(2021)

        sink = MemorySink()
        asyncio.run(render_all(mock_settings, sink, cards=[CARDS_BY_ID["github-langs"]], loader=loader))
        assert calls == ["github"]
        assert list(sink.documents) == ["github-langs.svg"]

    def test_updated_label_reaches_the_cards(self, make_settings):
        settings = make_settings(use_mock_data=True, updated_label="Refreshed nightly")
        sink = MemorySink()
        asyncio.run(render_all(settings, sink, cards=[CARDS_BY_ID["wakatime-os"]]))
        assert "Refreshed nightly" in sink.documents["wakatime-os.svg"]

    def test_unknown_report(self, mock_settings):
        with pytest.raises(KeyError):
            asyncio.run(load_report("gitlab", mock_settings))


class TestReportCache:
    def _counting(self):
        calls = []

        async def loader(report_id):
            calls.append(report_id)
            await asyncio.sleep(0)
            return {"report": report_id, "n": len(calls)}

        return calls, loader

    def test_hits_within_ttl(self):
        calls, loader = self._counting()
        clock = [0.0]
        cache = ReportCache(loader, ttl_seconds=60, clock=lambda: clock[0])

        async def go():
            first = await cache.get("github")
            clock[0] = 59.0
            second = await cache.get("github")
            return first, second

        first, second = asyncio.run(go())
        assert first is second
        assert calls == ["github"]

    def test_expires_after_ttl(self):
        calls, loader = self._counting()
        clock = [0.0]
        cache = ReportCache(loader, ttl_seconds=60, clock=lambda: clock[0])

        async def go():
            await cache.get("github")
            clock[0] = 60.0
            return await cache.get("github")

        assert asyncio.run(go())["n"] == 2

    def test_concurrent_misses_share_one_fetch(self):
        calls, loader = self._counting()
        cache = ReportCache(loader, ttl_seconds=60)

        async def go():
            return await asyncio.gather(*(cache.get("wakatime") for _ in range(5)))

        results = asyncio.run(go())
        assert calls == ["wakatime"]
        assert all(r is results[0] for r in results)

    def test_failures_are_not_cached(self):
        attempts = []

        async def loader(report_id):
            attempts.append(report_id)
            if len(attempts) == 1:
                raise UpstreamError("github", "HTTP 502", status_code=502)
            return "ok"

        cache = ReportCache(loader, ttl_seconds=60)

        async def go():
            with pytest.raises(UpstreamError):
                await cache.get("github")
            return await cache.get("github")

        assert asyncio.run(go()) == "ok"
        assert len(attempts) == 2

    def test_clear(self):
        calls, loader = self._counting()
        cache = ReportCache(loader, ttl_seconds=60)

        async def go():
            await cache.get("github")
            cache.clear()
            await cache.get("github")

        asyncio.run(go())
        assert calls == ["github", "github"]
