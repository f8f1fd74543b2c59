"""Tests for the profile-cards command line entry point."""

from datetime import datetime, timezone

import pytest

from generators.generate_cards import main, parse_args


@pytest.fixture(autouse=True)
def in_tmp(monkeypatch, tmp_path):
    # keep a developer's .env out of the run
    monkeypatch.chdir(tmp_path)


class TestArgs:
    def test_repeatable_filters(self):
        args = parse_args(["--card", "github-stats", "--card", "wakatime-os", "--report", "github"])
        assert args.cards == ["github-stats", "wakatime-os"]
        assert args.reports == ["github"]

    def test_now_is_parsed_as_utc(self):
        args = parse_args(["--now", "2024-03-01T12:00:00"])
        assert args.now == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_bad_now_exits(self):
        with pytest.raises(SystemExit) as exc:
            parse_args(["--now", "yesterday-ish"])
        assert exc.value.code == 2

    def test_unknown_report_choice_exits(self):
        with pytest.raises(SystemExit):
            parse_args(["--report", "gitlab"])


class TestMain:
    def test_mock_run_writes_all_cards(self, tmp_path, capsys):
        out = tmp_path / "out"
        main(["--mock", "--out-dir", str(out)])
        assert sorted(p.name for p in out.iterdir()) == sorted([
            "github-stats.svg",
            "github-activity.svg",
            "github-langs.svg",
            "wakatime-langs.svg",
            "wakatime-editors.svg",
            "wakatime-os.svg",
        ])
        assert "Wrote github-stats.svg" in capsys.readouterr().out

    def test_single_card(self, tmp_path):
        out = tmp_path / "out"
        main(["--mock", "--out-dir", str(out), "--card", "wakatime-editors"])
        assert [p.name for p in out.iterdir()] == ["wakatime-editors.svg"]

    def test_unknown_card_exits_1(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--mock", "--out-dir", str(tmp_path), "--card", "github-pie"])
        assert exc.value.code == 1
        assert "Error: unknown card(s): github-pie" in capsys.readouterr().err

    def test_missing_credentials_exit_1_without_output(self, tmp_path, capsys):
        out = tmp_path / "out"
        with pytest.raises(SystemExit) as exc:
            main(["--out-dir", str(out), "--report", "github"])
        assert exc.value.code == 1
        assert "GH_TOKEN" in capsys.readouterr().err
        assert not out.exists()

    def test_env_file(self, tmp_path, monkeypatch):
        # registered so the values load_dotenv writes are removed afterwards
        monkeypatch.setenv("OUT_DIR", "unused")
        monkeypatch.setenv("USE_MOCK_DATA", "false")
        env = tmp_path / "cards.env"
        env.write_text(f"USE_MOCK_DATA=true\nOUT_DIR={tmp_path / 'from-env'}\n", encoding="utf-8")
        main(["--env-file", str(env), "--report", "wakatime"])
        assert (tmp_path / "from-env" / "wakatime-langs.svg").exists()
