import pytest

from settings import AppSettings

_ENV_KEYS = (
    "GH_TOKEN",
    "GITHUB_TOKEN",
    "GH_USERNAME",
    "WAKATIME_API_KEY",
    "USE_MOCK_DATA",
    "FROM_YEAR",
    "OUT_DIR",
    "LOG_LEVEL",
    "CORS_ALLOW_ORIGINS",
    "CORS_ALLOW_METHODS",
    "CORS_ALLOW_HEADERS",
    "REFRESH_INTERVAL_SECONDS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_settings():
    def _make(**overrides) -> AppSettings:
        return AppSettings(_env_file=None, **overrides)

    return _make


@pytest.fixture
def mock_settings(make_settings, tmp_path):
    return make_settings(use_mock_data=True, out_dir=str(tmp_path / "assets"), from_year=2021)
