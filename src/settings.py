# src/settings.py
from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AppSettings(BaseSettings):
    # Application
    app_name: str = Field(default="profile-cards")
    app_version: str = Field(default="0.1.0")
    log_level: str = Field(default="INFO")

    # GitHub
    github_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GH_TOKEN", "GITHUB_TOKEN", "github_token")
    )
    github_username: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GH_USERNAME", "github_username")
    )
    github_api_url: str = Field(default="https://api.github.com/graphql")
    # Contribution history is summed from January 1st of this year onwards
    from_year: int = Field(default=2021)

    # WakaTime
    wakatime_api_key: Optional[str] = Field(default=None)
    wakatime_api_url: str = Field(default="https://wakatime.com/api/v1/users/current/stats/all_time")

    # Upstream HTTP behaviour
    http_timeout: float = Field(default=30.0, gt=0)
    http_retries: int = Field(default=2, ge=0)

    # Output
    out_dir: str = Field(default="assets")
    updated_label: str = Field(default="Updated hourly")
    use_mock_data: bool = Field(default=False)

    # Serving
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    cache_ttl_seconds: int = Field(default=3600, ge=0)
    cors_allow_origins: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])
    cors_allow_methods: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["GET"])
    cors_allow_headers: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])

    # Celery
    celery_broker_url: Optional[str] = Field(default=None)
    celery_result_backend: Optional[str] = Field(default=None)
    celery_task_default_queue: str = Field(default="default")
    # Beat interval for tasks.refresh_cards, 0 disables the schedule
    refresh_interval_seconds: int = Field(default=3600, ge=0)

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        validate_default=True,
        extra="ignore",
    )

    @staticmethod
    def _parse_list(value: object) -> List[str]:
        """
        Accept JSON array, '*' literal, or comma-separated string.
        Always returns a list of stripped strings. Empty parts are discarded.
        """
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(v).strip() for v in value if str(v).strip()]
        if isinstance(value, str):
            s = value.strip()
            if s == "*":
                return ["*"]
            if s.startswith("[") and s.endswith("]"):
                try:
                    parsed = json.loads(s)
                    if not isinstance(parsed, list):
                        raise ValueError("Expected JSON array")
                    return [str(v).strip() for v in parsed if str(v).strip()]
                except json.JSONDecodeError as e:
                    raise ValueError(f"Invalid JSON array: {e}") from e
            return [part.strip() for part in s.split(",") if part.strip()]
        raise TypeError(f"Unsupported list value type: {type(value).__name__}")

    @field_validator(
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        mode="before",
    )
    @classmethod
    def _lists_from_env(cls, v: object) -> List[str]:
        return cls._parse_list(v)

    @field_validator("log_level", mode="after")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        x = (v or "INFO").upper()
        valid = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}
        if x not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(valid)}")
        return x

    @field_validator("from_year", mode="after")
    @classmethod
    def _check_from_year(cls, v: int) -> int:
        # GitHub has no contribution data before its launch
        if v < 2008:
            raise ValueError("FROM_YEAR must be 2008 or later")
        return v

    @field_validator("github_token", "github_username", "wakatime_api_key", mode="before")
    @classmethod
    def _blank_is_missing(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()
