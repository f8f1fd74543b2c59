# src/errors.py
from __future__ import annotations


class CardsError(Exception):
    """Base class for every failure raised while producing profile cards."""


class InvalidInputError(CardsError, ValueError):
    """Raw metrics or render input are structurally malformed."""


class ConfigurationError(CardsError):
    """A requested report is missing credentials or a target account."""


class UpstreamError(CardsError):
    """An external API answered with an error, an empty payload or not at all."""

    def __init__(self, service: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code
