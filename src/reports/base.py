# src/reports/base.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, ClassVar, Dict, Generic, Optional, TypeVar, Union

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response

from errors import CardsError, ConfigurationError, UpstreamError
from models import BarsCardSpec, GridCardSpec, Theme
from render import render_card

logger = logging.getLogger(__name__)

MetricsT = TypeVar("MetricsT")
SpecT = Union[BarsCardSpec, GridCardSpec]


@dataclass(frozen=True)
class CardContext:
    """Caller-supplied header text; cards never read clocks or settings themselves."""

    updated_label: str = "Updated hourly"


class BaseCard(ABC, Generic[MetricsT]):
    """
    One card of the catalog.

    Subclasses describe the card (id, report it is built from, layout kind,
    theme) and implement ``build``. Rendering and HTTP exposure are shared.
    """

    card_id: ClassVar[str]
    report_id: ClassVar[str]
    kind: ClassVar[str]
    theme: ClassVar[Theme]
    title: ClassVar[str]
    route_prefix: ClassVar[str] = "/cards"
    media_type: ClassVar[str] = "image/svg+xml"

    def __init__(self, app: Optional[FastAPI] = None) -> None:
        self.app = app

    @classmethod
    def output_name(cls) -> str:
        return f"{cls.card_id}.svg"

    @classmethod
    @abstractmethod
    def build(cls, metrics: MetricsT, ctx: CardContext) -> SpecT:
        """Turn one report's metrics into the card's render input."""

    @classmethod
    def render(cls, metrics: MetricsT, ctx: CardContext) -> str:
        spec = cls.build(metrics, ctx)
        if spec.kind != cls.kind:
            raise CardsError(f"{cls.card_id} built a {spec.kind!r} spec, expected {cls.kind!r}")
        return render_card(spec, cls.theme)

    @classmethod
    def describe(cls) -> Dict[str, Any]:
        return {
            "card_id": cls.card_id,
            "report_id": cls.report_id,
            "kind": cls.kind,
            "theme": cls.theme.name,
            "title": cls.title,
            "path": f"{cls.route_prefix}/{cls.output_name()}",
        }

    def as_route(
        self,
        app: FastAPI,
        load_report: Optional[Callable[[str], Awaitable[Any]]] = None,
        ctx_factory: Optional[Callable[[], CardContext]] = None,
    ) -> None:
        """Register ``GET {route_prefix}/{card_id}.svg`` on ``app``."""
        card = type(self)
        loader = load_report or (lambda report_id: app.state.reports.get(report_id))
        make_ctx = ctx_factory or (lambda: app.state.card_context())

        async def endpoint() -> Response:
            try:
                metrics = await loader(card.report_id)
                svg = card.render(metrics, make_ctx())
            except ConfigurationError as exc:
                logger.warning("Card %s unavailable: %s", card.card_id, exc)
                raise HTTPException(status_code=503, detail=str(exc)) from exc
            except UpstreamError as exc:
                logger.error("Card %s upstream failure: %s", card.card_id, exc)
                raise HTTPException(status_code=502, detail=str(exc)) from exc
            headers = {"Cache-Control": f"max-age={getattr(app.state, 'cache_ttl', 0)}"}
            return Response(content=svg, media_type=card.media_type, headers=headers)

        app.add_api_route(
            f"{card.route_prefix}/{card.output_name()}",
            endpoint,
            methods=["GET"],
            name=card.card_id,
            response_class=Response,
            summary=card.title,
        )
