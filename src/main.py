# src/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, HTTPException

from settings import AppSettings, get_settings
from cards import ALL_CARDS
from refresh import ReportCache, load_report
from reports.base import CardContext


settings = get_settings()

LOG_LEVEL = (settings.log_level or "INFO").upper()
HOST = settings.host
PORT = int(settings.port)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        logger.info("Starting application...")
        for CardCls in ALL_CARDS:
            CardCls(app).as_route(app=app)
            logger.info("Registered card route: %s/%s", CardCls.route_prefix, CardCls.output_name())

        logger.info("Application startup complete")
        yield
    finally:
        app.state.reports.clear()
        logger.info("Application shutdown complete")


def create_app(app_settings: Optional[AppSettings] = None) -> FastAPI:
    s = app_settings or settings
    app = FastAPI(
        title="Profile Cards Server",
        version=s.app_version,
        lifespan=lifespan,
    )

    app.state.settings = s
    app.state.cache_ttl = s.cache_ttl_seconds
    app.state.reports = ReportCache(lambda report_id: load_report(report_id, s), s.cache_ttl_seconds)
    app.state.card_context = lambda: CardContext(updated_label=s.updated_label)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=s.cors_allow_origins or ["*"],
        allow_credentials=False,
        allow_methods=s.cors_allow_methods or ["GET"],
        allow_headers=s.cors_allow_headers or ["*"],
    )

    @app.get("/", response_class=JSONResponse)
    async def root():
        return JSONResponse({"ok": True, "service": s.app_name})

    @app.get("/health", response_class=JSONResponse)
    async def health():
        """Liveness only; upstream APIs are not contacted."""
        try:
            return JSONResponse({"ok": True, "mock": s.use_mock_data})
        except Exception as exc:
            logger.exception("Health check failed: %s", exc)
            raise HTTPException(status_code=500, detail="health check failed")

    @app.get("/cards", response_class=JSONResponse)
    async def catalog():
        return JSONResponse({"cards": [card.describe() for card in ALL_CARDS]})

    return app


app = create_app()


if __name__ == "__main__":
    logger.info("Starting %s on %s:%d", app.title, HOST, PORT)
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())
