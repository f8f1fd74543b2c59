from __future__ import annotations

import sys
import asyncio
import logging
from celery import Celery
from typing import Any, Dict, List


from settings import get_settings
from refresh import DirectorySink, render_all

s = get_settings()
logging.basicConfig(
    level=s.log_level.upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("celery")


def beat_schedule(settings) -> Dict[str, Dict[str, Any]]:
    if settings.refresh_interval_seconds <= 0:
        return {}
    return {
        "refresh-cards": {
            "task": "tasks.refresh_cards",
            "schedule": float(settings.refresh_interval_seconds),
        }
    }


def create_celery(settings) -> Celery:
    """
    Factory to create a configured Celery instance.

    Keeps config colocated and testable. No side effects beyond app construction.
    """
    app = Celery(
        main=settings.app_name,
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
    )
    app.conf.update(
        task_default_queue=settings.celery_task_default_queue,
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        worker_hijack_root_logger=False,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        broker_heartbeat=30,
        broker_connection_retry_on_startup=True,
        result_extended=True,
        timezone="UTC",
        worker_send_task_events=True,
        task_send_sent_event=True,
        beat_schedule=beat_schedule(settings),
        beat_scheduler="celery.beat:PersistentScheduler",
        beat_schedule_filename="celerybeat-schedule",
    )
    return app


celery_app: Celery = create_celery(s)


@celery_app.task(name="tasks.refresh_cards")
def refresh_cards(out_dir: str | None = None) -> Dict[str, Any]:
    """
    Fetch every report and rewrite all cards. Upstream failures propagate so
    the worker records the task as failed and the previous files stay in place.
    """
    target = out_dir or s.out_dir
    written: List[str] = asyncio.run(render_all(s, DirectorySink(target)))
    logger.info("Refreshed %d cards into %s", len(written), target)
    return {"ok": True, "out_dir": target, "written": written}


@celery_app.task(name="tasks.ping")
def ping(payload: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """
    Trivial health task to verify worker reachability and queue wiring.
    """
    return {"ok": True, "payload": payload or {}, "worker": s.app_name}
