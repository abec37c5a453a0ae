import uuid

import httpx
import structlog
from celery import Celery
from celery.schedules import crontab
from prometheus_client import REGISTRY, Counter, push_to_gateway
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel

from forecasta.core.logging import configure_logging
from forecasta.db.session import make_engine
from forecasta.services.integrations.sync import list_due_integrations, sync_integration as run_integration_sync
from forecasta.services.monitoring.runner import (
    list_monitored_demo_ids,
    run_monitoring_for_tenant,
    send_alert_digests,
)
from worker_config import settings

configure_logging()
logger = structlog.get_logger("forecasta.worker")

celery_app = Celery(
    "forecasta_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)
celery_app.conf.update(
    worker_concurrency=settings.monitoring_concurrency,
    task_acks_late=True,
    timezone="UTC",
    beat_schedule={
        "monitoring-hourly": {
            "task": "run_monitoring",
            "schedule": crontab(minute=0),
            "args": ["hourly"],
        },
        "monitoring-daily": {
            "task": "run_monitoring",
            "schedule": crontab(minute=0, hour=8),
            "args": ["daily"],
        },
        "monitoring-weekly": {
            "task": "run_monitoring",
            "schedule": crontab(minute=0, hour=9, day_of_week="mon"),
            "args": ["weekly"],
        },
        "alert-digest-weekly": {
            "task": "send_alert_digests",
            "schedule": crontab(minute=30, hour=9, day_of_week="mon"),
            "args": ["weekly"],
        },
        "integrations-hourly": {
            "task": "sync_integrations",
            "schedule": crontab(minute=0),
            "args": ["hourly"],
        },
        "integrations-daily": {
            "task": "sync_integrations",
            "schedule": crontab(minute=0, hour=6),
            "args": ["daily"],
        },
    },
)

engine = make_engine(settings.database_url)

worker_tasks_total = Counter(
    "worker_tasks_total",
    "Worker task executions",
    ["task", "outcome"],
)


def _push_metrics():
    if not settings.pushgateway_url:
        return
    try:
        push_to_gateway(settings.pushgateway_url, job="forecasta-worker", registry=REGISTRY)
    except Exception as e:
        logger.debug("pushgateway_unavailable", error=str(e))


def _ensure_tables():
    if engine is None:
        raise RuntimeError("DATABASE_URL is not set")
    SQLModel.metadata.create_all(engine)


@celery_app.task(name="run_monitoring")
def run_monitoring(frequency: str):
    """Fan out one monitor_tenant task per monitored tenant."""
    _ensure_tables()
    with Session(engine) as session:
        demo_ids = list_monitored_demo_ids(session)

    for demo_id in demo_ids:
        celery_app.send_task("monitor_tenant", args=[demo_id, frequency])

    worker_tasks_total.labels(task="run_monitoring", outcome="ok").inc()
    logger.info("monitoring_fanout", frequency=frequency, tenants=len(demo_ids))
    _push_metrics()
    return {"frequency": frequency, "queued": len(demo_ids)}


@celery_app.task(
    name="monitor_tenant",
    bind=True,
    autoretry_for=(SQLAlchemyError,),
    retry_backoff=True,
    retry_jitter=True,
    max_retries=settings.monitoring_max_retries,
)
def monitor_tenant(self, demo_id: str, frequency: str):
    _ensure_tables()
    try:
        with Session(engine) as session:
            result = run_monitoring_for_tenant(session, demo_id, frequency)
    except SQLAlchemyError as e:
        if self.request.retries >= self.max_retries:
            logger.error("monitoring_retries_exhausted", demo_id=demo_id, frequency=frequency, error=str(e))
        worker_tasks_total.labels(task="monitor_tenant", outcome="error").inc()
        _push_metrics()
        raise

    worker_tasks_total.labels(task="monitor_tenant", outcome=result["status"]).inc()
    _push_metrics()
    return result


@celery_app.task(name="send_alert_digests")
def send_alert_digests_task(period: str = "weekly"):
    _ensure_tables()
    with Session(engine) as session:
        sent = send_alert_digests(session, period)

    worker_tasks_total.labels(task="send_alert_digests", outcome="ok").inc()
    _push_metrics()
    return {"period": period, "sent": len(sent)}


@celery_app.task(name="sync_integrations")
def sync_integrations(frequency: str):
    """Fan out one sync_integration task per integration due at this cadence."""
    _ensure_tables()
    with Session(engine) as session:
        integration_ids = list_due_integrations(session, frequency)

    for integration_id in integration_ids:
        celery_app.send_task("sync_integration", args=[str(integration_id)])

    worker_tasks_total.labels(task="sync_integrations", outcome="ok").inc()
    logger.info("integration_sync_fanout", frequency=frequency, integrations=len(integration_ids))
    _push_metrics()
    return {"frequency": frequency, "queued": len(integration_ids)}


@celery_app.task(
    name="sync_integration",
    bind=True,
    autoretry_for=(SQLAlchemyError, httpx.TransportError),
    retry_backoff=5,
    retry_jitter=True,
    max_retries=settings.integration_max_retries,
)
def sync_integration(self, integration_id: str, triggered_by: str = "scheduler"):
    _ensure_tables()
    try:
        with Session(engine) as session:
            result = run_integration_sync(session, uuid.UUID(integration_id), triggered_by=triggered_by)
    except (SQLAlchemyError, httpx.TransportError) as e:
        if self.request.retries >= self.max_retries:
            logger.error("integration_sync_retries_exhausted", integration_id=integration_id, error=str(e))
        worker_tasks_total.labels(task="sync_integration", outcome="error").inc()
        _push_metrics()
        raise

    worker_tasks_total.labels(task="sync_integration", outcome=result["status"]).inc()
    _push_metrics()
    return result
