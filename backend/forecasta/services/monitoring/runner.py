from __future__ import annotations

import hashlib
import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import structlog
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, select

from forecasta.core.config import settings
from forecasta.metrics.prometheus import (
    alerts_deduplicated_total,
    alerts_triggered_total,
    monitoring_runs_total,
)
from forecasta.models.activity import ActivityLog
from forecasta.models.alert import AlertConfig, ContractorAlert
from forecasta.models.demo import Demo
from forecasta.models.snapshot import SNAPSHOT_TYPES, MonitoringSnapshot
from forecasta.services.monitoring.defaults import ALERT_CATEGORY, CATEGORY_SNAPSHOT
from forecasta.services.monitoring.evaluator import EvaluationInput, evaluate_config
from forecasta.services.monitoring.gather import DataGatherer
from forecasta.services.notification import NotificationService

logger = structlog.get_logger(__name__)


def _now():
    return datetime.now(timezone.utc)


def period_bucket(frequency: str, now: datetime) -> str:
    if frequency == "hourly":
        return now.strftime("%Y-%m-%dT%H")
    if frequency == "weekly":
        year, week, _ = now.isocalendar()
        return f"{year}-W{week:02d}"
    return now.strftime("%Y-%m-%d")


def alert_dedup_key(demo_id: str, alert_type: str, bucket: str) -> str:
    blob = json.dumps({"demo_id": demo_id, "alert_type": alert_type, "period": bucket}, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()


def load_recent_snapshots(session: Session, demo_id: str, limit: int) -> dict[str, list[MonitoringSnapshot]]:
    out: dict[str, list[MonitoringSnapshot]] = {}
    for snapshot_type in SNAPSHOT_TYPES:
        rows = session.exec(
            select(MonitoringSnapshot)
            .where(MonitoringSnapshot.demo_id == demo_id)
            .where(MonitoringSnapshot.snapshot_type == snapshot_type)
            .order_by(MonitoringSnapshot.captured_at.desc())
            .limit(limit)
        ).all()
        if rows:
            out[snapshot_type] = list(rows)
    return out


def _insert_alert(session: Session, values: dict[str, Any]) -> bool:
    """Insert unless an alert with the same dedup_key exists. Returns True when inserted."""
    dialect = session.get_bind().dialect.name
    if dialect in ("postgresql", "sqlite"):
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(ContractorAlert).values(**values).on_conflict_do_nothing(index_elements=["dedup_key"])
        result = session.connection().execute(stmt)
        return result.rowcount == 1

    existing = session.exec(select(ContractorAlert.id).where(ContractorAlert.dedup_key == values["dedup_key"])).first()
    if existing:
        return False
    session.add(ContractorAlert(**values))
    session.flush()
    return True


def run_monitoring_for_tenant(
    session: Session,
    demo_id: str,
    frequency: str,
    gatherer: Optional[DataGatherer] = None,
    notifier: Optional[NotificationService] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    now = now or _now()
    log = logger.bind(demo_id=demo_id, frequency=frequency)
    result: dict[str, Any] = {
        "demo_id": demo_id,
        "frequency": frequency,
        "status": "skipped",
        "alerts_created": 0,
        "alerts_deduplicated": 0,
        "snapshots_saved": 0,
        "notifications": 0,
        "gather_errors": {},
    }

    configs = session.exec(
        select(AlertConfig)
        .where(AlertConfig.demo_id == demo_id)
        .where(AlertConfig.is_enabled == True)  # noqa: E712
        .where(AlertConfig.check_frequency == frequency)
        .order_by(AlertConfig.alert_type)
    ).all()
    if not configs:
        log.info("monitoring_no_configs")
        monitoring_runs_total.labels(frequency=frequency, outcome="skipped").inc()
        return result

    demo = session.get(Demo, demo_id)
    if not demo:
        log.warning("monitoring_demo_missing")
        monitoring_runs_total.labels(frequency=frequency, outcome="skipped").inc()
        return result
    profile = dict(demo.contractor_profile or {})

    history = load_recent_snapshots(session, demo_id, settings.snapshot_history)
    previous = {t: rows[0].snapshot_data for t, rows in history.items()}
    snapshot_history = {t: [r.snapshot_data for r in rows] for t, rows in history.items()}

    categories = [ALERT_CATEGORY[c.alert_type] for c in configs if c.alert_type in ALERT_CATEGORY]
    gatherer = gatherer or DataGatherer(session, now=now)
    current, gather_errors = gatherer.gather(demo_id, profile, categories)
    result["gather_errors"] = gather_errors

    data = EvaluationInput(
        demo_id=demo_id, profile=profile, current=current, previous=previous, history=snapshot_history
    )
    bucket = period_bucket(frequency, now)

    for category, payload in current.items():
        session.add(
            MonitoringSnapshot(
                demo_id=demo_id,
                snapshot_type=CATEGORY_SNAPSHOT[category],
                snapshot_data=payload,
                captured_at=now,
            )
        )
        result["snapshots_saved"] += 1

    created: list[tuple[uuid.UUID, AlertConfig]] = []
    for config in configs:
        draft = evaluate_config(data, config.alert_type, config.threshold_config)
        if draft is None:
            continue

        alert_id = uuid.uuid4()
        inserted = _insert_alert(
            session,
            {
                "id": alert_id,
                "demo_id": demo_id,
                "config_id": config.id,
                "alert_type": draft.alert_type,
                "severity": draft.severity,
                "title": draft.title,
                "message": draft.message,
                "detected_data": draft.detected_data,
                "recommended_actions": draft.recommended_actions,
                "status": "new",
                "notifications_sent": [],
                "dedup_key": alert_dedup_key(demo_id, draft.alert_type, bucket),
                "created_at": now,
                "updated_at": now,
            },
        )
        if not inserted:
            result["alerts_deduplicated"] += 1
            alerts_deduplicated_total.labels(alert_type=draft.alert_type).inc()
            log.info("monitoring_alert_deduplicated", alert_type=draft.alert_type, period=bucket)
            continue

        created.append((alert_id, config))
        alerts_triggered_total.labels(alert_type=draft.alert_type, severity=draft.severity).inc()
        log.info("monitoring_alert_triggered", alert_type=draft.alert_type, severity=draft.severity, alert_id=str(alert_id))

    result["alerts_created"] = len(created)
    session.commit()

    notifier = notifier or NotificationService()
    recipients = {"email": profile.get("contact_email"), "phone": profile.get("contact_phone")}
    for alert_id, config in created:
        alert = session.get(ContractorAlert, alert_id)
        if alert is None:
            continue
        receipts = notifier.send_alert_notification(alert, config.notification_channels or ["in_app"], recipients)
        alert.notifications_sent = list(alert.notifications_sent or []) + receipts
        alert.updated_at = _now()
        session.add(alert)
        # persist receipts before the next send
        session.commit()
        result["notifications"] += len(receipts)

    session.add(
        ActivityLog(
            demo_id=demo_id,
            ts=now,
            event_type="monitoring_run",
            message=f"{frequency} monitoring completed",
            details={k: v for k, v in result.items() if k not in ("demo_id", "status")},
        )
    )
    session.commit()

    result["status"] = "completed"
    monitoring_runs_total.labels(frequency=frequency, outcome="completed").inc()
    log.info(
        "monitoring_tenant_completed",
        alerts=result["alerts_created"],
        deduplicated=result["alerts_deduplicated"],
        snapshots=result["snapshots_saved"],
    )
    return result


def list_monitored_demo_ids(session: Session) -> list[str]:
    rows = session.exec(
        select(Demo.id)
        .where(Demo.contractor_mode == True)  # noqa: E712
        .where(Demo.contractor_profile.is_not(None))
        .order_by(Demo.created_at)
    ).all()
    return list(rows)


def run_monitoring_batch(
    session_factory: Callable[[], Session],
    frequency: str,
    gatherer_factory: Optional[Callable[[Session], DataGatherer]] = None,
    notifier: Optional[NotificationService] = None,
    now: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """Run every monitored tenant in turn; one tenant failing never stops the rest."""
    with session_factory() as session:
        demo_ids = list_monitored_demo_ids(session)
    logger.info("monitoring_batch_started", frequency=frequency, tenants=len(demo_ids))

    results = []
    for demo_id in demo_ids:
        with session_factory() as session:
            try:
                gatherer = gatherer_factory(session) if gatherer_factory else None
                results.append(
                    run_monitoring_for_tenant(session, demo_id, frequency, gatherer=gatherer, notifier=notifier, now=now)
                )
            except Exception as e:
                session.rollback()
                monitoring_runs_total.labels(frequency=frequency, outcome="error").inc()
                logger.error("monitoring_tenant_failed", demo_id=demo_id, frequency=frequency, error=str(e))
                results.append({"demo_id": demo_id, "frequency": frequency, "status": "error", "error": str(e)})
    return results


def send_alert_digests(
    session: Session,
    period: str = "weekly",
    notifier: Optional[NotificationService] = None,
    now: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """Email each tenant with a contact address its ``new`` alerts from the past period."""
    now = now or _now()
    since = now - (timedelta(days=1) if period == "daily" else timedelta(days=7))
    notifier = notifier or NotificationService()

    sent = []
    for demo_id in list_monitored_demo_ids(session):
        demo = session.get(Demo, demo_id)
        email = (demo.contractor_profile or {}).get("contact_email") if demo else None
        if not email:
            continue
        alerts = session.exec(
            select(ContractorAlert)
            .where(ContractorAlert.demo_id == demo_id)
            .where(ContractorAlert.status == "new")
            .where(ContractorAlert.created_at >= since)
            .order_by(ContractorAlert.created_at.desc())
        ).all()
        if not alerts:
            continue
        try:
            message = notifier.send_alert_digest(list(alerts), email, period)
        except Exception as e:
            logger.warning("digest_failed", demo_id=demo_id, error=str(e))
            continue
        sent.append({"demo_id": demo_id, "to": email, "alerts": len(alerts), "subject": message.subject})
        logger.info("digest_sent", demo_id=demo_id, alerts=len(alerts), period=period)
    return sent
