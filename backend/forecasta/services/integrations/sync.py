"""Scheduled pulls from connected third-party systems.

``sync_integration`` checks the connection, fetches every entity type the
integration is configured for, keeps the latest copy of each record and
writes one ``SyncLog`` per entity type. Failures land on the integration row
(``status="error"``, ``last_error``, ``error_count``). Network-level errors are
re-raised after that so the calling task can retry with backoff.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx
import structlog
from sqlmodel import Session, select

from forecasta.models.activity import ActivityLog
from forecasta.models.integration import Integration, IntegrationRecord, SyncLog
from forecasta.services.integrations.connectors import Connector, create_connector

logger = structlog.get_logger(__name__)

SYNC_INTERVALS = {
    "realtime": timedelta(minutes=15),
    "hourly": timedelta(hours=1),
    "daily": timedelta(days=1),
}
# statuses the scheduler picks up; a first good sync promotes pending -> connected
SCHEDULABLE_STATUSES = ("pending", "connected")


def _now():
    return datetime.now(timezone.utc)


def next_sync_time(frequency: str, now: datetime) -> datetime:
    return now + SYNC_INTERVALS.get(frequency, timedelta(hours=1))


def list_due_integrations(session: Session, frequency: str) -> list[uuid.UUID]:
    """Integrations with auto sync on whose cadence is ``frequency`` (realtime ones ride every run)."""
    rows = session.exec(
        select(Integration.id)
        .where(Integration.status.in_(SCHEDULABLE_STATUSES))
        .where(Integration.auto_sync == True)  # noqa: E712
        .where(Integration.sync_frequency.in_((frequency, "realtime")))
        .order_by(Integration.created_at)
    ).all()
    return list(rows)


def upsert_records(session: Session, integration: Integration, entity_type: str, records: list[dict[str, Any]], now: datetime) -> dict[str, int]:
    counts = {"inserted": 0, "updated": 0, "failed": 0}
    for record in records:
        external_id = record.get("id")
        if not external_id:
            counts["failed"] += 1
            continue
        existing = session.exec(
            select(IntegrationRecord)
            .where(IntegrationRecord.integration_id == integration.id)
            .where(IntegrationRecord.entity_type == entity_type)
            .where(IntegrationRecord.external_id == str(external_id))
        ).first()
        if existing is None:
            session.add(
                IntegrationRecord(
                    integration_id=integration.id,
                    demo_id=integration.demo_id,
                    entity_type=entity_type,
                    external_id=str(external_id),
                    data=record,
                    synced_at=now,
                )
            )
            counts["inserted"] += 1
        elif existing.data != record:
            existing.data = record
            existing.synced_at = now
            session.add(existing)
            counts["updated"] += 1
    return counts


def _mark_failed(integration: Integration, message: str, now: datetime) -> None:
    integration.status = "error"
    integration.last_error = message
    integration.error_count = (integration.error_count or 0) + 1
    integration.last_error_at = now
    integration.updated_at = now


def sync_integration(
    session: Session,
    integration_id: uuid.UUID,
    connector_factory: Callable[[Integration], Optional[Connector]] = create_connector,
    now: Optional[datetime] = None,
    triggered_by: str = "scheduler",
) -> dict[str, Any]:
    now = now or _now()
    integration = session.get(Integration, integration_id)
    result: dict[str, Any] = {"integration_id": str(integration_id), "status": "skipped", "entities": {}}
    if integration is None or integration.status in ("disconnected", "expired"):
        logger.info("integration_sync_skipped", integration_id=str(integration_id))
        return result

    log = logger.bind(integration_id=str(integration.id), demo_id=integration.demo_id, integration_type=integration.integration_type)
    sync_type = "manual" if triggered_by != "scheduler" else "scheduled"

    connector = connector_factory(integration)
    if connector is None:
        _mark_failed(integration, f"Unsupported integration type: {integration.integration_type}", now)
        session.add(integration)
        session.commit()
        log.warning("integration_unsupported")
        result["status"] = "error"
        return result

    if not connector.test_connection():
        _mark_failed(integration, "Connection test failed", now)
        session.add(integration)
        session.commit()
        log.warning("integration_connection_failed")
        result["status"] = "error"
        return result

    since = integration.last_synced_at
    errors: list[str] = []
    transport_error: Optional[httpx.TransportError] = None
    for entity_type in connector.entities():
        started = time.perf_counter()
        entry = SyncLog(
            integration_id=integration.id,
            demo_id=integration.demo_id,
            sync_type=sync_type,
            entity_type=entity_type,
            status="success",
            started_at=now,
            triggered_by=triggered_by,
        )
        try:
            records = connector.fetch(entity_type, since=since)
        except httpx.HTTPError as e:
            entry.status = "failed"
            entry.error_message = str(e)
            errors.append(f"{entity_type}: {e}")
            if isinstance(e, httpx.TransportError):
                transport_error = e
            log.warning("integration_fetch_failed", entity_type=entity_type, error=str(e))
        else:
            counts = upsert_records(session, integration, entity_type, records, now)
            entry.records_fetched = len(records)
            entry.records_inserted = counts["inserted"]
            entry.records_updated = counts["updated"]
            entry.records_failed = counts["failed"]
            if counts["failed"]:
                entry.status = "partial"
        entry.completed_at = _now()
        entry.duration_ms = int((time.perf_counter() - started) * 1000)
        session.add(entry)
        result["entities"][entity_type] = {
            "status": entry.status,
            "fetched": entry.records_fetched,
            "inserted": entry.records_inserted,
            "updated": entry.records_updated,
            "failed": entry.records_failed,
        }

    if connector.credentials_changed:
        integration.credentials = dict(connector.credentials)

    if errors:
        _mark_failed(integration, "; ".join(errors), now)
        result["status"] = "error"
    else:
        integration.status = "connected"
        integration.connected_at = integration.connected_at or now
        integration.last_synced_at = now
        integration.next_sync_at = next_sync_time(integration.sync_frequency, now)
        integration.last_error = None
        integration.error_count = 0
        integration.updated_at = now
        result["status"] = "completed"

    session.add(integration)
    session.add(
        ActivityLog(
            demo_id=integration.demo_id,
            ts=now,
            event_type="integration_synced",
            message=f"{integration.integration_type} sync {result['status']}",
            details={"integration_id": str(integration.id), "entities": result["entities"]},
        )
    )
    session.commit()
    log.info("integration_sync_finished", status=result["status"], entities=list(result["entities"]))

    if transport_error is not None:
        raise transport_error
    return result
