import uuid
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session, select

from forecasta.api.deps import get_demo_or_404, log_activity
from forecasta.db.session import get_session
from forecasta.models.alert import ALERT_STATUSES, SEVERITIES, ContractorAlert
from forecasta.services.reporting import build_alert_report_markdown, write_report_files

router = APIRouter(prefix="/contractor/alerts", tags=["contractor"])

# action -> (new status, statuses it may leave)
TRANSITIONS = {
    "acknowledge": ("acknowledged", ("new",)),
    "resolve": ("resolved", ("new", "acknowledged")),
    "dismiss": ("dismissed", ("new", "acknowledged")),
}


class AlertAction(BaseModel):
    alert_id: uuid.UUID
    action: Literal["acknowledge", "resolve", "dismiss"]


@router.get("")
def list_alerts(
    demo_id: str = Query(...),
    session: Session = Depends(get_session),
    status: Optional[str] = Query(default=None),
    severity: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
):
    q = select(ContractorAlert).where(ContractorAlert.demo_id == demo_id).order_by(ContractorAlert.created_at.desc())
    if status:
        q = q.where(ContractorAlert.status == status)
    if severity:
        q = q.where(ContractorAlert.severity == severity)

    alerts = session.exec(q.limit(limit)).all()
    return {"alerts": [a.model_dump() for a in alerts]}


@router.post("")
def update_alert(body: AlertAction, session: Session = Depends(get_session)):
    alert = session.get(ContractorAlert, body.alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")

    new_status, allowed_from = TRANSITIONS[body.action]
    if alert.status == new_status:
        return {"alert": alert.model_dump()}
    if alert.status not in allowed_from:
        raise HTTPException(status_code=409, detail=f"Cannot {body.action} an alert that is {alert.status}")

    now = datetime.now(timezone.utc)
    previous = alert.status
    alert.status = new_status
    if new_status == "acknowledged":
        alert.acknowledged_at = now
    elif new_status == "resolved":
        alert.resolved_at = now
    alert.updated_at = now
    session.add(alert)
    log_activity(
        session,
        alert.demo_id,
        "alert_status",
        f"alert {new_status}",
        {"alert_id": str(alert.id), "from": previous, "to": new_status},
    )
    session.commit()
    session.refresh(alert)
    return {"alert": alert.model_dump()}


@router.get("/summary")
def alerts_summary(
    demo_id: str = Query(...),
    session: Session = Depends(get_session),
    days: int = Query(default=30, ge=1, le=365),
):
    since = datetime.now(timezone.utc) - timedelta(days=days)
    alerts = session.exec(
        select(ContractorAlert).where(ContractorAlert.demo_id == demo_id).where(ContractorAlert.created_at >= since)
    ).all()

    by_status = dict.fromkeys(ALERT_STATUSES, 0)
    by_severity = dict.fromkeys(SEVERITIES, 0)
    for a in alerts:
        by_status[a.status] = by_status.get(a.status, 0) + 1
        by_severity[a.severity] = by_severity.get(a.severity, 0) + 1

    return {"demo_id": demo_id, "days": days, "total": len(alerts), "by_status": by_status, "by_severity": by_severity}


@router.get("/report")
def alerts_report(
    demo_id: str = Query(...),
    session: Session = Depends(get_session),
    days: int = Query(default=30, ge=1, le=365),
    write: bool = Query(default=False),
):
    get_demo_or_404(session, demo_id)
    built = build_alert_report_markdown(session=session, demo_id=demo_id, days=days)
    paths = write_report_files(demo_id=demo_id, markdown=built["markdown"]) if write else {}

    return {
        "demo_id": demo_id,
        "alerts_count": built["alerts_count"],
        "report": {
            "markdown_path": paths.get("markdown_path"),
            "pdf_path": paths.get("pdf_path"),
        },
        "markdown": built["markdown"],
    }
