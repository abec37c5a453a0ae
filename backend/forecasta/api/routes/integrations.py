import uuid
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field
from sqlmodel import Session, select

from forecasta.api.deps import get_demo_or_404, log_activity, require_admin_key
from forecasta.api.routes import actions
from forecasta.db.session import get_session
from forecasta.models.integration import Integration

router = APIRouter(prefix="/contractor/integrations", tags=["integrations"])

IntegrationType = Literal[
    "servicetitan",
    "jobber",
    "quickbooks",
    "google_business_profile",
    "indeed",
    "facebook_jobs",
    "yelp",
    "serp_api",
]


class IntegrationCreate(BaseModel):
    demo_id: str
    integration_type: IntegrationType
    credentials: dict[str, Any] = Field(min_length=1)
    config: dict[str, Any] = Field(default_factory=dict)
    sync_frequency: Literal["realtime", "hourly", "daily", "manual"] = "hourly"
    auto_sync: bool = True


def _public(integration: Integration) -> dict[str, Any]:
    # credentials never leave the server
    out = integration.model_dump(exclude={"credentials"})
    out["has_credentials"] = bool(integration.credentials)
    return out


def _get_or_404(session: Session, integration_id: uuid.UUID) -> Integration:
    integration = session.get(Integration, integration_id)
    if not integration:
        raise HTTPException(status_code=404, detail="Integration not found")
    return integration


@router.get("")
def list_integrations(demo_id: str = Query(...), session: Session = Depends(get_session)):
    rows = session.exec(
        select(Integration).where(Integration.demo_id == demo_id).order_by(Integration.created_at.desc())
    ).all()
    return {"integrations": [_public(i) for i in rows]}


@router.post("", status_code=201)
def create_integration(body: IntegrationCreate, session: Session = Depends(get_session)):
    get_demo_or_404(session, body.demo_id)
    now = datetime.now(timezone.utc)
    integration = Integration(
        demo_id=body.demo_id,
        integration_type=body.integration_type,
        credentials=body.credentials,
        config=body.config,
        sync_frequency=body.sync_frequency,
        auto_sync=body.auto_sync,
        status="pending",
        created_at=now,
        updated_at=now,
    )
    session.add(integration)
    log_activity(session, body.demo_id, "integration_added", f"{body.integration_type} integration added")
    session.commit()
    session.refresh(integration)
    return {"integration": _public(integration)}


@router.delete("/{integration_id}")
def disconnect_integration(integration_id: uuid.UUID, session: Session = Depends(get_session)):
    integration = _get_or_404(session, integration_id)
    integration.status = "disconnected"
    integration.credentials = {}
    integration.updated_at = datetime.now(timezone.utc)
    session.add(integration)
    log_activity(session, integration.demo_id, "integration_disconnected", f"{integration.integration_type} disconnected")
    session.commit()
    return {"success": True}


@router.post("/{integration_id}/sync", status_code=202)
def trigger_sync(
    integration_id: uuid.UUID,
    session: Session = Depends(get_session),
    x_admin_key: Optional[str] = Header(default=None),
):
    require_admin_key(x_admin_key)
    integration = _get_or_404(session, integration_id)
    if integration.status == "disconnected":
        raise HTTPException(status_code=409, detail="Integration is disconnected")
    res = actions.celery_app.send_task("sync_integration", args=[str(integration.id)], kwargs={"triggered_by": "api"})
    return {"queued": True, "task_id": getattr(res, "id", None), "integration_id": str(integration.id)}
