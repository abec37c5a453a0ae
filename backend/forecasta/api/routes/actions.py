from typing import Literal, Optional

from celery import Celery
from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel
from sqlmodel import Session

from forecasta.api.deps import get_demo_or_404, require_admin_key
from forecasta.core.config import settings
from forecasta.db.session import get_session

router = APIRouter(prefix="/contractor/monitoring", tags=["monitoring"])

celery_app = Celery(
    "forecasta_api",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)


class MonitoringRunRequest(BaseModel):
    demo_id: Optional[str] = None
    frequency: Literal["hourly", "daily", "weekly"] = "daily"


@router.post("/run", status_code=202)
def trigger_monitoring(
    body: MonitoringRunRequest,
    session: Session = Depends(get_session),
    x_admin_key: Optional[str] = Header(default=None),
):
    require_admin_key(x_admin_key)

    if body.demo_id:
        get_demo_or_404(session, body.demo_id)
        res = celery_app.send_task("monitor_tenant", args=[body.demo_id, body.frequency])
    else:
        # fan out to every monitored tenant
        res = celery_app.send_task("run_monitoring", args=[body.frequency])
    return {"queued": True, "task_id": getattr(res, "id", None), "demo_id": body.demo_id, "frequency": body.frequency}
