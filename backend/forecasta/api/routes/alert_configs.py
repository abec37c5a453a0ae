import uuid
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session, select

from forecasta.api.deps import get_demo_or_404
from forecasta.db.session import get_session
from forecasta.models.alert import AlertConfig
from forecasta.services.alert_configs import ConfigConflict, upsert_alert_config

router = APIRouter(prefix="/contractor/alerts/configs", tags=["contractor"])

AlertType = Literal["ranking_drop", "negative_review", "new_competitor", "lead_volume_lag", "qc_failure_spike", "crew_turnover"]
Frequency = Literal["hourly", "daily", "weekly"]
Channel = Literal["in_app", "email", "sms"]


class AlertConfigWrite(BaseModel):
    demo_id: str
    id: Optional[uuid.UUID] = None
    alert_type: Optional[AlertType] = None
    is_enabled: Optional[bool] = None
    check_frequency: Optional[Frequency] = None
    threshold_config: Optional[dict[str, Any]] = None
    notification_channels: Optional[list[Channel]] = None


@router.get("")
def list_configs(demo_id: str = Query(...), session: Session = Depends(get_session)):
    configs = session.exec(
        select(AlertConfig).where(AlertConfig.demo_id == demo_id).order_by(AlertConfig.alert_type)
    ).all()
    return {"configs": [c.model_dump() for c in configs]}


@router.post("")
def save_config(body: AlertConfigWrite, session: Session = Depends(get_session)):
    get_demo_or_404(session, body.demo_id)
    if body.id is None and body.alert_type is None:
        raise HTTPException(status_code=400, detail="alert_type is required")

    data = body.model_dump(exclude={"demo_id"})
    if data.get("notification_channels") is not None:
        data["notification_channels"] = list(dict.fromkeys(data["notification_channels"]))

    try:
        cfg = upsert_alert_config(session, body.demo_id, data)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"config": cfg.model_dump()}
