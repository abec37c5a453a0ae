import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import HTTPException
from sqlmodel import Session

from forecasta.core.config import settings
from forecasta.models.activity import ActivityLog
from forecasta.models.demo import Demo


def require_admin_key(x_admin_key: Optional[str]) -> None:
    if not x_admin_key or x_admin_key != settings.admin_api_key:
        raise HTTPException(status_code=401, detail="Invalid admin key")


def get_demo_or_404(session: Session, demo_id: str) -> Demo:
    demo = session.get(Demo, demo_id)
    if not demo:
        raise HTTPException(status_code=404, detail="Demo not found")
    return demo


def log_activity(session: Session, demo_id: str, event_type: str, message: str, details: Optional[dict[str, Any]] = None) -> None:
    session.add(
        ActivityLog(
            id=uuid.uuid4(),
            demo_id=demo_id,
            ts=datetime.now(timezone.utc),
            event_type=event_type,
            message=message,
            details=details or {},
        )
    )
