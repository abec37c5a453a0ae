import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from forecasta.models.types import JSONType


class ActivityLog(SQLModel, table=True):
    __tablename__ = "activity_log"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    demo_id: str = Field(index=True)
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    event_type: str = Field(index=True)  # demo_created/profile_updated/alert_status/monitoring_run
    message: str
    details: Any = Field(default_factory=dict, sa_column=Column(JSONType, nullable=False))
