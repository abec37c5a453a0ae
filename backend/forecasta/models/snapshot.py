import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from forecasta.models.types import JSONType

SNAPSHOT_TYPES = ("google_rankings", "reviews_aggregate", "competitor_scan", "lead_volume", "qc_stats")


class MonitoringSnapshot(SQLModel, table=True):
    __tablename__ = "contractor_monitoring_snapshots"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    demo_id: str = Field(index=True)
    snapshot_type: str = Field(index=True)

    snapshot_data: Any = Field(sa_column=Column(JSONType, nullable=False))

    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
