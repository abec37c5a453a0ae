import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, Index, text
from sqlmodel import Field, SQLModel

from forecasta.models.types import JSONType

ALERT_TYPES = (
    "ranking_drop",
    "negative_review",
    "new_competitor",
    "lead_volume_lag",
    "qc_failure_spike",
    "crew_turnover",
)
SEVERITIES = ("critical", "high", "medium", "low")
ALERT_STATUSES = ("new", "acknowledged", "resolved", "dismissed")
CHECK_FREQUENCIES = ("hourly", "daily", "weekly")
NOTIFICATION_CHANNELS = ("in_app", "email", "sms")


class AlertConfig(SQLModel, table=True):
    __tablename__ = "contractor_alert_configs"
    # at most one enabled config per (tenant, type)
    __table_args__ = (
        Index(
            "uq_alert_config_enabled_type",
            "demo_id",
            "alert_type",
            unique=True,
            postgresql_where=text("is_enabled = true"),
            sqlite_where=text("is_enabled = 1"),
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    demo_id: str = Field(index=True)

    alert_type: str = Field(index=True)
    is_enabled: bool = Field(default=True, index=True)
    check_frequency: str = Field(default="daily", index=True)  # hourly/daily/weekly

    # ranking_drop: {positions_dropped, keywords}; qc_failure_spike: {failure_rate_threshold, min_jobs} ...
    threshold_config: Any = Field(default_factory=dict, sa_column=Column(JSONType, nullable=False))
    notification_channels: Any = Field(default_factory=lambda: ["in_app"], sa_column=Column(JSONType, nullable=False))

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ContractorAlert(SQLModel, table=True):
    __tablename__ = "contractor_alerts"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    demo_id: str = Field(index=True)
    config_id: Optional[uuid.UUID] = Field(default=None, index=True)

    alert_type: str = Field(index=True)
    severity: str = Field(index=True)  # critical/high/medium/low
    title: str
    message: str

    detected_data: Any = Field(default_factory=dict, sa_column=Column(JSONType, nullable=False))
    recommended_actions: Any = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))

    status: str = Field(default="new", index=True)  # new/acknowledged/resolved/dismissed
    acknowledged_at: Optional[datetime] = Field(default=None)
    resolved_at: Optional[datetime] = Field(default=None)

    # [{channel, sent_at, success, error}]
    notifications_sent: Any = Field(default_factory=list, sa_column=Column(JSONType, nullable=False))

    # sha256(demo_id, alert_type, period bucket)
    dedup_key: str = Field(index=True, unique=True)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
