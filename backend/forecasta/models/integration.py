import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from forecasta.models.types import JSONType

INTEGRATION_TYPES = (
    "servicetitan",
    "jobber",
    "quickbooks",
    "google_business_profile",
    "indeed",
    "facebook_jobs",
    "yelp",
    "serp_api",
)
INTEGRATION_STATUSES = ("pending", "connected", "error", "disconnected", "expired")
SYNC_FREQUENCIES = ("realtime", "hourly", "daily", "manual")


class Integration(SQLModel, table=True):
    __tablename__ = "contractor_integrations"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    demo_id: str = Field(index=True)

    integration_type: str = Field(index=True)
    status: str = Field(default="pending", index=True)  # pending/connected/error/disconnected/expired

    # oauth tokens or api keys; never returned by the API
    credentials: Any = Field(default_factory=dict, sa_column=Column(JSONType, nullable=False))
    # servicetitan: {sync_jobs, sync_customers}; google_business_profile: {sync_reviews}
    config: Any = Field(default_factory=dict, sa_column=Column(JSONType, nullable=False))

    auto_sync: bool = Field(default=True, index=True)
    sync_frequency: str = Field(default="hourly", index=True)  # realtime/hourly/daily/manual
    last_synced_at: Optional[datetime] = Field(default=None)
    next_sync_at: Optional[datetime] = Field(default=None)

    last_error: Optional[str] = Field(default=None)
    error_count: int = Field(default=0)
    last_error_at: Optional[datetime] = Field(default=None)
    connected_at: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SyncLog(SQLModel, table=True):
    __tablename__ = "contractor_sync_logs"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    integration_id: uuid.UUID = Field(index=True)
    demo_id: str = Field(index=True)

    sync_type: str = Field(default="scheduled")  # scheduled/manual
    entity_type: str  # jobs/customers/reviews
    status: str = Field(index=True)  # success/partial/failed

    records_fetched: int = Field(default=0)
    records_inserted: int = Field(default=0)
    records_updated: int = Field(default=0)
    records_failed: int = Field(default=0)
    error_message: Optional[str] = Field(default=None)

    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    completed_at: Optional[datetime] = Field(default=None)
    duration_ms: Optional[int] = Field(default=None)
    triggered_by: str = Field(default="scheduler")


class IntegrationRecord(SQLModel, table=True):
    """Latest copy of one external entity, keyed by the provider's id."""

    __tablename__ = "contractor_integration_records"
    __table_args__ = (UniqueConstraint("integration_id", "entity_type", "external_id", name="uq_integration_record"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    integration_id: uuid.UUID = Field(index=True)
    demo_id: str = Field(index=True)

    entity_type: str = Field(index=True)
    external_id: str
    data: Any = Field(default_factory=dict, sa_column=Column(JSONType, nullable=False))

    synced_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
