import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class Lead(SQLModel, table=True):
    __tablename__ = "contractor_leads"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    demo_id: str = Field(index=True)
    source: str = Field(default="unknown", index=True)  # google/referral/ads/...
    service: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)


class LeadPrediction(SQLModel, table=True):
    __tablename__ = "contractor_lead_predictions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    demo_id: str = Field(index=True)
    prediction_date: date = Field(index=True)
    predicted_leads_low: int
    predicted_leads_high: int


class QCAnalysis(SQLModel, table=True):
    __tablename__ = "contractor_qc_analyses"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    demo_id: str = Field(index=True)
    job_reference: Optional[str] = Field(default=None)
    overall_assessment: str = Field(index=True)  # pass/fail/needs_review

    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
