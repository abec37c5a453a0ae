from datetime import date, datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlmodel import Session

from forecasta.api.deps import get_demo_or_404
from forecasta.db.session import get_session
from forecasta.models.contractor import Lead, LeadPrediction, QCAnalysis

router = APIRouter(prefix="/contractor", tags=["contractor"])


class LeadIn(BaseModel):
    demo_id: str
    source: str = "unknown"
    service: Optional[str] = None
    created_at: Optional[datetime] = None


class LeadPredictionIn(BaseModel):
    demo_id: str
    prediction_date: date
    predicted_leads_low: int = Field(ge=0)
    predicted_leads_high: int = Field(ge=0)


class QCAnalysisIn(BaseModel):
    demo_id: str
    overall_assessment: Literal["pass", "fail", "needs_review"]
    job_reference: Optional[str] = None
    analyzed_at: Optional[datetime] = None


@router.post("/leads", status_code=201)
def record_lead(body: LeadIn, session: Session = Depends(get_session)):
    get_demo_or_404(session, body.demo_id)
    lead = Lead(
        demo_id=body.demo_id,
        source=body.source,
        service=body.service,
        created_at=body.created_at or datetime.now(timezone.utc),
    )
    session.add(lead)
    session.commit()
    session.refresh(lead)
    return {"lead_id": str(lead.id)}


@router.post("/lead-predictions", status_code=201)
def record_lead_prediction(body: LeadPredictionIn, session: Session = Depends(get_session)):
    get_demo_or_404(session, body.demo_id)
    prediction = LeadPrediction(**body.model_dump())
    session.add(prediction)
    session.commit()
    session.refresh(prediction)
    return {"prediction_id": str(prediction.id)}


@router.post("/qc-analyses", status_code=201)
def record_qc_analysis(body: QCAnalysisIn, session: Session = Depends(get_session)):
    get_demo_or_404(session, body.demo_id)
    analysis = QCAnalysis(
        demo_id=body.demo_id,
        job_reference=body.job_reference,
        overall_assessment=body.overall_assessment,
        analyzed_at=body.analyzed_at or datetime.now(timezone.utc),
    )
    session.add(analysis)
    session.commit()
    session.refresh(analysis)
    return {"analysis_id": str(analysis.id)}
