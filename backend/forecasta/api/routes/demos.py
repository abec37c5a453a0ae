import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from forecasta.api.deps import get_demo_or_404, log_activity
from forecasta.db.session import get_session
from forecasta.models.demo import Demo

router = APIRouter(prefix="/demos", tags=["demos"])

UNNAMED = "Unnamed Business"


class DemoCreate(BaseModel):
    website_url: Optional[str] = None
    business_name: Optional[str] = None
    industry: Optional[str] = None
    intelligence_data: Optional[dict[str, Any]] = None


def new_demo_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"demo_{int(time.time() * 1000)}_{suffix}"


def find_by_website(session: Session, website_url: str) -> Optional[Demo]:
    return session.exec(select(Demo).where(Demo.website_url == website_url)).first()


def _already_exists(demo: Demo) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content={"message": "Demo already exists", "id": demo.id, "existing": True},
    )


@router.get("")
def list_demos(
    session: Session = Depends(get_session),
    limit: int = Query(default=50, ge=1, le=200),
):
    demos = session.exec(select(Demo).order_by(Demo.created_at.desc()).limit(limit)).all()
    return {"demos": [d.model_dump() for d in demos]}


@router.post("", status_code=201)
def create_demo(body: DemoCreate, session: Session = Depends(get_session)):
    website_url = (body.website_url or "").strip()
    if not website_url:
        raise HTTPException(status_code=400, detail="website_url is required")

    existing = find_by_website(session, website_url)
    if existing:
        return _already_exists(existing)

    now = datetime.now(timezone.utc)
    demo = Demo(
        id=new_demo_id(),
        website_url=website_url,
        business_name=(body.business_name or "").strip() or UNNAMED,
        industry=body.industry,
        intelligence_data=body.intelligence_data,
        created_at=now,
        updated_at=now,
    )
    session.add(demo)
    log_activity(session, demo.id, "demo_created", f"demo created for {website_url}")
    try:
        session.commit()
    except IntegrityError:
        # lost a race with a concurrent create for the same website
        session.rollback()
        existing = find_by_website(session, website_url)
        if existing is None:
            raise
        return _already_exists(existing)
    session.refresh(demo)
    return demo.model_dump()


@router.delete("")
def cleanup_demos(
    session: Session = Depends(get_session),
    cleanup: Optional[str] = Query(default=None),
):
    if cleanup != "unnamed":
        raise HTTPException(status_code=400, detail="Unsupported cleanup; use cleanup=unnamed")

    demos = session.exec(select(Demo).where(Demo.business_name == UNNAMED)).all()
    for d in demos:
        session.delete(d)
    session.commit()
    return {"deleted": len(demos)}


@router.delete("/{demo_id}")
def delete_demo(demo_id: str, session: Session = Depends(get_session)):
    demo = get_demo_or_404(session, demo_id)
    session.delete(demo)
    session.commit()
    return {"deleted": True, "id": demo_id}
