from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session

from forecasta.api.deps import get_demo_or_404, log_activity
from forecasta.db.session import get_session
from forecasta.services.alert_configs import initialize_alert_configs
from forecasta.services.contractor_profile import profile_completeness, suggest_next_steps, validate_profile

router = APIRouter(prefix="/contractor/profile", tags=["contractor"])


class ProfileWrite(BaseModel):
    demo_id: str
    profile: dict[str, Any]


@router.get("")
def get_profile(demo_id: str = Query(...), session: Session = Depends(get_session)):
    demo = get_demo_or_404(session, demo_id)
    profile = demo.contractor_profile
    return {
        "demo_id": demo_id,
        "contractor_mode": bool(demo.contractor_mode),
        "business_name": demo.business_name,
        "profile": profile,
        "validation": validate_profile(profile) if profile else None,
        "completeness": profile_completeness(profile) if profile else 0,
        "suggestions": suggest_next_steps(profile) if profile else [],
    }


@router.post("")
def save_profile(body: ProfileWrite, session: Session = Depends(get_session)):
    demo = get_demo_or_404(session, body.demo_id)

    validation = validate_profile(body.profile)
    if not validation["valid"]:
        raise HTTPException(status_code=400, detail="; ".join(validation["errors"]))

    first_time = not demo.contractor_mode
    now = datetime.now(timezone.utc)
    completeness = profile_completeness(body.profile)
    profile = {
        **body.profile,
        "profile_completeness": completeness,
        "onboarding_completed_at": (demo.contractor_profile or {}).get("onboarding_completed_at") or now.isoformat(),
    }

    demo.contractor_profile = profile
    demo.contractor_mode = True
    demo.updated_at = now
    session.add(demo)
    log_activity(
        session,
        demo.id,
        "profile_created" if first_time else "profile_updated",
        "contractor profile saved",
        {"completeness": completeness, "industry": profile.get("primary_industry")},
    )
    session.commit()

    seeded = len(initialize_alert_configs(session, demo.id)) if first_time else 0

    return {
        "success": True,
        "profile": profile,
        "validation": validation,
        "completeness": completeness,
        "suggestions": suggest_next_steps(profile),
        "alert_configs_created": seeded,
    }


@router.patch("")
def patch_profile(body: ProfileWrite, session: Session = Depends(get_session)):
    demo = get_demo_or_404(session, body.demo_id)
    if not demo.contractor_profile:
        raise HTTPException(status_code=404, detail="Contractor profile not found")

    profile = {**demo.contractor_profile, **body.profile}
    profile["profile_completeness"] = profile_completeness(profile)

    demo.contractor_profile = profile
    demo.updated_at = datetime.now(timezone.utc)
    session.add(demo)
    log_activity(session, demo.id, "profile_updated", "contractor profile patched", {"fields": sorted(body.profile)})
    session.commit()

    return {"success": True, "profile": profile, "completeness": profile["profile_completeness"]}
