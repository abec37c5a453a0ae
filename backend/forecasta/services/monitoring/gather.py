"""Current-data gathering for the monitoring scheduler.

External signals (rankings, reviews, competitors) come from the signals API
configured by ``SIGNALS_API_URL``; lead volume and QC stats are read from our
own tables. Every category is gathered independently: a failure is logged and
the category is reported as missing, the others carry on.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Optional

import httpx
import structlog
from sqlalchemy import func
from sqlmodel import Session, select

from forecasta.core.config import settings
from forecasta.metrics.prometheus import monitoring_gather_failures_total
from forecasta.models.contractor import Lead, LeadPrediction, QCAnalysis
from forecasta.services.contractor_profile import service_area_label

logger = structlog.get_logger(__name__)

CATEGORIES = ("rankings", "reviews", "competitors", "lead_volume", "qc_stats")


class DataGatherer:
    def __init__(
        self,
        session: Session,
        signals_api_url: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        now: Optional[datetime] = None,
    ):
        self.session = session
        self.signals_api_url = (signals_api_url if signals_api_url is not None else settings.signals_api_url) or None
        self.http_client = http_client
        self.now = now or datetime.now(timezone.utc)

    # ------------------------------------------------------------ external

    def _signals(self, path: str, params: dict[str, Any]) -> Optional[dict]:
        if not self.signals_api_url:
            return None
        url = f"{self.signals_api_url.rstrip('/')}/{path}"
        if self.http_client is not None:
            r = self.http_client.get(url, params=params)
        else:
            with httpx.Client(timeout=settings.http_timeout_seconds, follow_redirects=True) as client:
                r = client.get(url, params=params)
        r.raise_for_status()
        data = r.json()
        return data if isinstance(data, dict) else None

    def rankings(self, demo_id: str, profile: dict) -> Optional[dict]:
        keywords = list(profile.get("service_types") or [])[:3]
        if not keywords:
            return None
        data = self._signals(
            "rankings",
            {"keywords": ",".join(keywords), "location": service_area_label(profile), "business": profile.get("business_name") or ""},
        )
        if data is None:
            return None
        # keyword -> rank
        return {k: v for k, v in (data.get("rankings") or data).items() if isinstance(v, (int, float))}

    def reviews(self, demo_id: str, profile: dict) -> Optional[dict]:
        return self._signals("reviews", {"business": profile.get("business_name") or "", "location": service_area_label(profile)})

    def competitors(self, demo_id: str, profile: dict) -> Optional[dict]:
        data = self._signals(
            "competitors",
            {"industry": profile.get("primary_industry") or "", "location": service_area_label(profile)},
        )
        if data is None:
            return None
        return {"competitors": list(data.get("competitors") or [])}

    # ------------------------------------------------------------ internal

    def lead_volume(self, demo_id: str, profile: dict) -> dict:
        since = self.now - timedelta(days=7)
        week_leads = self.session.exec(
            select(func.count()).select_from(Lead).where(Lead.demo_id == demo_id).where(Lead.created_at >= since)
        ).one()

        prediction = self.session.exec(
            select(LeadPrediction)
            .where(LeadPrediction.demo_id == demo_id)
            .order_by(LeadPrediction.prediction_date.desc())
        ).first()

        return {
            "week_leads": int(week_leads or 0),
            "expected_low": prediction.predicted_leads_low if prediction else int(week_leads or 0),
            "expected_high": prediction.predicted_leads_high if prediction else int(week_leads or 0),
        }

    def qc_stats(self, demo_id: str, profile: dict) -> dict:
        since = self.now - timedelta(days=30)
        rows = self.session.exec(
            select(QCAnalysis.overall_assessment)
            .where(QCAnalysis.demo_id == demo_id)
            .where(QCAnalysis.analyzed_at >= since)
        ).all()

        jobs_analyzed = len(rows)
        failed_jobs = sum(1 for a in rows if a == "fail")
        return {
            "jobs_analyzed": jobs_analyzed,
            "failed_jobs": failed_jobs,
            "failure_rate": (failed_jobs / jobs_analyzed) if jobs_analyzed else 0.0,
        }

    # ------------------------------------------------------------- driver

    def source(self, category: str) -> Callable[[str, dict], Optional[dict]]:
        return getattr(self, category)

    def gather(self, demo_id: str, profile: dict, categories: Iterable[str]) -> tuple[dict[str, Any], dict[str, str]]:
        data: dict[str, Any] = {}
        errors: dict[str, str] = {}

        for category in dict.fromkeys(categories):
            if category not in CATEGORIES:
                continue
            start = time.perf_counter()
            try:
                result = self.source(category)(demo_id, profile or {})
            except Exception as e:
                errors[category] = str(e)
                monitoring_gather_failures_total.labels(category=category).inc()
                logger.warning("monitoring_gather_failed", demo_id=demo_id, category=category, error=str(e))
                continue
            if result is not None:
                data[category] = result
            logger.debug(
                "monitoring_gathered",
                demo_id=demo_id,
                category=category,
                has_data=result is not None,
                seconds=round(time.perf_counter() - start, 3),
            )

        return data, errors
