"""Threshold evaluation for contractor monitoring.

Each rule receives the current gathered data, the latest snapshot per type
(plus a short newest-first history of them) for the same tenant and the
config's ``threshold_config``. A rule returns an
``AlertDraft`` when the threshold is crossed and ``None`` otherwise. Rules
never touch the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from urllib.parse import quote

import structlog

from forecasta.services.monitoring.defaults import recommended_actions

logger = structlog.get_logger(__name__)


@dataclass
class EvaluationInput:
    demo_id: str
    profile: dict[str, Any]
    current: dict[str, Any]  # category -> gathered data
    previous: dict[str, Any]  # snapshot_type -> latest snapshot_data
    history: dict[str, list[Any]] = field(default_factory=dict)  # snapshot_type -> snapshot_data, newest first


@dataclass
class AlertDraft:
    alert_type: str
    severity: str
    title: str
    message: str
    detected_data: dict[str, Any]
    recommended_actions: list[dict[str, Any]] = field(default_factory=list)


def _num(v: Any) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return float(v)


def _history_values(data: EvaluationInput, snapshot_type: str, key: str) -> list[float]:
    values = []
    for snap in data.history.get(snapshot_type) or []:
        if isinstance(snap, dict):
            v = _num(snap.get(key))
            if v is not None:
                values.append(v)
    return values


def _fmt_rank(v: float) -> str:
    return str(int(v)) if float(v).is_integer() else f"{v:g}"


# ---------------------------------------------------------------- severities

def severity_ranking_drop(positions_dropped: float) -> str:
    if positions_dropped >= 10:
        return "critical"
    if positions_dropped >= 7:
        return "high"
    if positions_dropped >= 5:
        return "medium"
    return "low"


def severity_negative_review(stars: float) -> str:
    if stars <= 1:
        return "critical"
    if stars <= 2:
        return "high"
    return "medium"


def severity_new_competitor(rank: float) -> str:
    if rank <= 3:
        return "high"
    if rank <= 7:
        return "medium"
    return "low"


def severity_lead_volume_lag(percent_below: float) -> str:
    if percent_below >= 40:
        return "critical"
    if percent_below >= 30:
        return "high"
    return "medium"


def severity_qc_failure_spike(failure_rate: float) -> str:
    if failure_rate >= 0.3:
        return "critical"
    if failure_rate >= 0.2:
        return "high"
    return "medium"


# --------------------------------------------------------------------- rules

def check_ranking_drop(data: EvaluationInput, threshold: dict[str, Any]) -> Optional[AlertDraft]:
    new_rankings = data.current.get("rankings")
    old_rankings = data.previous.get("google_rankings")
    if not isinstance(new_rankings, dict) or not isinstance(old_rankings, dict):
        # no baseline yet
        return None

    limit = _num(threshold.get("positions_dropped"))
    if limit is None:
        return None

    keywords = threshold.get("keywords") or list(old_rankings.keys())
    for keyword in keywords:
        old_rank = _num(old_rankings.get(keyword))
        new_rank = _num(new_rankings.get(keyword))
        if not old_rank or not new_rank:
            continue

        # rank 1 is best, so a drop is an increase in the number
        dropped = new_rank - old_rank
        if dropped < limit:
            continue

        positions = int(dropped) if dropped.is_integer() else dropped
        return AlertDraft(
            alert_type="ranking_drop",
            severity=severity_ranking_drop(dropped),
            title=f'Ranking dropped {positions} positions for "{keyword}"',
            message=(
                f'Your Google Maps ranking for "{keyword}" dropped from #{_fmt_rank(old_rank)} '
                f"to #{_fmt_rank(new_rank)}. This could impact lead volume."
            ),
            detected_data={
                "keyword": keyword,
                "old_rank": old_rankings.get(keyword),
                "new_rank": new_rankings.get(keyword),
                "positions_dropped": positions,
                "search_url": f"https://www.google.com/maps/search/{quote(str(keyword))}",
            },
            recommended_actions=recommended_actions("ranking_drop", keyword=keyword),
        )
    return None


def _review_key(review: dict[str, Any]) -> str:
    if review.get("id") is not None:
        return str(review["id"])
    return f"{review.get('posted_at')}|{review.get('reviewer_name')}|{review.get('review_text')}"


def check_negative_review(data: EvaluationInput, threshold: dict[str, Any]) -> Optional[AlertDraft]:
    reviews = data.current.get("reviews")
    if not isinstance(reviews, dict):
        return None

    min_stars = _num(threshold.get("min_stars"))
    if min_stars is None:
        return None

    previous = data.previous.get("reviews_aggregate") or {}
    platforms = threshold.get("platforms") or ["google", "yelp", "facebook"]

    for platform in platforms:
        platform_data = reviews.get(platform)
        if not isinstance(platform_data, dict):
            continue

        seen: set[str] = set()
        old_platform = previous.get(platform) if isinstance(previous, dict) else None
        if isinstance(old_platform, dict):
            seen = {_review_key(r) for r in old_platform.get("recent") or [] if isinstance(r, dict)}

        for review in platform_data.get("recent") or []:
            if not isinstance(review, dict) or _review_key(review) in seen:
                continue
            stars = _num(review.get("stars"))
            if stars is None or stars > min_stars:
                continue

            return AlertDraft(
                alert_type="negative_review",
                severity=severity_negative_review(stars),
                title=f"New negative review on {platform}",
                message=(
                    f"A new {_fmt_rank(stars)}-star review was posted on {platform}. "
                    "Respond quickly to minimize damage."
                ),
                detected_data={
                    "platform": platform,
                    "stars": review.get("stars"),
                    "review_text": review.get("review_text") or "",
                    "reviewer_name": review.get("reviewer_name"),
                    "review_url": review.get("review_url"),
                    "posted_at": review.get("posted_at"),
                    "platform_avg": platform_data.get("avg"),
                },
                recommended_actions=recommended_actions("negative_review", platform=platform),
            )
    return None


def check_new_competitor(data: EvaluationInput, threshold: dict[str, Any]) -> Optional[AlertDraft]:
    current = data.current.get("competitors")
    previous = data.previous.get("competitor_scan")
    if not isinstance(current, dict) or not isinstance(previous, dict):
        return None

    old_names = {
        str(c.get("name", "")).lower() for c in previous.get("competitors") or [] if isinstance(c, dict)
    }
    max_distance = _num(threshold.get("distance_miles"))

    for competitor in current.get("competitors") or []:
        if not isinstance(competitor, dict):
            continue
        name = str(competitor.get("name") or "").strip()
        rank = _num(competitor.get("rank"))
        if not name or name.lower() in old_names or rank is None or rank > 10:
            continue
        distance = _num(competitor.get("distance_miles"))
        if max_distance is not None and distance is not None and distance > max_distance:
            continue

        return AlertDraft(
            alert_type="new_competitor",
            severity=severity_new_competitor(rank),
            title=f'New competitor "{name}" ranked #{_fmt_rank(rank)}',
            message=f'A new competitor "{name}" is now ranking at position #{_fmt_rank(rank)} in your service area.',
            detected_data={
                "name": name,
                "rank": competitor.get("rank"),
                "distance_miles": competitor.get("distance_miles") or 0,
                "address": competitor.get("address"),
                "services": competitor.get("services") or [],
                "google_rating": competitor.get("google_rating"),
                "review_count": competitor.get("review_count"),
                "detected_from": competitor.get("detected_from") or "google_maps",
            },
            recommended_actions=recommended_actions("new_competitor", name=name),
        )
    return None


def check_lead_volume_lag(data: EvaluationInput, threshold: dict[str, Any]) -> Optional[AlertDraft]:
    lead_volume = data.current.get("lead_volume")
    if not isinstance(lead_volume, dict):
        return None

    week_leads = _num(lead_volume.get("week_leads"))
    expected_low = _num(lead_volume.get("expected_low"))
    expected_high = _num(lead_volume.get("expected_high"))
    limit = _num(threshold.get("percent_below_expected"))
    if week_leads is None or expected_low is None or expected_high is None or limit is None:
        return None

    if week_leads >= expected_low:
        return None

    midpoint = (expected_low + expected_high) / 2
    if midpoint <= 0:
        return None
    percent_below = (midpoint - week_leads) / midpoint * 100
    if percent_below < limit:
        return None

    past = _history_values(data, "lead_volume", "week_leads")
    if len(past) >= 2:
        # a new low against every recent period
        trend = "accelerating_decline" if week_leads < min(past) else "steady_decline"
    else:
        trend = "accelerating_decline" if percent_below >= 40 else "steady_decline"

    return AlertDraft(
        alert_type="lead_volume_lag",
        severity=severity_lead_volume_lag(percent_below),
        title=f"Lead volume {round(percent_below)}% below expected",
        message=(
            f"You're at {int(week_leads)} leads this week, but expected "
            f"{int(expected_low)}-{int(expected_high)}. This could hurt revenue if not addressed."
        ),
        detected_data={
            "current_week_leads": lead_volume.get("week_leads"),
            "expected_leads_low": lead_volume.get("expected_low"),
            "expected_leads_high": lead_volume.get("expected_high"),
            "percent_below_expected": round(percent_below),
            "history_average_leads": round(sum(past) / len(past), 1) if past else None,
            "trend": trend,
        },
        recommended_actions=recommended_actions(
            "lead_volume_lag", industry=(data.profile or {}).get("primary_industry")
        ),
    )


def check_qc_failure_spike(data: EvaluationInput, threshold: dict[str, Any]) -> Optional[AlertDraft]:
    stats = data.current.get("qc_stats")
    if not isinstance(stats, dict):
        return None

    jobs_analyzed = _num(stats.get("jobs_analyzed"))
    failed_jobs = _num(stats.get("failed_jobs"))
    rate_limit = _num(threshold.get("failure_rate_threshold"))
    min_jobs = _num(threshold.get("min_jobs")) or 0
    if jobs_analyzed is None or failed_jobs is None or rate_limit is None:
        return None

    if jobs_analyzed <= 0 or jobs_analyzed < min_jobs:
        # not enough data
        return None

    failure_rate = failed_jobs / jobs_analyzed
    if failure_rate < rate_limit:
        return None

    # baseline is the mean rate over recent snapshots, else the latest one
    rates = _history_values(data, "qc_stats", "failure_rate")
    baseline = round(sum(rates) / len(rates), 4) if rates else None
    baseline_periods = len(rates)
    prev = data.previous.get("qc_stats")
    if baseline is None and isinstance(prev, dict):
        baseline = _num(prev.get("failure_rate"))
        baseline_periods = 1 if baseline is not None else 0
    increase = round((failure_rate - baseline) / baseline * 100) if baseline else None

    message = f"{int(failed_jobs)} of {int(jobs_analyzed)} recent jobs failed QC."
    if increase is not None:
        message += f" This is {increase}% higher than recent periods and could hurt reputation."
    else:
        message += " This could hurt reputation."

    return AlertDraft(
        alert_type="qc_failure_spike",
        severity=severity_qc_failure_spike(failure_rate),
        title=f"QC failure rate spiked to {round(failure_rate * 100)}%",
        message=message,
        detected_data={
            "jobs_analyzed": int(jobs_analyzed),
            "failed_jobs": int(failed_jobs),
            "failure_rate": round(failure_rate, 4),
            "prev_period_failure_rate": baseline,
            "increase_percentage": increase,
            "baseline_periods": baseline_periods,
            "common_issues": stats.get("common_issues") or [],
        },
        recommended_actions=recommended_actions("qc_failure_spike"),
    )


RULES: dict[str, Callable[[EvaluationInput, dict[str, Any]], Optional[AlertDraft]]] = {
    "ranking_drop": check_ranking_drop,
    "negative_review": check_negative_review,
    "new_competitor": check_new_competitor,
    "lead_volume_lag": check_lead_volume_lag,
    "qc_failure_spike": check_qc_failure_spike,
}


def evaluate_config(data: EvaluationInput, alert_type: str, threshold: Optional[dict]) -> Optional[AlertDraft]:
    rule = RULES.get(alert_type)
    if rule is None:
        logger.info("monitoring_rule_missing", alert_type=alert_type, demo_id=data.demo_id)
        return None
    return rule(data, threshold or {})
