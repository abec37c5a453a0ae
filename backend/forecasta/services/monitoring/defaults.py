"""Fixed alert taxonomy: default configs, recommended-action templates."""

from typing import Any

# category gathered for each alert type
ALERT_CATEGORY = {
    "ranking_drop": "rankings",
    "negative_review": "reviews",
    "new_competitor": "competitors",
    "lead_volume_lag": "lead_volume",
    "qc_failure_spike": "qc_stats",
}

# category -> snapshot_type
CATEGORY_SNAPSHOT = {
    "rankings": "google_rankings",
    "reviews": "reviews_aggregate",
    "competitors": "competitor_scan",
    "lead_volume": "lead_volume",
    "qc_stats": "qc_stats",
}

DEFAULT_ALERT_CONFIGS: list[dict[str, Any]] = [
    {
        "alert_type": "ranking_drop",
        "is_enabled": True,
        "check_frequency": "daily",
        "threshold_config": {"positions_dropped": 5, "keywords": []},
        "description": "Google Maps ranking drops by 5+ positions for key services",
    },
    {
        "alert_type": "negative_review",
        "is_enabled": True,
        "check_frequency": "daily",
        "threshold_config": {"min_stars": 2, "platforms": ["google", "yelp", "facebook"]},
        "description": "Any review of 2 stars or below on major platforms",
    },
    {
        "alert_type": "new_competitor",
        "is_enabled": True,
        "check_frequency": "weekly",
        "threshold_config": {"distance_miles": 10, "service_overlap_threshold": 0.7},
        "description": "New competitor in the service area with similar services",
    },
    {
        "alert_type": "lead_volume_lag",
        "is_enabled": True,
        "check_frequency": "weekly",
        "threshold_config": {"percent_below_expected": 20},
        "description": "Lead volume 20%+ below the weekly prediction",
    },
    {
        "alert_type": "qc_failure_spike",
        "is_enabled": True,
        "check_frequency": "weekly",
        "threshold_config": {"failure_rate_threshold": 0.15, "min_jobs": 5},
        "description": "QC failure rate above 15% with at least 5 jobs analyzed",
    },
    {
        "alert_type": "crew_turnover",
        "is_enabled": False,
        "check_frequency": "weekly",
        "threshold_config": {"employees_left_last_30_days": 2},
        "description": "2+ crew members leave within 30 days",
    },
]


def _action(action: str, priority: int, estimated_time: str, category: str) -> dict[str, Any]:
    return {"action": action, "priority": priority, "estimated_time": estimated_time, "category": category}


def recommended_actions(alert_type: str, **ctx: Any) -> list[dict[str, Any]]:
    if alert_type == "ranking_drop":
        keyword = ctx.get("keyword", "your main service")
        return [
            _action("Update Google Business Profile with recent photos and posts", 1, "15 minutes", "SEO"),
            _action("Request 3-5 new Google reviews from recent happy customers", 2, "30 minutes", "Reputation"),
            _action(f'Check if competitors are running ads for "{keyword}"', 3, "10 minutes", "Competitive Intelligence"),
        ]
    if alert_type == "negative_review":
        platform = ctx.get("platform", "the")
        return [
            _action(
                f"Respond to the {platform} review within 24 hours (professional, empathetic)",
                1,
                "20 minutes",
                "Reputation Management",
            ),
            _action("Contact the customer directly to resolve the issue", 2, "30 minutes", "Customer Service"),
            _action("Request 5 new positive reviews to offset the negative", 3, "1 hour", "Reputation"),
        ]
    if alert_type == "new_competitor":
        name = ctx.get("name", "the new competitor")
        return [
            _action(f"Research {name}: pricing, services and Google rating", 1, "20 minutes", "Competitive Intelligence"),
            _action("Update your Google Business Profile to highlight unique selling points", 2, "15 minutes", "SEO"),
            _action("Consider running a limited promotion to capture more market share", 3, "1 hour", "Marketing"),
        ]
    if alert_type == "lead_volume_lag":
        industry = ctx.get("industry") or "your core"
        return [
            _action(
                "Run Weekly Lead Pulse to identify root cause (seasonality, market, or execution)",
                1,
                "10 minutes",
                "Lead Generation",
            ),
            _action(f"Increase ad spend by 20-30% for {industry} services", 2, "30 minutes", "Marketing"),
            _action("Post 2-3 times on Google Business Profile with recent job photos", 3, "20 minutes", "SEO"),
            _action("Reach out to past customers for referrals", 4, "1 hour", "Networking"),
        ]
    if alert_type == "qc_failure_spike":
        return [
            _action("Review QC failures with crew and identify training gaps", 1, "1 hour", "Quality Control"),
            _action("Schedule re-training session on most common issues", 2, "2 hours", "Training"),
            _action("Implement daily photo uploads during job to catch issues early", 3, "30 minutes", "Process Improvement"),
            _action("Add checklist signoff requirement before marking job complete", 4, "15 minutes", "Process Improvement"),
        ]
    return []
