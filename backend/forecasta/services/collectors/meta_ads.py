"""Competitor advertising from the Meta Ads Library (``ads_archive``).

Without ``META_ADS_LIBRARY_TOKEN`` every lookup returns empty results.
"""

from __future__ import annotations

import json
import re
from collections import Counter
from typing import Any, Optional

import httpx
import structlog

from forecasta.core.config import settings

logger = structlog.get_logger(__name__)

GRAPH_URL = "https://graph.facebook.com/v18.0/ads_archive"
FIELDS = (
    "id,ad_creative_bodies,ad_creative_link_captions,ad_creative_link_descriptions,"
    "ad_creative_link_titles,ad_snapshot_url,page_id,page_name,ad_delivery_start_time,"
    "ad_delivery_stop_time,impressions,spend,currency,publisher_platforms"
)
PLATFORM_KEYS = ("facebook", "instagram", "messenger", "audiencenetwork")


def _first(v: Any) -> Optional[str]:
    if isinstance(v, list) and v:
        return v[0]
    return None


def parse_ad(raw: dict[str, Any]) -> dict[str, Any]:
    spend = raw.get("spend") or None
    impressions = raw.get("impressions") or None
    return {
        "id": raw.get("id"),
        "page_id": raw.get("page_id"),
        "page_name": raw.get("page_name"),
        "platforms": list(raw.get("publisher_platforms") or []),
        "start_date": raw.get("ad_delivery_start_time") or "",
        "is_active": not raw.get("ad_delivery_stop_time"),
        "creative": {
            "headline": _first(raw.get("ad_creative_link_titles")),
            "body": _first(raw.get("ad_creative_bodies")),
            "description": _first(raw.get("ad_creative_link_descriptions")),
            "call_to_action": _first(raw.get("ad_creative_link_captions")),
            "link_url": raw.get("ad_snapshot_url"),
        },
        "spend_range": (
            {"min": spend.get("lower_bound", 0), "max": spend.get("upper_bound", 0), "currency": raw.get("currency") or "USD"}
            if isinstance(spend, dict)
            else None
        ),
        "impressions_range": (
            {"min": impressions.get("lower_bound", 0), "max": impressions.get("upper_bound", 0)}
            if isinstance(impressions, dict)
            else None
        ),
    }


def _top(values: list[str], n: int = 5) -> list[str]:
    return [v for v, _ in Counter(values).most_common(n)]


def aggregate_competitor(ads: list[dict[str, Any]], competitor_name: str) -> dict[str, Any]:
    by_platform = dict.fromkeys(PLATFORM_KEYS, 0)
    platforms: list[str] = []
    messages: list[str] = []
    ctas: list[str] = []

    for ad in ads:
        for platform in ad.get("platforms") or []:
            if platform not in platforms:
                platforms.append(platform)
            key = re.sub(r"[^a-z]", "", platform.lower())
            if key in by_platform:
                by_platform[key] += 1
        creative = ad.get("creative") or {}
        if creative.get("body"):
            messages.append(creative["body"])
        if creative.get("headline"):
            messages.append(creative["headline"])
        if creative.get("call_to_action"):
            ctas.append(creative["call_to_action"])

    return {
        "page_name": (ads[0].get("page_name") if ads else None) or competitor_name,
        "page_id": (ads[0].get("page_id") if ads else None) or "",
        "total_active_ads": sum(1 for a in ads if a.get("is_active")),
        "platforms": platforms,
        "ads_by_platform": by_platform,
        "top_messages": _top(messages),
        "top_ctas": _top(ctas),
        "recent_ads": ads[:10],
    }


class MetaAdsCollector:
    def __init__(self, access_token: Optional[str] = None, http_client: Optional[httpx.Client] = None):
        self.access_token = access_token if access_token is not None else settings.meta_ads_library_token
        self.http_client = http_client

    def _get(self, params: dict[str, str]) -> httpx.Response:
        if self.http_client is not None:
            return self.http_client.get(GRAPH_URL, params=params)
        with httpx.Client(timeout=settings.http_timeout_seconds) as client:
            return client.get(GRAPH_URL, params=params)

    def search_ads(self, search_terms: str, countries: Optional[list[str]] = None, limit: int = 50) -> list[dict[str, Any]]:
        if not self.access_token:
            logger.info("meta_ads_no_token", search_terms=search_terms)
            return []

        params = {
            "access_token": self.access_token,
            "search_terms": search_terms,
            "ad_type": "ALL",
            "ad_active_status": "ACTIVE",
            "ad_reached_countries": json.dumps(countries or ["US"]),
            "limit": str(limit),
            "fields": FIELDS,
        }
        try:
            r = self._get(params)
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("meta_ads_request_failed", search_terms=search_terms, error=str(e))
            return []

        return [parse_ad(a) for a in (data.get("data") or []) if isinstance(a, dict)]

    def analyze_competitor(self, competitor_name: str, countries: Optional[list[str]] = None) -> Optional[dict[str, Any]]:
        ads = self.search_ads(competitor_name, countries=countries, limit=100)
        if not ads:
            return None
        return aggregate_competitor(ads, competitor_name)
