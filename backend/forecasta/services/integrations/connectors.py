"""Provider connectors used by the integration sync.

A connector wraps one ``Integration`` row. It can check that its credentials
still work, list the entity types the integration's config asks for and fetch
the records of one entity type changed since a point in time. Fetched records
are plain dicts carrying a string ``id``. HTTP failures surface as
``httpx.HTTPError``; an expired access token is refreshed once per request
when the credentials hold a refresh token.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import structlog

from forecasta.core.config import settings
from forecasta.models.integration import Integration

logger = structlog.get_logger(__name__)

PAGE_SIZE = 50
MAX_PAGES = 20


class Connector:
    token_url: str = ""

    def __init__(self, integration: Integration, http_client: Optional[httpx.Client] = None):
        self.integration = integration
        self.credentials: dict[str, Any] = dict(integration.credentials or {})
        self.config: dict[str, Any] = dict(integration.config or {})
        self.http_client = http_client
        self.credentials_changed = False

    def entities(self) -> list[str]:
        raise NotImplementedError

    def test_connection(self) -> bool:
        raise NotImplementedError

    def fetch(self, entity_type: str, since: Optional[datetime] = None) -> list[dict[str, Any]]:
        raise NotImplementedError

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.credentials.get('access_token', '')}"}

    def refresh_form(self) -> dict[str, str]:
        return {
            "client_id": self.credentials.get("client_id", ""),
            "client_secret": self.credentials.get("client_secret", ""),
            "grant_type": "refresh_token",
            "refresh_token": self.credentials.get("refresh_token", ""),
        }

    def _send(self, method: str, url: str, **kw) -> httpx.Response:
        if self.http_client is not None:
            return self.http_client.request(method, url, **kw)
        with httpx.Client(timeout=settings.http_timeout_seconds) as client:
            return client.request(method, url, **kw)

    def refresh_token(self) -> None:
        r = self._send("POST", self.token_url, data=self.refresh_form())
        r.raise_for_status()
        body = r.json()
        self.credentials["access_token"] = body["access_token"]
        if body.get("refresh_token"):
            self.credentials["refresh_token"] = body["refresh_token"]
        self.credentials_changed = True
        logger.info("integration_token_refreshed", integration_id=str(self.integration.id))

    def request(self, method: str, url: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        r = self._send(method, url, params=params, headers=self.headers())
        if r.status_code == 401 and self.credentials.get("refresh_token") and self.token_url:
            self.refresh_token()
            r = self._send(method, url, params=params, headers=self.headers())
        return r

    def get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        r = self.request("GET", url, params=params)
        r.raise_for_status()
        return r.json()


class ServiceTitanConnector(Connector):
    token_url = "https://auth.servicetitan.io/connect/token"

    def __init__(self, integration: Integration, http_client: Optional[httpx.Client] = None):
        super().__init__(integration, http_client)
        tenant = self.credentials.get("tenant_id", "")
        self.jpm_url = f"https://api.servicetitan.io/jpm/v2/tenant/{tenant}"
        self.crm_url = f"https://api.servicetitan.io/crm/v2/tenant/{tenant}"

    def headers(self) -> dict[str, str]:
        return {**super().headers(), "ST-App-Key": self.credentials.get("client_id", "")}

    def entities(self) -> list[str]:
        out = []
        if self.config.get("sync_jobs", True):
            out.append("jobs")
        if self.config.get("sync_customers", True):
            out.append("customers")
        return out

    def test_connection(self) -> bool:
        try:
            return self.request("GET", f"{self.jpm_url}/jobs", params={"pageSize": 1}).is_success
        except httpx.HTTPError as e:
            logger.warning("servicetitan_connection_failed", error=str(e))
            return False

    def _pages(self, url: str, since: Optional[datetime]) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"pageSize": PAGE_SIZE}
        if since is not None:
            params["modifiedOnOrAfter"] = since.isoformat()
        rows: list[dict[str, Any]] = []
        for page in range(1, MAX_PAGES + 1):
            body = self.get_json(url, params={**params, "page": page})
            rows.extend(body.get("data") or [])
            if not body.get("hasMore"):
                break
        return rows

    def fetch(self, entity_type: str, since: Optional[datetime] = None) -> list[dict[str, Any]]:
        if entity_type == "jobs":
            return [parse_job(j) for j in self._pages(f"{self.jpm_url}/jobs", since)]
        if entity_type == "customers":
            return [parse_customer(c) for c in self._pages(f"{self.crm_url}/customers", since)]
        raise ValueError(f"servicetitan has no {entity_type}")


def parse_job(raw: dict[str, Any]) -> dict[str, Any]:
    technicians = raw.get("technicians") or []
    return {
        "id": str(raw.get("id")) if raw.get("id") is not None else None,
        "job_number": raw.get("jobNumber"),
        "customer_id": raw.get("customerId"),
        "status": raw.get("jobStatus"),
        "job_type": raw.get("jobType"),
        "service_type": raw.get("businessUnit"),
        "scheduled_on": raw.get("scheduledOn"),
        "completed_on": raw.get("completedOn"),
        "total": raw.get("total"),
        "summary": raw.get("summary"),
        "technicians": [t.get("name") for t in technicians if isinstance(t, dict)],
    }


def parse_customer(raw: dict[str, Any]) -> dict[str, Any]:
    address = raw.get("address") or {}
    return {
        "id": str(raw.get("id")) if raw.get("id") is not None else None,
        "name": raw.get("name"),
        "email": raw.get("email"),
        "phone": raw.get("phoneNumber"),
        "city": address.get("city"),
        "state": address.get("state"),
        "zip": address.get("zip"),
    }


STAR_RATINGS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}


class GoogleBusinessProfileConnector(Connector):
    token_url = "https://oauth2.googleapis.com/token"
    base_url = "https://mybusiness.googleapis.com/v4"

    @property
    def location_path(self) -> str:
        account = self.credentials.get("account_id") or self.credentials.get("location_id", "")
        return f"{self.base_url}/accounts/{account}/locations/{self.credentials.get('location_id', '')}"

    def entities(self) -> list[str]:
        return ["reviews"] if self.config.get("sync_reviews", True) else []

    def test_connection(self) -> bool:
        try:
            return self.request("GET", self.location_path).is_success
        except httpx.HTTPError as e:
            logger.warning("gbp_connection_failed", error=str(e))
            return False

    def fetch(self, entity_type: str, since: Optional[datetime] = None) -> list[dict[str, Any]]:
        if entity_type != "reviews":
            raise ValueError(f"google_business_profile has no {entity_type}")

        reviews: list[dict[str, Any]] = []
        token = None
        for _ in range(MAX_PAGES):
            params: dict[str, Any] = {"pageSize": PAGE_SIZE}
            if token:
                params["pageToken"] = token
            body = self.get_json(f"{self.location_path}/reviews", params=params)
            reviews.extend(parse_review(r) for r in body.get("reviews") or [])
            token = body.get("nextPageToken")
            if not token:
                break

        if since is not None:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            reviews = [r for r in reviews if _after(r.get("update_time") or r.get("create_time"), since)]
        return reviews


def parse_review(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": raw.get("reviewId"),
        "stars": STAR_RATINGS.get(raw.get("starRating") or ""),
        "review_text": raw.get("comment"),
        "reviewer_name": (raw.get("reviewer") or {}).get("displayName"),
        "create_time": raw.get("createTime"),
        "update_time": raw.get("updateTime"),
        "has_reply": bool(raw.get("reviewReply")),
    }


def _after(ts: Optional[str], since: datetime) -> bool:
    if not ts:
        return True
    try:
        return datetime.fromisoformat(ts.replace("Z", "+00:00")) >= since
    except ValueError:
        return True


CONNECTORS: dict[str, type[Connector]] = {
    "servicetitan": ServiceTitanConnector,
    "google_business_profile": GoogleBusinessProfileConnector,
}


def create_connector(integration: Integration, http_client: Optional[httpx.Client] = None) -> Optional[Connector]:
    cls = CONNECTORS.get(integration.integration_type)
    return cls(integration, http_client) if cls else None
