import uuid
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlmodel import Session, select

from forecasta.core.config import settings
from forecasta.models.integration import Integration, IntegrationRecord, SyncLog
from forecasta.services.integrations.connectors import (
    Connector,
    GoogleBusinessProfileConnector,
    ServiceTitanConnector,
    create_connector,
)
from forecasta.services.integrations.sync import list_due_integrations, next_sync_time, sync_integration

NOW = datetime(2025, 3, 12, 6, 0, tzinfo=timezone.utc)


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def _integration(session: Session, **kw) -> Integration:
    values = dict(
        demo_id="demo_1",
        integration_type="servicetitan",
        credentials={"tenant_id": "t1", "client_id": "app", "access_token": "tok"},
        config={},
        status="connected",
    )
    values.update(kw)
    integration = Integration(**values)
    session.add(integration)
    session.commit()
    session.refresh(integration)
    return integration


class CannedConnector(Connector):
    def __init__(self, integration, records=None, connected=True, error=None):
        super().__init__(integration)
        self.records = records or {}
        self.connected = connected
        self.error = error

    def entities(self):
        return list(self.records)

    def test_connection(self):
        return self.connected

    def fetch(self, entity_type, since=None):
        if self.error is not None:
            raise self.error
        return self.records[entity_type]


def test_servicetitan_pages_jobs_with_app_key():
    seen = []

    def handler(request):
        seen.append(request)
        page = int(request.url.params["page"])
        rows = [{"id": page, "jobNumber": f"JOB-{page}", "jobStatus": "Completed", "technicians": [{"name": "Mike"}]}]
        return httpx.Response(200, json={"data": rows, "hasMore": page < 2})

    integration = Integration(demo_id="d", integration_type="servicetitan", credentials={"tenant_id": "t1", "client_id": "app", "access_token": "tok"})
    jobs = ServiceTitanConnector(integration, http_client=_client(handler)).fetch("jobs", since=NOW)

    assert [j["id"] for j in jobs] == ["1", "2"]
    assert jobs[0]["technicians"] == ["Mike"]
    assert seen[0].url.path == "/jpm/v2/tenant/t1/jobs"
    assert seen[0].headers["Authorization"] == "Bearer tok"
    assert seen[0].headers["ST-App-Key"] == "app"
    assert seen[0].url.params["modifiedOnOrAfter"] == NOW.isoformat()


def test_expired_token_is_refreshed_once():
    def handler(request):
        if request.url.host == "auth.servicetitan.io":
            return httpx.Response(200, json={"access_token": "fresh", "refresh_token": "r2"})
        if request.headers["Authorization"] == "Bearer fresh":
            return httpx.Response(200, json={"data": [{"id": 7, "name": "Jane"}], "hasMore": False})
        return httpx.Response(401)

    integration = Integration(
        demo_id="d",
        integration_type="servicetitan",
        credentials={"tenant_id": "t1", "client_id": "app", "access_token": "old", "refresh_token": "r1"},
    )
    connector = ServiceTitanConnector(integration, http_client=_client(handler))

    assert connector.fetch("customers")[0]["name"] == "Jane"
    assert connector.credentials_changed is True
    assert connector.credentials["refresh_token"] == "r2"


def test_google_reviews_paginate_and_filter_since():
    def handler(request):
        assert request.url.path == "/v4/accounts/acc/locations/loc/reviews"
        if "pageToken" not in request.url.params:
            return httpx.Response(
                200,
                json={
                    "reviews": [{"reviewId": "r1", "starRating": "ONE", "comment": "late", "updateTime": "2025-03-11T10:00:00Z"}],
                    "nextPageToken": "p2",
                },
            )
        return httpx.Response(
            200, json={"reviews": [{"reviewId": "r0", "starRating": "FIVE", "updateTime": "2025-01-01T10:00:00Z"}]}
        )

    integration = Integration(
        demo_id="d",
        integration_type="google_business_profile",
        credentials={"account_id": "acc", "location_id": "loc", "access_token": "tok"},
    )
    connector = GoogleBusinessProfileConnector(integration, http_client=_client(handler))

    reviews = connector.fetch("reviews", since=datetime(2025, 3, 1))
    assert [(r["id"], r["stars"], r["review_text"]) for r in reviews] == [("r1", 1, "late")]
    assert connector.entities() == ["reviews"]


def test_connection_check_and_unknown_types():
    integration = Integration(demo_id="d", integration_type="google_business_profile", credentials={"location_id": "loc"})
    assert GoogleBusinessProfileConnector(integration, http_client=_client(lambda r: httpx.Response(403))).test_connection() is False
    assert create_connector(Integration(demo_id="d", integration_type="yelp")) is None


def test_sync_stores_records_and_schedules_next(session):
    integration = _integration(session, status="pending", sync_frequency="daily")
    jobs = [{"id": "1", "status": "Scheduled"}, {"id": "2", "status": "Completed"}]

    result = sync_integration(session, integration.id, lambda i: CannedConnector(i, {"jobs": jobs}), now=NOW)
    assert result["status"] == "completed"
    assert result["entities"]["jobs"] == {"status": "success", "fetched": 2, "inserted": 2, "updated": 0, "failed": 0}

    session.refresh(integration)
    assert integration.status == "connected"
    assert integration.connected_at is not None
    assert integration.error_count == 0
    assert integration.next_sync_at.replace(tzinfo=timezone.utc) == NOW + timedelta(days=1)

    # a job changed, another came back unchanged, one is missing its id
    jobs = [{"id": "1", "status": "Completed"}, {"id": "2", "status": "Completed"}, {"status": "?"}]
    result = sync_integration(session, integration.id, lambda i: CannedConnector(i, {"jobs": jobs}), now=NOW + timedelta(days=1))
    assert result["entities"]["jobs"] == {"status": "partial", "fetched": 3, "inserted": 0, "updated": 1, "failed": 1}

    stored = session.exec(select(IntegrationRecord).where(IntegrationRecord.external_id == "1")).one()
    assert stored.data["status"] == "Completed"
    assert len(session.exec(select(SyncLog)).all()) == 2


def test_failed_connection_marks_error(session):
    integration = _integration(session, error_count=1)

    result = sync_integration(session, integration.id, lambda i: CannedConnector(i, connected=False), now=NOW)

    assert result["status"] == "error"
    session.refresh(integration)
    assert integration.status == "error"
    assert integration.last_error == "Connection test failed"
    assert integration.error_count == 2
    assert integration.last_synced_at is None


def test_unsupported_type_marks_error(session):
    integration = _integration(session, integration_type="jobber")
    assert sync_integration(session, integration.id, now=NOW)["status"] == "error"
    session.refresh(integration)
    assert integration.last_error == "Unsupported integration type: jobber"


def test_network_error_is_recorded_then_raised(session):
    integration = _integration(session)
    broken = httpx.ConnectError("connection refused")

    with pytest.raises(httpx.ConnectError):
        sync_integration(session, integration.id, lambda i: CannedConnector(i, {"jobs": []}, error=broken), now=NOW)

    session.refresh(integration)
    assert integration.status == "error"
    assert "connection refused" in integration.last_error
    log = session.exec(select(SyncLog)).one()
    assert log.status == "failed"


def test_due_integrations_by_cadence(session):
    hourly = _integration(session, sync_frequency="hourly")
    realtime = _integration(session, sync_frequency="realtime", status="pending")
    daily = _integration(session, sync_frequency="daily")
    _integration(session, sync_frequency="hourly", auto_sync=False)
    _integration(session, sync_frequency="hourly", status="disconnected")
    _integration(session, sync_frequency="manual")

    assert set(list_due_integrations(session, "hourly")) == {hourly.id, realtime.id}
    assert set(list_due_integrations(session, "daily")) == {daily.id, realtime.id}
    assert next_sync_time("realtime", NOW) == NOW + timedelta(minutes=15)
    assert next_sync_time("manual", NOW) == NOW + timedelta(hours=1)


def test_integration_routes(client, demo, celery):
    demo_id = demo["id"]
    body = {
        "demo_id": demo_id,
        "integration_type": "google_business_profile",
        "credentials": {"access_token": "secret", "location_id": "loc"},
    }
    r = client.post("/contractor/integrations", json=body)
    assert r.status_code == 201
    created = r.json()["integration"]
    assert created["status"] == "pending"
    assert created["sync_frequency"] == "hourly"
    assert created["auto_sync"] is True
    assert created["has_credentials"] is True
    assert "credentials" not in created

    assert client.post("/contractor/integrations", json={**body, "credentials": {}}).status_code == 400
    assert client.post("/contractor/integrations", json={**body, "integration_type": "myspace"}).status_code == 400
    assert client.post("/contractor/integrations", json={**body, "demo_id": "demo_missing"}).status_code == 404
    assert client.get("/contractor/integrations").status_code == 400

    listed = client.get("/contractor/integrations", params={"demo_id": demo_id}).json()["integrations"]
    assert [i["id"] for i in listed] == [created["id"]]

    sync_url = f"/contractor/integrations/{created['id']}/sync"
    assert client.post(sync_url).status_code == 401
    r = client.post(sync_url, headers={"X-Admin-Key": settings.admin_api_key})
    assert r.status_code == 202
    assert celery.sent == [("sync_integration", [created["id"]], {"triggered_by": "api"})]

    assert client.delete(f"/contractor/integrations/{created['id']}").json() == {"success": True}
    listed = client.get("/contractor/integrations", params={"demo_id": demo_id}).json()["integrations"]
    assert listed[0]["status"] == "disconnected"
    assert listed[0]["has_credentials"] is False
    assert client.post(sync_url, headers={"X-Admin-Key": settings.admin_api_key}).status_code == 409
    assert client.delete(f"/contractor/integrations/{uuid.uuid4()}").status_code == 404
