import uuid
from pathlib import Path

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from forecasta.core.config import settings
from forecasta.db import session as session_mod
from forecasta.db.session import get_session
from forecasta.main import app
from forecasta.models.activity import ActivityLog
from forecasta.models.alert import AlertConfig, ContractorAlert


def _insert_alert(engine, demo_id, **kw) -> str:
    values = dict(
        demo_id=demo_id,
        alert_type="ranking_drop",
        severity="high",
        title='Ranking dropped 7 positions for "roof repair"',
        message="Your Google Maps ranking dropped from #2 to #9.",
        detected_data={"keyword": "roof repair", "old_rank": 2, "new_rank": 9, "positions_dropped": 7},
        recommended_actions=[{"action": "Update Google Business Profile", "estimated_time": "15 minutes", "category": "SEO"}],
        dedup_key=uuid.uuid4().hex,
    )
    values.update(kw)
    with Session(engine) as s:
        alert = ContractorAlert(**values)
        s.add(alert)
        s.commit()
        return str(alert.id)


def test_create_demo_is_idempotent_per_website(client, demo):
    assert demo["id"].startswith("demo_")
    assert demo["business_name"] == "Acme Roofing"

    r = client.post("/demos", json={"website_url": "https://acme-roofing.example"})
    assert r.status_code == 200
    assert r.json() == {"message": "Demo already exists", "id": demo["id"], "existing": True}

    assert client.post("/demos", json={"business_name": "No Site"}).status_code == 400


def test_concurrent_create_returns_existing_demo(client, demo, monkeypatch):
    from forecasta.api.routes import demos as demos_mod

    real = demos_mod.find_by_website
    calls = []

    def stale_then_real(session, website_url):
        # the first lookup misses the row another request already committed
        calls.append(website_url)
        return None if len(calls) == 1 else real(session, website_url)

    monkeypatch.setattr(demos_mod, "find_by_website", stale_then_real)

    r = client.post("/demos", json={"website_url": "https://acme-roofing.example"})
    assert r.status_code == 200
    assert r.json() == {"message": "Demo already exists", "id": demo["id"], "existing": True}
    assert len(calls) == 2
    assert len(client.get("/demos").json()["demos"]) == 1


def test_cleanup_unnamed_and_delete(client, demo):
    client.post("/demos", json={"website_url": "https://anon.example"})

    assert client.delete("/demos").status_code == 400
    r = client.delete("/demos", params={"cleanup": "unnamed"})
    assert r.json() == {"deleted": 1}
    assert [d["id"] for d in client.get("/demos").json()["demos"]] == [demo["id"]]

    assert client.delete(f"/demos/{demo['id']}").status_code == 200
    assert client.delete(f"/demos/{demo['id']}").status_code == 404


def test_first_profile_save_seeds_alert_configs(client, contractor, engine):
    r = client.get("/contractor/profile", params={"demo_id": contractor["id"]})
    body = r.json()
    assert body["contractor_mode"] is True
    assert body["profile"]["contact_email"] == "owner@acme-roofing.example"

    configs = client.get("/contractor/alerts/configs", params={"demo_id": contractor["id"]}).json()["configs"]
    assert len(configs) == 6
    assert {c["alert_type"]: c["is_enabled"] for c in configs}["crew_turnover"] is False

    # a second save is an update and seeds nothing
    r = client.post(
        "/contractor/profile",
        json={"demo_id": contractor["id"], "profile": {**body["profile"], "years_in_business": 12}},
    )
    assert r.json()["alert_configs_created"] == 0

    with Session(engine) as s:
        events = [a.event_type for a in s.exec(select(ActivityLog).where(ActivityLog.demo_id == contractor["id"])).all()]
    assert "profile_created" in events
    assert "profile_updated" in events


def test_invalid_profile_is_rejected(client, demo):
    r = client.post("/contractor/profile", json={"demo_id": demo["id"], "profile": {"business_name": "Acme"}})
    assert r.status_code == 400

    r = client.patch("/contractor/profile", json={"demo_id": demo["id"], "profile": {"years_in_business": 3}})
    assert r.status_code == 404


def test_alert_config_conflicts_and_updates(client, contractor):
    demo_id = contractor["id"]
    r = client.post("/contractor/alerts/configs", json={"demo_id": demo_id, "alert_type": "ranking_drop"})
    assert r.status_code == 409

    configs = client.get("/contractor/alerts/configs", params={"demo_id": demo_id}).json()["configs"]
    ranking = [c for c in configs if c["alert_type"] == "ranking_drop"][0]

    r = client.post(
        "/contractor/alerts/configs",
        json={
            "demo_id": demo_id,
            "id": ranking["id"],
            "threshold_config": {"positions_dropped": 3},
            "notification_channels": ["sms", "sms", "in_app"],
        },
    )
    assert r.status_code == 200
    cfg = r.json()["config"]
    assert cfg["threshold_config"] == {"positions_dropped": 3}
    assert cfg["notification_channels"] == ["sms", "in_app"]
    assert cfg["is_enabled"] is True

    r = client.post("/contractor/alerts/configs", json={"demo_id": demo_id, "id": str(uuid.uuid4()), "is_enabled": False})
    assert r.status_code == 404

    r = client.post("/contractor/alerts/configs", json={"demo_id": demo_id, "alert_type": "ranking_drop", "check_frequency": "monthly"})
    assert r.status_code == 400


def test_alert_config_type_is_fixed_once_created(client, contractor, engine):
    demo_id = contractor["id"]
    configs = client.get("/contractor/alerts/configs", params={"demo_id": demo_id}).json()["configs"]
    old = [c for c in configs if c["alert_type"] == "ranking_drop"][0]

    r = client.post("/contractor/alerts/configs", json={"demo_id": demo_id, "id": old["id"], "is_enabled": False})
    assert r.status_code == 200
    r = client.post("/contractor/alerts/configs", json={"demo_id": demo_id, "alert_type": "ranking_drop"})
    assert r.status_code == 200

    r = client.post(
        "/contractor/alerts/configs",
        json={"demo_id": demo_id, "id": old["id"], "alert_type": "crew_turnover", "is_enabled": True},
    )
    assert r.status_code == 400

    # re-enabling the old one without a type change still conflicts
    r = client.post("/contractor/alerts/configs", json={"demo_id": demo_id, "id": old["id"], "is_enabled": True})
    assert r.status_code == 409

    with Session(engine) as s:
        enabled = s.exec(
            select(AlertConfig)
            .where(AlertConfig.demo_id == demo_id)
            .where(AlertConfig.alert_type == "ranking_drop")
            .where(AlertConfig.is_enabled == True)  # noqa: E712
        ).all()
    assert len(enabled) == 1


def test_enabled_config_uniqueness_is_enforced_by_the_database(contractor, engine):
    with Session(engine) as s:
        s.add(AlertConfig(demo_id=contractor["id"], alert_type="ranking_drop", is_enabled=True))
        with pytest.raises(IntegrityError):
            s.commit()
        s.rollback()
        # disabled duplicates are fine
        s.add(AlertConfig(demo_id=contractor["id"], alert_type="ranking_drop", is_enabled=False))
        s.commit()


def test_alert_lifecycle(client, contractor, engine):
    alert_id = _insert_alert(engine, contractor["id"])

    r = client.post("/contractor/alerts", json={"alert_id": alert_id, "action": "acknowledge"})
    assert r.status_code == 200
    alert = r.json()["alert"]
    assert alert["status"] == "acknowledged"
    assert alert["acknowledged_at"] is not None
    assert alert["detected_data"]["positions_dropped"] == 7

    # repeating is a no-op
    assert client.post("/contractor/alerts", json={"alert_id": alert_id, "action": "acknowledge"}).status_code == 200

    r = client.post("/contractor/alerts", json={"alert_id": alert_id, "action": "resolve"})
    assert r.json()["alert"]["resolved_at"] is not None

    r = client.post("/contractor/alerts", json={"alert_id": alert_id, "action": "acknowledge"})
    assert r.status_code == 409

    r = client.post("/contractor/alerts", json={"alert_id": str(uuid.uuid4()), "action": "dismiss"})
    assert r.status_code == 404

    listed = client.get("/contractor/alerts", params={"demo_id": contractor["id"], "status": "resolved"}).json()["alerts"]
    assert [a["id"] for a in listed] == [alert_id]


def test_summary_and_report(client, contractor, engine, tmp_path):
    _insert_alert(engine, contractor["id"])
    _insert_alert(engine, contractor["id"], alert_type="negative_review", severity="critical", title="New negative review on google")

    summary = client.get("/contractor/alerts/summary", params={"demo_id": contractor["id"]}).json()
    assert summary["total"] == 2
    assert summary["by_status"]["new"] == 2
    assert summary["by_severity"] == {"critical": 1, "high": 1, "medium": 0, "low": 0}

    r = client.get("/contractor/alerts/report", params={"demo_id": contractor["id"], "write": True})
    assert r.status_code == 200
    body = r.json()
    assert body["alerts_count"] == 2
    assert body["markdown"].startswith("# Alert Report: Acme Roofing")
    assert "## Critical (1)" in body["markdown"]
    assert Path(body["report"]["markdown_path"]).exists()

    assert client.get("/contractor/alerts/report", params={"demo_id": "demo_missing"}).status_code == 404


def test_ingest_internal_sources(client, demo):
    demo_id = demo["id"]
    r = client.post("/contractor/leads", json={"demo_id": demo_id, "source": "google"})
    assert r.status_code == 201
    assert "lead_id" in r.json()

    r = client.post(
        "/contractor/lead-predictions",
        json={"demo_id": demo_id, "prediction_date": "2025-03-10", "predicted_leads_low": 10, "predicted_leads_high": 14},
    )
    assert r.status_code == 201

    assert client.post("/contractor/qc-analyses", json={"demo_id": demo_id, "overall_assessment": "fail"}).status_code == 201
    assert client.post("/contractor/qc-analyses", json={"demo_id": demo_id, "overall_assessment": "meh"}).status_code == 400
    assert client.post("/contractor/leads", json={"demo_id": "demo_missing"}).status_code == 404


def test_monitoring_run_requires_admin_key(client, contractor, celery):
    body = {"demo_id": contractor["id"], "frequency": "daily"}
    assert client.post("/contractor/monitoring/run", json=body).status_code == 401

    r = client.post("/contractor/monitoring/run", json=body, headers={"X-Admin-Key": settings.admin_api_key})
    assert r.status_code == 202
    assert r.json()["task_id"] == "task-1"

    r = client.post("/contractor/monitoring/run", json={"frequency": "weekly"}, headers={"X-Admin-Key": settings.admin_api_key})
    assert r.status_code == 202

    assert celery.sent == [
        ("monitor_tenant", [contractor["id"], "daily"], {}),
        ("run_monitoring", ["weekly"], {}),
    ]


def test_missing_database_is_503(client, monkeypatch):
    app.dependency_overrides.pop(get_session)
    monkeypatch.setattr(session_mod, "engine", None)

    r = client.get("/demos")
    assert r.status_code == 503
    assert r.json()["service"] == "database"
