import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from forecasta.db import session as session_mod
from forecasta.db.session import get_session
from forecasta.main import app
from forecasta.services.context import BusinessContextStore


@pytest.fixture()
def engine():
    # one shared in-memory connection; TestClient runs sync routes in a threadpool
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as s:
        yield s


class DummyCelery:
    def __init__(self):
        self.sent = []

    def send_task(self, name, args=None, kwargs=None):
        self.sent.append((name, list(args or []), kwargs or {}))

        class _Result:
            id = f"task-{len(self.sent)}"

        return _Result()


@pytest.fixture()
def celery(monkeypatch):
    import forecasta.api.routes.actions as actions_mod

    dummy = DummyCelery()
    monkeypatch.setattr(actions_mod, "celery_app", dummy)
    return dummy


@pytest.fixture()
def client(engine, celery, monkeypatch, tmp_path):
    from forecasta.core.config import settings

    def override_get_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = override_get_session
    monkeypatch.setattr(session_mod, "engine", engine, raising=False)
    monkeypatch.setattr(settings, "report_dir", str(tmp_path / "reports"))
    app.state.context_store = BusinessContextStore()

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture()
def demo(client):
    r = client.post("/demos", json={"website_url": "https://acme-roofing.example", "business_name": "Acme Roofing"})
    assert r.status_code == 201
    return r.json()


@pytest.fixture()
def contractor(client, demo):
    profile = {
        "business_name": "Acme Roofing",
        "primary_industry": "roofing",
        "service_types": ["roof repair", "gutters"],
        "service_area": {"cities": ["Austin"], "radius_miles": 20},
        "contact_email": "owner@acme-roofing.example",
        "contact_phone": "512-555-0100",
    }
    r = client.post("/contractor/profile", json={"demo_id": demo["id"], "profile": profile})
    assert r.status_code == 200
    return demo
