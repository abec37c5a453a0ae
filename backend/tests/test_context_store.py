from forecasta.services.context import BusinessContextStore


def test_set_keeps_unspecified_fields_and_created_at():
    store = BusinessContextStore()
    first = store.set("acme.example", {"business_name": "Acme", "industry": "roofing"})
    second = store.set("acme.example", {"brand_voice": "friendly"})

    assert second["business_name"] == "Acme"
    assert second["industry"] == "roofing"
    assert second["brand_voice"] == "friendly"
    assert second["created_at"] == first["created_at"]
    assert second["updated_at"] >= first["updated_at"]


def test_business_name_defaults_to_website():
    store = BusinessContextStore()
    assert store.set("acme.example", {})["business_name"] == "acme.example"


def test_merge_requires_existing_context():
    store = BusinessContextStore()
    assert store.merge("missing.example", {"industry": "plumbing"}) is None

    store.set("acme.example", {"business_name": "Acme"})
    merged = store.merge("acme.example", {"goals": ["more leads"]})
    assert merged["business_name"] == "Acme"
    assert merged["goals"] == ["more leads"]


def test_all_and_current_are_most_recent_first():
    store = BusinessContextStore()
    store.set("a.example", {})
    store.set("b.example", {})
    store.set("a.example", {"industry": "hvac"})

    assert [c["website"] for c in store.all()] == ["a.example", "b.example"]
    assert store.current()["website"] == "a.example"


def test_clear_and_clear_all():
    store = BusinessContextStore()
    store.set("a.example", {})
    store.set("b.example", {})

    assert store.clear("a.example") is True
    assert store.clear("a.example") is False
    assert store.get("a.example") is None

    store.clear_all()
    assert store.all() == []
    assert store.current() is None


def test_summary():
    store = BusinessContextStore()
    store.set(
        "acme.example",
        {"business_name": "Acme", "industry": "roofing", "key_messages": ["fast", "fair"], "goals": ["grow"]},
    )
    summary = store.summary("acme.example")

    assert summary.startswith("Business: Acme\nWebsite: acme.example\n")
    assert "Industry: roofing\n" in summary
    assert "Key Messages: fast, fair\n" in summary
    assert "Target Audience" not in summary
    assert store.summary("missing.example") is None


def test_stores_are_isolated():
    one, two = BusinessContextStore(), BusinessContextStore()
    one.set("acme.example", {"business_name": "Acme"})
    assert two.get("acme.example") is None


def test_business_context_routes(client):
    r = client.post("/business-context", json={"website": "acme.example", "context": {"business_name": "Acme"}})
    assert r.status_code == 200

    r = client.post("/business-context", json={"website": "acme.example", "context": {"industry": "roofing"}, "merge": True})
    assert r.json()["context"]["industry"] == "roofing"

    r = client.get("/business-context", params={"website": "acme.example", "summary": True})
    assert "Industry: roofing" in r.json()["summary"]

    assert client.post("/business-context", json={"website": "x.example", "context": {}, "merge": True}).status_code == 404

    client.delete("/business-context")
    assert client.get("/business-context").json() == {"contexts": [], "current": None}
