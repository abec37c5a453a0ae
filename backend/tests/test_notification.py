from forecasta.services.notification import NotificationService, severity_color

ALERT = {
    "id": "a1",
    "severity": "critical",
    "title": 'Ranking dropped 10 positions for "roof repair"',
    "message": "Your Google Maps ranking dropped from #2 to #12.",
    "recommended_actions": [
        {"action": "Update Google Business Profile", "estimated_time": "15 minutes", "category": "SEO"},
        {"action": "Request reviews", "estimated_time": "30 minutes", "category": "Reputation"},
        {"action": "Check competitor ads", "estimated_time": None, "category": "Competitive Intelligence"},
        {"action": "Fourth action", "estimated_time": "1 hour", "category": "SEO"},
    ],
}


def _service(**kw):
    sent = {"email": [], "sms": []}
    svc = NotificationService(
        email_sender=kw.get("email_sender") or sent["email"].append,
        sms_sender=kw.get("sms_sender") or (lambda to, body: sent["sms"].append((to, body))),
        base_url="https://app.test/",
    )
    return svc, sent


def test_email_rendering():
    svc, _ = _service()
    msg = svc.build_email(ALERT, "owner@example.com")

    assert msg.subject == "🚨 " + ALERT["title"]
    assert "#dc2626" in msg.html
    assert "https://app.test/contractor/alerts/a1" in msg.text
    assert "3. Check competitor ads (Quick)" in msg.text
    assert "Fourth action" not in msg.text
    assert "&quot;roof repair&quot;" in msg.html


def test_sms_rendering():
    svc, _ = _service()
    body = svc.build_sms(ALERT)
    assert body.startswith("🚨 Ranking dropped")
    assert "Top action: Update Google Business Profile" in body
    assert body.endswith("View: https://app.test/contractor/alerts/a1")


def test_unknown_severity_uses_default_colour():
    assert severity_color("unknown") == "#6b7280"


def test_receipts_per_channel_and_skips_missing_recipients():
    svc, sent = _service()
    receipts = svc.send_alert_notification(ALERT, ["in_app", "email", "sms"], {"email": "owner@example.com", "phone": None})

    assert [r["channel"] for r in receipts] == ["in_app", "email"]
    assert all(r["success"] for r in receipts)
    assert all("sent_at" in r for r in receipts)
    assert sent["email"][0].to == "owner@example.com"
    assert sent["sms"] == []


def test_sender_failure_becomes_failed_receipt():
    def broken(to, body):
        raise RuntimeError("twilio 500")

    svc, _ = _service(sms_sender=broken)
    receipts = svc.send_alert_notification(ALERT, ["sms"], {"phone": "512-555-0100"})

    assert receipts == [
        {"channel": "sms", "success": False, "error": "twilio 500", "sent_at": receipts[0]["sent_at"]}
    ]


def test_digest_groups_by_severity():
    svc, sent = _service()
    alerts = [
        {"severity": "high", "title": "New negative review on google"},
        {"severity": "critical", "title": "Lead volume 45% below expected"},
        {"severity": "high", "title": "New competitor"},
    ]
    msg = svc.send_alert_digest(alerts, "owner@example.com", "daily")

    assert msg.subject == "📅 Daily Alert Digest: 3 alerts"
    assert msg.text.index("CRITICAL (1)") < msg.text.index("HIGH (2)")
    assert sent["email"] == [msg]
