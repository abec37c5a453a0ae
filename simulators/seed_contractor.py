import argparse
import json
import os
import urllib.error
import urllib.request
from datetime import date, datetime, timedelta, timezone


def request_json(method: str, url: str, payload: dict | None = None, admin_key: str | None = None):
    data = json.dumps(payload).encode("utf-8") if payload is not None else None
    headers = {"Content-Type": "application/json"}
    if admin_key:
        headers["X-Admin-Key"] = admin_key
    req = urllib.request.Request(url, data=data, headers=headers, method=method)
    try:
        with urllib.request.urlopen(req, timeout=10) as resp:
            return resp.status, json.loads(resp.read().decode("utf-8") or "null")
    except urllib.error.HTTPError as e:
        return e.code, e.read().decode("utf-8")


def main():
    p = argparse.ArgumentParser(description="Seed a contractor tenant with leads and QC results")
    p.add_argument("--base-url", default=os.getenv("FORECASTA_BASE_URL", "http://localhost:8000"))
    p.add_argument("--admin-key", default=os.getenv("ADMIN_API_KEY", "dev-admin-key"))
    p.add_argument("--website", default="https://acme-roofing.example")
    p.add_argument("--email", default="owner@acme-roofing.example")
    p.add_argument("--leads", type=int, default=6, help="leads this week")
    p.add_argument("--qc-jobs", type=int, default=8)
    p.add_argument("--qc-failed", type=int, default=3)
    p.add_argument("--run", choices=["hourly", "daily", "weekly"], help="trigger a monitoring run afterwards")
    args = p.parse_args()

    base = args.base_url.rstrip("/")

    status, body = request_json("POST", f"{base}/demos", {"website_url": args.website, "business_name": "Acme Roofing"})
    print(status, body)
    demo_id = body["id"]

    profile = {
        "business_name": "Acme Roofing",
        "primary_industry": "roofing",
        "service_types": ["roof repair", "roof replacement", "gutter installation"],
        "service_area": {"cities": ["Austin", "Round Rock"], "radius_miles": 25},
        "customer_types": ["residential"],
        "pricing_model": "per_job",
        "contact_email": args.email,
    }
    print(*request_json("POST", f"{base}/contractor/profile", {"demo_id": demo_id, "profile": profile}))

    print(
        *request_json(
            "POST",
            f"{base}/contractor/lead-predictions",
            {"demo_id": demo_id, "prediction_date": date.today().isoformat(), "predicted_leads_low": 12, "predicted_leads_high": 18},
        )
    )

    now = datetime.now(timezone.utc)
    for i in range(args.leads):
        created = (now - timedelta(hours=12 * i)).isoformat()
        request_json("POST", f"{base}/contractor/leads", {"demo_id": demo_id, "source": "google", "created_at": created})

    for i in range(args.qc_jobs):
        assessment = "fail" if i < args.qc_failed else "pass"
        request_json(
            "POST",
            f"{base}/contractor/qc-analyses",
            {"demo_id": demo_id, "job_reference": f"JOB-{1000 + i}", "overall_assessment": assessment},
        )
    print(f"seeded {args.leads} leads and {args.qc_jobs} qc analyses for {demo_id}")

    if args.run:
        print(
            *request_json(
                "POST",
                f"{base}/contractor/monitoring/run",
                {"demo_id": demo_id, "frequency": args.run},
                admin_key=args.admin_key,
            )
        )


if __name__ == "__main__":
    main()
