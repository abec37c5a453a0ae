import textwrap
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from reportlab.lib.pagesizes import LETTER
from reportlab.pdfgen import canvas
from sqlmodel import Session, select

from forecasta.core.config import settings
from forecasta.models.alert import SEVERITIES, ContractorAlert
from forecasta.models.demo import Demo


def _ts(dt: datetime | None) -> str:
    if not dt:
        return ""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def build_alert_report_markdown(session: Session, demo_id: str, days: int = 30) -> dict[str, Any]:
    demo = session.get(Demo, demo_id)
    if not demo:
        raise ValueError("Demo not found")

    since = datetime.now(timezone.utc) - timedelta(days=days)
    alerts = session.exec(
        select(ContractorAlert)
        .where(ContractorAlert.demo_id == demo_id)
        .where(ContractorAlert.created_at >= since)
        .order_by(ContractorAlert.created_at.desc())
    ).all()

    by_status: dict[str, int] = {}
    by_type: dict[str, int] = {}
    for a in alerts:
        by_status[a.status] = by_status.get(a.status, 0) + 1
        by_type[a.alert_type] = by_type.get(a.alert_type, 0) + 1

    profile = demo.contractor_profile or {}
    md = []
    md.append(f"# Alert Report: {profile.get('business_name') or demo.business_name}")
    md.append("")
    md.append("## Summary")
    md.append("")
    md.append(f"- **Tenant:** {demo.id}")
    md.append(f"- **Website:** {demo.website_url}")
    md.append(f"- **Period:** last {days} days")
    md.append(f"- **Generated:** {_ts(datetime.now(timezone.utc))}")
    md.append(f"- **Total alerts:** {len(alerts)}")
    for status in sorted(by_status):
        md.append(f"- **{status.capitalize()}:** {by_status[status]}")
    md.append("")

    md.append("## By type")
    md.append("")
    if not by_type:
        md.append("_No alerts in this period._")
    else:
        for t in sorted(by_type):
            md.append(f"- `{t}`: {by_type[t]}")
    md.append("")

    for severity in SEVERITIES:
        group = [a for a in alerts if a.severity == severity]
        if not group:
            continue
        md.append(f"## {severity.capitalize()} ({len(group)})")
        md.append("")
        for a in group:
            md.append(f"### {a.title}")
            md.append("")
            md.append(f"- `{_ts(a.created_at)}` | type={a.alert_type} | status={a.status}")
            md.append(f"- {a.message}")
            for action in (a.recommended_actions or [])[:3]:
                md.append(f"  - [ ] {action.get('action')} ({action.get('estimated_time') or 'Quick'})")
            md.append("")

    report_md = "\n".join(md).strip() + "\n"

    return {
        "demo": demo,
        "markdown": report_md,
        "alerts_count": len(alerts),
        "by_status": by_status,
        "by_type": by_type,
    }


def write_report_files(demo_id: str, markdown: str) -> dict[str, str]:
    report_dir = Path(settings.report_dir)
    report_dir.mkdir(parents=True, exist_ok=True)

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    md_path = report_dir / f"alerts_{demo_id}_{stamp}.md"
    md_path.write_text(markdown, encoding="utf-8")

    out = {"markdown_path": str(md_path)}

    if settings.report_generate_pdf:
        pdf_path = report_dir / f"alerts_{demo_id}_{stamp}.pdf"
        _markdown_to_simple_pdf(markdown, pdf_path)
        out["pdf_path"] = str(pdf_path)

    return out


def _markdown_to_simple_pdf(markdown: str, pdf_path: Path) -> None:
    # plain wrapped text, no markdown styling
    c = canvas.Canvas(str(pdf_path), pagesize=LETTER)
    width, height = LETTER

    left = 54
    top = height - 54
    line_height = 12
    y = top

    lines: list[str] = []
    for raw in markdown.replace("\t", "  ").splitlines():
        lines.extend(textwrap.wrap(raw, width=95) or [""])

    c.setFont("Helvetica", 10)
    for line in lines:
        if y <= 54:
            c.showPage()
            c.setFont("Helvetica", 10)
            y = top
        c.drawString(left, y, line[:2000])
        y -= line_height

    c.save()
