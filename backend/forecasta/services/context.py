"""Per-application business context keyed by website.

One ``BusinessContextStore`` lives on ``app.state`` and reaches routes through
the ``get_context_store`` dependency.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request

CONTEXT_FIELDS = (
    "business_name",
    "industry",
    "target_audience",
    "goals",
    "current_challenges",
    "marketing_intelligence",
    "brand_voice",
    "brand_tone",
    "key_messages",
    "last_analysis",
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BusinessContextStore:
    def __init__(self):
        self._contexts: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, website: str) -> Optional[dict[str, Any]]:
        with self._lock:
            ctx = self._contexts.get(website)
            return dict(ctx) if ctx else None

    def set(self, website: str, data: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            return self._set(website, data)

    def _set(self, website: str, data: dict[str, Any]) -> dict[str, Any]:
        existing = self._contexts.get(website) or {}
        ctx: dict[str, Any] = {"website": website}
        for key in CONTEXT_FIELDS:
            value = data.get(key)
            ctx[key] = value if value not in (None, "", []) else existing.get(key)
        if not ctx["business_name"]:
            ctx["business_name"] = website
        ctx["created_at"] = existing.get("created_at") or _now_iso()
        ctx["updated_at"] = _now_iso()
        # insertion order tracks recency
        self._contexts.pop(website, None)
        self._contexts[website] = ctx
        return dict(ctx)

    def merge(self, website: str, updates: dict[str, Any]) -> Optional[dict[str, Any]]:
        with self._lock:
            existing = self._contexts.get(website)
            if existing is None:
                return None
            return self._set(website, {**existing, **updates})

    def clear(self, website: str) -> bool:
        with self._lock:
            return self._contexts.pop(website, None) is not None

    def clear_all(self) -> None:
        with self._lock:
            self._contexts.clear()

    def all(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(c) for c in reversed(self._contexts.values())]

    def current(self) -> Optional[dict[str, Any]]:
        items = self.all()
        return items[0] if items else None

    def summary(self, website: str) -> Optional[str]:
        ctx = self.get(website)
        if not ctx:
            return None

        lines = [f"Business: {ctx['business_name']}", f"Website: {ctx['website']}"]
        for key, label in (
            ("industry", "Industry"),
            ("target_audience", "Target Audience"),
            ("brand_voice", "Brand Voice"),
            ("brand_tone", "Brand Tone"),
        ):
            if ctx.get(key):
                lines.append(f"{label}: {ctx[key]}")
        for key, label in (("key_messages", "Key Messages"), ("goals", "Goals")):
            if ctx.get(key):
                lines.append(f"{label}: {', '.join(ctx[key])}")
        return "\n".join(lines) + "\n"


def get_context_store(request: Request) -> BusinessContextStore:
    return request.app.state.context_store
