"""Single-page website scraping: title, meta description, headings, contact details, text."""

from __future__ import annotations

import re
import time
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
import structlog
from bs4 import BeautifulSoup

from forecasta.core.config import settings

logger = structlog.get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; ForecastaBot/1.0; +https://forecasta.ai)"
EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
PHONE_RE = re.compile(r"\(?\b\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b")
MAX_TEXT_CHARS = 5000


class ScrapeError(Exception):
    pass


def normalize_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        raise ScrapeError("url is required")
    if not re.match(r"^https?://", url, re.I):
        url = "https://" + url
    if not urlparse(url).netloc:
        raise ScrapeError(f"invalid url: {url}")
    return url


def parse_page(html: str, url: str) -> dict[str, Any]:
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    title = soup.title.get_text(strip=True) if soup.title else ""
    meta = soup.find("meta", attrs={"name": re.compile("^description$", re.I)})
    description = (meta.get("content") or "").strip() if meta else ""

    headings = {
        level: [h.get_text(" ", strip=True) for h in soup.find_all(level) if h.get_text(strip=True)][:20]
        for level in ("h1", "h2", "h3")
    }

    text = soup.get_text(separator=" ", strip=True)
    mailto = [a["href"][7:].split("?")[0] for a in soup.select('a[href^="mailto:"]')]
    tel = [a["href"][4:] for a in soup.select('a[href^="tel:"]')]
    emails = list(dict.fromkeys(mailto + EMAIL_RE.findall(text)))
    phones = list(dict.fromkeys(tel + PHONE_RE.findall(text)))

    return {
        "url": url,
        "title": title,
        "meta_description": description,
        "headings": headings,
        "emails": emails[:5],
        "phones": phones[:5],
        "text": text[:MAX_TEXT_CHARS],
        "word_count": len(text.split()),
    }


class WebsiteScraper:
    def __init__(self, http_client: Optional[httpx.Client] = None):
        self.http_client = http_client

    def _fetch(self, url: str) -> httpx.Response:
        headers = {"User-Agent": USER_AGENT}
        if self.http_client is not None:
            return self.http_client.get(url, headers=headers)
        with httpx.Client(timeout=settings.http_timeout_seconds, follow_redirects=True) as client:
            return client.get(url, headers=headers)

    def scrape(self, url: str) -> dict[str, Any]:
        url = normalize_url(url)
        start = time.perf_counter()
        try:
            r = self._fetch(url)
            r.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("scrape_failed", url=url, error=str(e))
            raise ScrapeError(f"failed to fetch {url}: {e}") from e

        page = parse_page(r.text, str(r.url))
        page["fetch_ms"] = int((time.perf_counter() - start) * 1000)
        logger.info("scrape_completed", url=url, words=page["word_count"], ms=page["fetch_ms"])
        return page
