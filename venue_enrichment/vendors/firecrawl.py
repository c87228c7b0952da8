"""Client utilities for the Firecrawl scraping API."""

import logging
from typing import Any, Dict, Iterable, Optional

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://api.firecrawl.dev/v1"


class FirecrawlError(RuntimeError):
    """Raised when Firecrawl rejects a request or reports an unsuccessful scrape."""


def scrape(
    url: str,
    api_key: str,
    *,
    formats: Iterable[str] = ("markdown", "links"),
    timeout_ms: int = 120000,
    wait_for_ms: int = 5000,
) -> Dict[str, Any]:
    """Scrape one URL and return the ``data`` block of the response."""

    if not api_key:
        raise FirecrawlError("FIRECRAWL_API_KEY is not configured")

    payload = {
        "url": url,
        "formats": list(formats),
        "timeout": timeout_ms,
        "waitFor": wait_for_ms,
        "onlyMainContent": False,
    }
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    # Leave headroom over the server-side timeout before giving up locally.
    response = _SESSION.post(
        f"{_BASE_URL}/scrape",
        json=payload,
        headers=headers,
        timeout=timeout_ms / 1000 + 10,
    )
    if response.status_code >= 400:
        logger.error("scrape failed: status=%s, body=%s", response.status_code, response.text[:300])
        raise FirecrawlError(f"Firecrawl returned HTTP {response.status_code} for {url}")

    body = response.json()
    if not isinstance(body, dict):
        raise FirecrawlError(f"Firecrawl returned a non-object body for {url}")
    if not body.get("success"):
        message: Optional[str] = body.get("error") or "unsuccessful scrape"
        logger.error("scrape failed for %s: %s", url, message)
        raise FirecrawlError(message)
    data = body.get("data") or {}
    if not isinstance(data, dict):
        raise FirecrawlError(f"Firecrawl returned malformed data for {url}")
    return data
