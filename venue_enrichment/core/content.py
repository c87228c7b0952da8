"""Content-extraction services that turn a venue website into page text.

Both extractors expose ``extract(urls, *, formats, timeout, wait_time)`` and
return an ``ExtractionResponse``; they never raise for an unreachable site.
"""

from __future__ import annotations

import logging
import random
import re
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from urllib import robotparser
from urllib.parse import unquote, urljoin, urlparse, urlunparse

import phonenumbers
import requests
from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from venue_enrichment.core.config import Settings, get_settings
from venue_enrichment.core.urls import domain_of
from venue_enrichment.errors import ExtractionFailed
from venue_enrichment.models import ExtractedContent, ExtractionResponse
from venue_enrichment.vendors import firecrawl

logger = logging.getLogger(__name__)

USER_AGENT = "VenueEnrichmentBot/1.0 (+https://venue-leads.app/contact)"
REQUEST_TIMEOUT = 10
REQUEST_DELAY_RANGE = (1.0, 2.0)
DEFAULT_FORMATS = ("markdown", "text")
CONTACT_PAGE_CANDIDATES = (
    "/contact",
    "/contact-us",
    "/contactus",
    "/about",
    "/about-us",
    "/events",
    "/weddings",
    "/private-events",
    "/catering",
)
NON_CONTENT_TAGS = ["script", "style", "noscript", "template", "svg"]
MARKDOWN_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li"]
_MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_MARKDOWN_SYNTAX_RE = re.compile(r"[#*_`>]+")


class PlaywrightRenderer:
    """Thin wrapper around Playwright to render JavaScript-heavy pages."""

    def __init__(self, timeout_ms: int = 15000, wait_ms: int = 0) -> None:
        self._playwright = None
        self._browser = None
        self._timeout_ms = timeout_ms
        self._wait_ms = wait_ms

    def _ensure_browser(self) -> None:
        if self._playwright is None:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=True)

    def render(self, url: str) -> Tuple[str, str]:
        self._ensure_browser()
        page = self._browser.new_page()
        try:
            page.goto(url, wait_until="networkidle", timeout=self._timeout_ms)
            if self._wait_ms:
                page.wait_for_timeout(self._wait_ms)
            return page.url, page.content()
        finally:
            page.close()

    def close(self) -> None:
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None


def fetch_url(session: requests.Session, url: str, *, timeout: float = REQUEST_TIMEOUT) -> Optional[Tuple[str, BeautifulSoup]]:
    """Fetch a URL and return the final URL + soup when it is HTML content."""

    try:
        response = session.get(url, timeout=timeout, allow_redirects=True)
        if response.status_code >= 400:
            logger.debug("Skipping %s (status=%s)", url, response.status_code)
            return None
        content_type = response.headers.get("Content-Type", "").lower()
        if "text/html" not in content_type:
            logger.debug("Skipping non-HTML content at %s (content-type=%s)", url, content_type)
            return None
        return response.url, BeautifulSoup(response.text, "html.parser")
    except requests.RequestException as exc:
        logger.warning("Failed to fetch %s: %s", url, exc)
        return None


def page_text(soup: BeautifulSoup) -> str:
    for node in soup.find_all(NON_CONTENT_TAGS):
        node.decompose()
    return re.sub(r"\s+", " ", soup.get_text(" ", strip=True)).strip()


def page_markdown(soup: BeautifulSoup) -> str:
    """Render headings, paragraphs and list items as lightweight markdown."""

    lines: List[str] = []
    for node in soup.find_all(MARKDOWN_TAGS):
        text = re.sub(r"\s+", " ", node.get_text(" ", strip=True)).strip()
        if not text:
            continue
        if node.name.startswith("h"):
            lines.append(f"{'#' * int(node.name[1])} {text}")
        elif node.name == "li":
            lines.append(f"- {text}")
        else:
            lines.append(text)
    return "\n\n".join(lines)


def page_title(soup: BeautifulSoup) -> Optional[str]:
    if soup.title and soup.title.get_text(strip=True):
        return soup.title.get_text(" ", strip=True)
    og_title = soup.find("meta", attrs={"property": "og:title"})
    if og_title and og_title.get("content"):
        return og_title["content"].strip()
    return None


def page_description(soup: BeautifulSoup) -> Optional[str]:
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        node = soup.find("meta", attrs=attrs)
        if node and node.get("content", "").strip():
            return node["content"].strip()
    return None


def mailto_emails(hrefs: Iterable[str]) -> List[str]:
    emails: List[str] = []
    for href in hrefs:
        if not href.lower().startswith("mailto:"):
            continue
        email = unquote(href.split(":", 1)[1]).split("?")[0].strip().lower()
        if email and email not in emails:
            emails.append(email)
    return emails


def tel_phones(hrefs: Iterable[str], default_region: Optional[str]) -> List[str]:
    phones: List[str] = []
    for href in hrefs:
        if not href.lower().startswith("tel:"):
            continue
        phone = normalize_phone(unquote(href.split(":", 1)[1]), default_region)
        if phone and phone not in phones:
            phones.append(phone)
    return phones


def normalize_phone(raw: str, default_region: Optional[str]) -> Optional[str]:
    """E.164 form of ``raw`` when ``phonenumbers`` considers it possible."""

    try:
        parsed = phonenumbers.parse(raw.strip(), default_region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_possible_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def markdown_to_text(markdown: str) -> str:
    text = _MARKDOWN_IMAGE_RE.sub(" ", markdown or "")
    text = _MARKDOWN_LINK_RE.sub(r"\1", text)
    text = _MARKDOWN_SYNTAX_RE.sub(" ", text)
    return re.sub(r"\s+", " ", text).strip()


class SiteContentExtractor:
    """Crawl a limited set of pages for a venue domain and collect their content."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        max_pages: Optional[int] = None,
        request_delay: Tuple[float, float] = REQUEST_DELAY_RANGE,
    ) -> None:
        self.settings = settings or get_settings()
        self.max_pages = max_pages or self.settings.max_pages
        self.session_factory = session_factory
        self.request_delay = request_delay
        self.use_js_renderer = self.settings.enrich_use_js_renderer

    def _new_session(self) -> requests.Session:
        session = self.session_factory()
        session.headers.setdefault("User-Agent", USER_AGENT)
        session.headers.setdefault("Accept", "text/html,application/xhtml+xml")
        session.headers.setdefault("Accept-Language", "en-US,en;q=0.9")
        return session

    @staticmethod
    def _load_robot_rules(url: str) -> Optional[robotparser.RobotFileParser]:
        parsed = urlparse(url)
        robots_url = urlunparse((parsed.scheme, parsed.netloc, "/robots.txt", "", "", ""))
        parser_obj = robotparser.RobotFileParser()
        parser_obj.set_url(robots_url)
        try:
            parser_obj.read()
            return parser_obj
        except Exception as exc:  # noqa: BLE001
            logger.debug("Unable to read robots.txt from %s: %s", robots_url, exc)
            return None

    @staticmethod
    def _is_allowed(robots: Optional[robotparser.RobotFileParser], url: str) -> bool:
        if not robots:
            return True
        allowed = robots.can_fetch(USER_AGENT, url)
        if not allowed:
            logger.info("Robots.txt disallows %s", url)
        return allowed

    @staticmethod
    def _candidate_pages(base_url: str, soup: BeautifulSoup, domain: str) -> List[str]:
        discovered: List[str] = []
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if not href or href.startswith(("mailto:", "tel:", "#")):
                continue
            absolute = urljoin(base_url, href)
            parsed = urlparse(absolute)
            if parsed.scheme not in ("http", "https") or domain_of(absolute) != domain:
                continue
            path = parsed.path.lower()
            if any(candidate in path for candidate in CONTACT_PAGE_CANDIDATES):
                normalized = urlunparse((parsed.scheme, parsed.netloc, parsed.path, "", "", ""))
                if normalized not in discovered:
                    discovered.append(normalized)
        return discovered

    @staticmethod
    def _needs_js_render(soup: BeautifulSoup) -> bool:
        body_text = soup.get_text(" ", strip=True)
        if len(body_text) > 200:
            return False
        if soup.find(attrs={"data-page": True}):
            return True
        root = soup.find(id=re.compile("(app|root|__next)", re.IGNORECASE))
        return bool(root and not root.get_text(strip=True))

    def _render(self, renderer: Optional[PlaywrightRenderer], url: str) -> Optional[Tuple[str, BeautifulSoup]]:
        if renderer is None:
            return None
        try:
            final_url, html = renderer.render(url)
            return final_url, BeautifulSoup(html, "html.parser")
        except PlaywrightError as exc:
            logger.warning("Playwright failed for %s: %s", url, exc)
        return None

    def extract(
        self,
        urls: Sequence[str],
        *,
        formats: Sequence[str] = DEFAULT_FORMATS,
        timeout: Optional[float] = None,
        wait_time: Optional[int] = None,
    ) -> ExtractionResponse:
        if not urls:
            return ExtractionResponse(success=False, error="no URL supplied")

        timeout = timeout or self.settings.extraction_timeout
        wait_time = self.settings.extraction_wait_ms if wait_time is None else wait_time
        deadline = time.monotonic() + timeout
        root_url = urls[0]
        domain = domain_of(root_url)

        session = self._new_session()
        renderer = (
            PlaywrightRenderer(timeout_ms=REQUEST_TIMEOUT * 1000, wait_ms=wait_time) if self.use_js_renderer else None
        )
        try:
            return self._crawl(session, renderer, list(urls), domain, deadline, formats)
        finally:
            session.close()
            if renderer is not None:
                renderer.close()

    def _crawl(
        self,
        session: requests.Session,
        renderer: Optional[PlaywrightRenderer],
        visit_queue: List[str],
        domain: str,
        deadline: float,
        formats: Sequence[str],
    ) -> ExtractionResponse:
        root_url = visit_queue[0]
        robots = self._load_robot_rules(root_url)
        if not self._is_allowed(robots, root_url):
            return ExtractionResponse(success=False, error=f"robots.txt disallows {root_url}")

        visited: Set[str] = set()
        texts: List[str] = []
        markdowns: List[str] = []
        hrefs: List[str] = []
        title: Optional[str] = None
        description: Optional[str] = None
        delay_needed = False

        while visit_queue and len(visited) < self.max_pages:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.info("Extraction deadline reached for %s after %d pages", root_url, len(visited))
                break

            current_url = visit_queue.pop(0)
            if current_url in visited or not self._is_allowed(robots, current_url):
                continue

            if delay_needed and self.request_delay:
                time.sleep(random.uniform(*self.request_delay))

            fetched = fetch_url(session, current_url, timeout=min(REQUEST_TIMEOUT, remaining))
            delay_needed = True
            if not fetched:
                fetched = self._render(renderer, current_url)
                if not fetched:
                    continue

            final_url, soup = fetched
            if renderer is not None and self._needs_js_render(soup):
                fetched = self._render(renderer, final_url)
                if fetched:
                    final_url, soup = fetched

            if final_url in visited:
                continue
            visited.add(final_url)
            visited.add(current_url)

            if title is None:
                title = page_title(soup)
            if description is None:
                description = page_description(soup)
            page_hrefs = [anchor["href"].strip() for anchor in soup.find_all("a", href=True)]
            hrefs.extend(page_hrefs)
            candidates = self._candidate_pages(final_url, soup, domain)

            if "markdown" in formats:
                markdowns.append(page_markdown(soup))
            texts.append(page_text(soup))

            for candidate in candidates:
                if len(visited) + len(visit_queue) >= self.max_pages:
                    break
                if candidate not in visited and candidate not in visit_queue:
                    visit_queue.append(candidate)

        if not visited:
            return ExtractionResponse(success=False, error=f"no HTML pages could be fetched from {root_url}")

        content = ExtractedContent(
            url=root_url,
            text="\n\n".join(text for text in texts if text),
            markdown="\n\n".join(md for md in markdowns if md) or None,
            title=title,
            description=description,
            emails=mailto_emails(hrefs),
            phones=tel_phones(hrefs, self.settings.default_phone_region),
        )
        logger.info("Extracted %d characters from %d pages of %s", len(content.best_text()), len(visited), root_url)
        return ExtractionResponse(success=True, content=content)


class FirecrawlContentExtractor:
    """Adapter over the hosted Firecrawl scrape endpoint."""

    def __init__(self, *, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def extract(
        self,
        urls: Sequence[str],
        *,
        formats: Sequence[str] = DEFAULT_FORMATS,
        timeout: Optional[float] = None,
        wait_time: Optional[int] = None,
    ) -> ExtractionResponse:
        if not urls:
            return ExtractionResponse(success=False, error="no URL supplied")

        timeout = timeout or self.settings.extraction_timeout
        wait_time = self.settings.extraction_wait_ms if wait_time is None else wait_time
        # Firecrawl has no plain-text format; text is derived from markdown.
        requested = ["markdown", "links"]
        if "html" in formats:
            requested.append("html")

        pages: List[Dict[str, Any]] = []
        errors: List[str] = []
        for url in urls:
            try:
                pages.append(
                    firecrawl.scrape(
                        url,
                        self.settings.firecrawl_api_key,
                        formats=requested,
                        timeout_ms=int(timeout * 1000),
                        wait_for_ms=wait_time,
                    )
                )
            except (firecrawl.FirecrawlError, requests.RequestException, ValueError) as exc:
                failure = ExtractionFailed(f"{url}: {exc}")
                logger.warning("Firecrawl extraction failed: %s", failure)
                errors.append(str(failure))

        if not pages:
            return ExtractionResponse(success=False, error="; ".join(errors) or "no content")

        markdown = "\n\n".join((page.get("markdown") or "").strip() for page in pages).strip()
        metadata = pages[0].get("metadata") or {}
        links = [link for page in pages for link in (page.get("links") or []) if isinstance(link, str)]
        content = ExtractedContent(
            url=urls[0],
            text=markdown_to_text(markdown),
            markdown=markdown or None,
            title=metadata.get("title") or metadata.get("ogTitle"),
            description=metadata.get("description") or metadata.get("ogDescription"),
            emails=mailto_emails(links),
            phones=tel_phones(links, self.settings.default_phone_region),
        )
        return ExtractionResponse(success=True, content=content)


def build_extractor(settings: Optional[Settings] = None) -> Any:
    settings = settings or get_settings()
    backend = settings.resolved_extractor_backend
    logger.info("Using %s content extractor", backend)
    if backend == "firecrawl":
        return FirecrawlContentExtractor(settings=settings)
    return SiteContentExtractor(settings=settings)
