"""Website URL normalisation helpers."""

from __future__ import annotations

import ipaddress
import re
from typing import List, Optional
from urllib.parse import urlparse, urlunparse

from venue_enrichment.errors import InvalidUrl

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)
_HOST_RE = re.compile(r"^[a-z0-9](?:[a-z0-9\-_.]*[a-z0-9])?$", re.IGNORECASE)
ALLOWED_SCHEMES = ("https", "http")


def normalize(raw: str) -> str:
    """Turn a user or venue supplied website string into an absolute http(s) URL.

    Query strings and fragments are dropped and an empty path becomes ``/``, so
    ``normalize(normalize(x)) == normalize(x)``. Raises ``InvalidUrl`` when the
    value cannot be used; callers treat that as "no usable website".
    """

    url = (raw or "").strip()
    if not url:
        raise InvalidUrl("website is empty")
    if any(ch.isspace() for ch in url):
        raise InvalidUrl(f"website contains whitespace: {raw!r}")

    if not _SCHEME_RE.match(url):
        url = f"https://{url.lstrip('/')}"

    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError as exc:
        raise InvalidUrl(f"unparseable website {raw!r}: {exc}") from exc

    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidUrl(f"unsupported scheme {scheme!r} in {raw!r}")

    host = (parsed.hostname or "").rstrip(".").lower()
    if not host or not _is_valid_host(host):
        raise InvalidUrl(f"website has no valid host: {raw!r}")

    netloc = _netloc(host, port)
    path = parsed.path or "/"
    if not path.startswith("/"):
        path = f"/{path}"

    return urlunparse((scheme, netloc, path, "", "", ""))


def variants(raw: str) -> List[str]:
    """Return up to four fetch candidates, the normalised URL first.

    Order: original scheme/host, original scheme with ``www.`` toggled, the
    other scheme with the original host, the other scheme with ``www.`` toggled.
    """

    canonical = normalize(raw)
    parsed = urlparse(canonical)
    host = parsed.hostname or ""

    hosts = [host]
    if _can_toggle_www(host):
        hosts.append(host[4:] if host.startswith("www.") else f"www.{host}")

    other_scheme = "http" if parsed.scheme == "https" else "https"
    candidates: List[str] = []
    for scheme in (parsed.scheme, other_scheme):
        for candidate_host in hosts:
            url = urlunparse((scheme, _netloc(candidate_host, parsed.port), parsed.path, "", "", ""))
            if url not in candidates:
                candidates.append(url)
    return candidates[:4]


def domain_of(url: str) -> str:
    """Host of ``url`` without a leading ``www.``."""

    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def _netloc(host: str, port: Optional[int]) -> str:
    if ":" in host:
        host = f"[{host}]"
    return host if port is None else f"{host}:{port}"


def _is_valid_host(host: str) -> bool:
    if _is_ip(host):
        return True
    if not _HOST_RE.match(host):
        return False
    return "." in host or host == "localhost"


def _can_toggle_www(host: str) -> bool:
    if _is_ip(host) or "." not in host:
        return False
    # "www.com" style hosts have nothing left once the prefix is removed
    return not (host.startswith("www.") and host.count(".") < 2)


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True
