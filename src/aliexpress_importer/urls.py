from __future__ import annotations

"""Short-link resolution and product URL canonicalization.

`resolve_url` never raises for network problems: a wrong canonical guess is
acceptable, a hard failure is not.
"""
import re
from typing import Optional, Tuple
from urllib.parse import urlsplit

import requests

from .logger import get_logger
from .models import ResolvedUrlSet
from .parsers import (
    canonical_item_url,
    contains_product_id,
    is_short_link,
    mobile_item_url,
    parse_product_id,
)

LOGGER = get_logger(__name__)

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

_META_REFRESH_RE = re.compile(
    r"<meta[^>]+http-equiv=[\"']?refresh[\"']?[^>]*content=[\"'][^\"']*?url=([^\"'\s>]+)",
    re.I,
)
_JS_LOCATION_RE = re.compile(
    r"(?:window\.)?location(?:\.href)?\s*=\s*[\"'](https?://[^\"']+)[\"']", re.I
)


def ensure_scheme(url: str) -> str:
    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        url = f"https://{url.lstrip('/')}"
    return url


def strip_query(url: str) -> str:
    """Keep origin + path only."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


def find_redirect_target(body: str) -> Optional[str]:
    """Client-side redirect target (meta refresh or JS location) in a page body."""
    for rx in (_META_REFRESH_RE, _JS_LOCATION_RE):
        m = rx.search(body or "")
        if m:
            return m.group(1).replace("&amp;", "&")
    return None


def _follow_head(session, url: str, headers: dict, timeout: float) -> str:
    res = session.head(url, allow_redirects=True, headers=headers, timeout=timeout)
    res.raise_for_status()
    return res.url


def _follow_get(session, url: str, headers: dict, timeout: float) -> Tuple[str, str]:
    res = session.get(url, allow_redirects=True, headers=headers, timeout=timeout)
    return res.url, res.text or ""


def _build(original: str, formatted: str, resolved: str = "") -> ResolvedUrlSet:
    pid = parse_product_id(formatted) or parse_product_id(original)
    cleaned = strip_query(formatted)
    if pid:
        return ResolvedUrlSet(
            original_input_url=original,
            formatted_url=cleaned,
            scrape_url=canonical_item_url(pid),
            mobile_url=mobile_item_url(pid),
            resolved_url=resolved,
            product_id=pid,
        )
    return ResolvedUrlSet(
        original_input_url=original,
        formatted_url=cleaned,
        scrape_url=cleaned,
        resolved_url=resolved,
    )


def resolve_url(
    raw_url: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: float = 15.0,
    user_agent: str = DEFAULT_UA,
) -> ResolvedUrlSet:
    """Resolve a pasted link into scrape/mobile/resolved candidate URLs.

    Blank input raises ValueError; network problems never raise.
    """
    if not raw_url or not raw_url.strip():
        raise ValueError("URL is required")
    formatted = ensure_scheme(raw_url)
    original = formatted
    resolved = ""

    if not is_short_link(formatted):
        return _build(original, formatted)

    http = session or requests.Session()
    headers = {"User-Agent": user_agent, "Accept-Language": "en-US,en;q=0.9,es;q=0.8"}
    try:
        try:
            candidate = _follow_head(http, formatted, headers, timeout)
        except requests.RequestException as e:
            LOGGER.debug("HEAD failed for %s (%s); retrying with GET", formatted, e)
            try:
                final_url, body = _follow_get(http, formatted, headers, timeout)
            except requests.RequestException as e2:
                LOGGER.debug("GET failed for %s: %s", formatted, e2)
                return _build(original, formatted)
            body_pid = parse_product_id(body)
            if body_pid:
                return _build(original, canonical_item_url(body_pid))
            candidate = find_redirect_target(body) or final_url

        if candidate and candidate != formatted:
            if contains_product_id(candidate):
                formatted = candidate
            else:
                resolved = candidate
    finally:
        if session is None:
            http.close()

    result = _build(original, formatted, resolved)
    LOGGER.info("Resolved %s -> %s", original, result.scrape_url)
    return result
