from __future__ import annotations

"""URL and page-structure parsing helpers.

Pure functions for testability. These don't call the network.
"""
import re
from typing import Any, Iterable, Mapping, Optional

from parsel import Selector

from .exceptions import UnsupportedUrl
from .models import ScrapeResponse


PRODUCT_ID_REGEX = re.compile(r"(?:item/|productId=|itemId=|/i/)(\d{8,})", re.I)
SHORT_LINK_REGEX = re.compile(
    r"(?:^|//)(?:s\.click|click|a)\.aliexpress\.com|aliexpress\.ru/\w+", re.I
)
ITEM_URL_REGEX = re.compile(r"https?://[a-z0-9.-]*aliexpress\.[a-z.]+/item/\d+\.html", re.I)
VENDOR_REGEX = re.compile(r"aliexpress\.", re.I)

DESKTOP_ITEM_URL = "https://www.aliexpress.com/item/{pid}.html"
MOBILE_ITEM_URL = "https://m.aliexpress.com/item/{pid}.html"


def parse_product_id(text: Optional[str]) -> Optional[str]:
    """Extract product ID from common AliExpress URL formats or page text."""
    if not text:
        return None
    m = PRODUCT_ID_REGEX.search(text)
    return m.group(1) if m else None


def contains_product_id(url: Optional[str]) -> bool:
    return parse_product_id(url) is not None


def is_short_link(url: str) -> bool:
    return bool(SHORT_LINK_REGEX.search(url))


def is_supported_url(url: str) -> bool:
    return bool(VENDOR_REGEX.search(url))


def ensure_supported(url: str) -> None:
    if not is_supported_url(url):
        raise UnsupportedUrl("Unsupported provider")


def canonical_item_url(pid: str) -> str:
    return DESKTOP_ITEM_URL.format(pid=pid)


def mobile_item_url(pid: str) -> str:
    return MOBILE_ITEM_URL.format(pid=pid)


def extract_canonical_product_url(html: str, links: Iterable[str]) -> Optional[str]:
    """Pick an item page URL mentioned in the link list or the markup.

    The www host wins when several candidates are present.
    """
    candidates = [link for link in links if ITEM_URL_REGEX.search(link or "")]
    candidates.extend(m.group(0) for m in ITEM_URL_REGEX.finditer(html or ""))
    if not candidates:
        return None
    unique = list(dict.fromkeys(candidates))
    for u in unique:
        if "www.aliexpress.com" in u:
            return u
    return unique[0]


def extract_canonical_from_html(html: str) -> Optional[str]:
    if not html:
        return None
    sel = Selector(text=html)
    href = sel.xpath("//link[@rel='canonical']/@href").get()
    if href and href.strip():
        return href.strip()
    og_url = sel.xpath("//meta[@property='og:url']/@content").get()
    if og_url and og_url.strip():
        return og_url.strip()
    return None


def extract_canonical_from_metadata(metadata: Mapping[str, Any]) -> Optional[str]:
    for key in ("ogUrl", "canonical", "canonical_url"):
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def discover_canonical_url(response: ScrapeResponse) -> Optional[str]:
    """Best canonical product URL a rendered page points to, if any."""
    url = (
        extract_canonical_product_url(response.html, response.links)
        or extract_canonical_from_html(response.html)
        or extract_canonical_from_metadata(response.metadata)
    )
    if url and url.startswith("//"):
        url = "https:" + url
    return url


def detect_antibot(html: str) -> bool:
    html_lower = html.lower()
    indicators = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "slide to verify",
        "punish?x5secdata",
    ]
    return any(ind in html_lower for ind in indicators)
