from __future__ import annotations

"""Scrapfly-backed page fetcher.

One provider call per URL, with JS rendering and scroll interactions so that
lazy-loaded gallery images make it into the markup. The rendered HTML is then
split into the four surfaces the extractors read: markdown, html, links and
metadata.
"""
import asyncio
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Comment, Doctype, NavigableString, Tag
from parsel import Selector

from .config import ImporterConfig
from .exceptions import ProviderError
from .logger import get_logger
from .models import ScrapeResponse
from .parsers import detect_antibot

LOGGER = get_logger(__name__)

BROWSER_HEADERS = {
    "accept-language": "en-US,en;q=0.9,es;q=0.8",
    "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
}

# wait for hydration, focus the page, scroll to trigger lazy images, come back up
SCROLL_SCENARIO: List[Dict[str, Any]] = [
    {"wait": 5000},
    {"click": {"selector": "body", "ignore_if_not_visible": True}},
    {"wait": 1000},
    {"scroll": {"selector": "bottom"}},
    {"wait": 3000},
    {"scroll": {"selector": "body"}},
    {"wait": 2000},
]

_HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
_BLOCK_TAGS = {
    "p", "div", "li", "ul", "ol", "section", "article", "header", "footer", "main", "nav", "aside",
    "table", "thead", "tbody", "tfoot", "tr", "td", "th", "dl", "dd", "dt", "form", "fieldset",
    "blockquote", "pre", "figure", "figcaption", "address", "hr",
}
_SKIP_TAGS = {"script", "style", "noscript", "template", "svg", "head"}


def _require_scrapfly():
    try:
        from scrapfly import ScrapeConfig, ScrapflyClient  # type: ignore
        from scrapfly.errors import ScrapflyError  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise ProviderError("Scrapfly SDK not installed. Run: pip install scrapfly-sdk") from e
    return ScrapflyClient, ScrapeConfig, ScrapflyError


def extract_links(html: str, base_url: str) -> List[str]:
    sel = Selector(text=html)
    out: List[str] = []
    for raw in sel.xpath("//a/@href | //img/@src | //link/@href | //source/@srcset").getall():
        raw = (raw or "").strip().split(" ")[0]
        if not raw or raw.startswith(("javascript:", "mailto:", "data:", "#")):
            continue
        out.append(urljoin(base_url, raw))
    return list(dict.fromkeys(out))


def extract_metadata(html: str, url: str, status_code: Optional[int] = None) -> Dict[str, Any]:
    sel = Selector(text=html)

    def meta(xpath: str) -> Optional[str]:
        value = sel.xpath(xpath).get()
        return value.strip() if value and value.strip() else None

    metadata: Dict[str, Any] = {
        "title": meta("//title/text()"),
        "description": meta("//meta[@name='description']/@content")
        or meta("//meta[@property='og:description']/@content"),
        "ogTitle": meta("//meta[@property='og:title']/@content"),
        "ogImage": meta("//meta[@property='og:image']/@content"),
        "ogUrl": meta("//meta[@property='og:url']/@content"),
        "canonical": meta("//link[@rel='canonical']/@href"),
        "sourceURL": url,
        "statusCode": status_code,
    }
    return {k: v for k, v in metadata.items() if v is not None}


def html_to_markdown(html: str) -> str:
    """Lightweight markdown rendering: headings, images and one line per block.

    Inline markup (spans, links, bold) stays on its block's line, so split
    price fragments like ``<span>12</span><span>,50</span>`` read as ``12,50``.
    """
    soup = BeautifulSoup(html, "html.parser")
    body = soup.body or soup
    lines: List[str] = []
    buf: List[str] = []

    def flush() -> None:
        text = " ".join("".join(buf).split())
        buf.clear()
        if text:
            lines.append(text)

    def walk(node: Tag) -> None:
        for child in node.children:
            if isinstance(child, (Comment, Doctype)):
                continue
            if isinstance(child, NavigableString):
                buf.append(str(child))
                continue
            if not isinstance(child, Tag) or child.name in _SKIP_TAGS:
                continue
            if child.name in _HEADING_TAGS:
                flush()
                text = " ".join(child.get_text("").split())
                if text:
                    lines.append(f"{'#' * int(child.name[1])} {text}")
            elif child.name == "img":
                flush()
                src = child.get("src") or child.get("data-src") or ""
                if src:
                    lines.append(f"![{child.get('alt', '')}]({src})")
            elif child.name == "br":
                flush()
            elif child.name in _BLOCK_TAGS:
                flush()
                walk(child)
                flush()
            else:
                walk(child)

    walk(body)
    flush()
    return "\n".join(lines)


def build_response(html: str, url: str, status_code: Optional[int] = 200) -> ScrapeResponse:
    """Turn rendered HTML into the extractor surfaces."""
    if detect_antibot(html):
        LOGGER.warning("Anti-bot markers found in page for %s; extraction may be partial", url)
    return ScrapeResponse(
        ok=True,
        markdown=html_to_markdown(html),
        html=html,
        links=extract_links(html, url),
        metadata=extract_metadata(html, url, status_code),
        url=url,
        status_code=status_code,
    )


async def fetch_page(url: str, cfg: ImporterConfig, *, client: Any = None) -> ScrapeResponse:
    """Fetch one URL through Scrapfly.

    Provider-side failures come back as ``ok=False``; transport failures
    (timeouts, connection errors) propagate to the caller.
    """
    ScrapflyClient, ScrapeConfig, ScrapflyError = _require_scrapfly()
    if client is None:
        if not cfg.scrapfly_key:
            raise ProviderError("Scrapfly API key required: set SCRAPFLY_KEY")
        client = ScrapflyClient(key=cfg.scrapfly_key)

    scrape_cfg = ScrapeConfig(
        url,
        asp=True,
        country=cfg.country,
        headers=dict(BROWSER_HEADERS),
        render_js=True,
        auto_scroll=True,
        rendering_wait=cfg.rendering_wait_ms,
        js_scenario=SCROLL_SCENARIO,
        retry=False,
        timeout=cfg.provider_timeout_ms,
    )
    LOGGER.debug("Scrapfly request for %s", url)
    try:
        res = await asyncio.wait_for(client.async_scrape(scrape_cfg), timeout=cfg.request_timeout)
    except ScrapflyError as e:
        LOGGER.warning("Scrapfly error for %s: %s", url, e)
        return ScrapeResponse.failed(url, str(e) or "Failed to scrape")

    status = getattr(res, "status_code", None)
    if status is None or not 200 <= int(status) < 300:
        return ScrapeResponse.failed(url, f"Upstream returned HTTP {status}", status)

    final_url = url
    scrape_result = getattr(res, "scrape_result", None)
    if isinstance(scrape_result, dict) and scrape_result.get("url"):
        final_url = scrape_result["url"]
    return build_response(res.content or "", final_url, int(status))
