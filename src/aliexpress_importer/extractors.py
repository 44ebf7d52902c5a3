from __future__ import annotations

"""Field extractors for AliExpress product pages.

Each extractor is a pure function over the text surfaces of a ScrapeResponse
(markdown, html, links, metadata) and returns one field. A miss is never an
error: the field falls back to its documented default.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from parsel import Selector

from .logger import get_logger
from .models import VariantGroup, VariantOption
from .utils import format_price, parse_price_value, to_int

LOGGER = get_logger(__name__)

TITLE_MAX_LENGTH = 120
DESCRIPTION_MAX_LENGTH = 800
PRICE_MIN = 0.0
PRICE_MAX = 10000.0
RANGE_THRESHOLD = 1.2
ORIGINAL_THRESHOLD = 1.5

_AMOUNT = r"(\d+(?:[.,]\d{1,2})?)"

EUR_PATTERNS = [
    re.compile(r"€\s*" + _AMOUNT),
    re.compile(_AMOUNT + r"\s*€"),
    re.compile(r"EUR\s*" + _AMOUNT, re.I),
    re.compile(_AMOUNT + r"\s*EUR", re.I),
]
USD_PATTERNS = [
    re.compile(r"US\s*\$\s*" + _AMOUNT, re.I),
    re.compile(r"\$\s*" + _AMOUNT),
]

_VENDOR_SUFFIX_RE = re.compile(r"\s*[-|–]\s*ali\s?express.*$", re.I)
_PROMO_PREFIX_RE = re.compile(r"^\d+(?:\.\d+)?%?\s*OFF\s*", re.I)
_BUY_PREFIX_RE = re.compile(r"^\s*(?:Comprar|Buy)\s+", re.I)
_HEADING_RE = re.compile(r"^#\s+(.+)$", re.M)

_RATING_RE = re.compile(r"(?<![\d.,])(\d(?:[.,]\d)?)\s*(?:/\s*5|stars?|estrellas?)", re.I)
_COUNT = r"(\d+(?:[.,]\d+)?\s*[kK]\+?|\d{1,3}(?:[.,]\d{3})+|\d+)\+?"
_REVIEWS_RE = re.compile(_COUNT + r"\s*(?:reviews?|reseñas?|opiniones?|valoraciones?|ratings?)", re.I)
_ORDERS_RE = re.compile(_COUNT + r"\s*(?:ventas?|vendidos?|pedidos?|orders?|sold)", re.I)

_SHIPPING_RE = re.compile(
    r"(?:env[ií]o|shipping)[^\n]*?(\d+(?:[.,]\d{1,2})?)\s*(€|EUR|US\s*\$|\$|US)", re.I
)
_SHIPPING_PREFIX_RE = re.compile(
    r"(?:env[ií]o|shipping)[^\n]*?(€|US\s*\$|\$)\s*(\d+(?:[.,]\d{1,2})?)", re.I
)
_FREE_SHIPPING_RE = re.compile(r"env[ií]o\s+gratis|free\s+shipping", re.I)
_SHIPPING_LINE_RE = re.compile(r"env[ií]o|shipping", re.I)
_DELIVERY_RE = re.compile(
    r"(?:entrega|delivery|llega)[^\n]*?(\d+\s*(?:-|a|to)?\s*\d*\s*(?:d[ií]as?|days?))", re.I
)

_SKU_JSON_RE = re.compile(r"\"(?:sku|skuId|skuCode)\"\s*:\s*\"?([A-Za-z0-9-]{3,})\"?")
_SKU_LABEL_RE = re.compile(r"\bSKU\s*[:#]\s*([A-Z0-9-]{3,})")
_SKU_PROPERTIES_RE = re.compile(r"\"skuProperties\"\s*:\s*\[")


@dataclass
class PriceInfo:
    price: str = ""
    original_price: str = ""
    price_range: str = ""
    currency: str = "€"
    found: bool = False


def _meta_content(sel: Selector, xpath: str) -> str:
    value = sel.xpath(xpath).get()
    return value.strip() if value else ""


def clean_title(title: str) -> str:
    title = _VENDOR_SUFFIX_RE.sub("", title).strip()
    title = _PROMO_PREFIX_RE.sub("", title).strip()
    title = _BUY_PREFIX_RE.sub("", title).strip()
    return title


def extract_title(markdown: str, html: str, metadata: Mapping[str, Any]) -> str:
    """og:title, twitter:title, <title>, first markdown heading, provider metadata."""
    candidates: List[str] = []
    if html:
        sel = Selector(text=html)
        candidates.append(_meta_content(sel, "//meta[@property='og:title']/@content"))
        candidates.append(_meta_content(sel, "//meta[@name='twitter:title']/@content"))
        candidates.append(_meta_content(sel, "//title/text()"))
    if markdown:
        m = _HEADING_RE.search(markdown)
        if m:
            candidates.append(m.group(1).strip())
    for key in ("ogTitle", "title"):
        value = metadata.get(key)
        if isinstance(value, str):
            candidates.append(value)

    for candidate in candidates:
        title = clean_title(candidate or "")
        if title:
            return title[:TITLE_MAX_LENGTH].strip()
    return ""


def extract_description(markdown: str, metadata: Mapping[str, Any]) -> str:
    meta_desc = metadata.get("description")
    if isinstance(meta_desc, str) and meta_desc.strip():
        return meta_desc.strip()[:DESCRIPTION_MAX_LENGTH]
    if not markdown:
        return ""
    for line in markdown.splitlines():
        line = line.strip()
        if len(line) > 40 and not line.startswith(("#", "![")):
            return line[:DESCRIPTION_MAX_LENGTH]
    return ""


def _collect(patterns: List[re.Pattern], content: str) -> List[float]:
    values: List[float] = []
    for pattern in patterns:
        for m in pattern.finditer(content):
            try:
                value = float(m.group(1).replace(",", "."))
            except ValueError:
                continue
            if PRICE_MIN < value < PRICE_MAX:
                values.append(value)
    return values


def extract_prices(
    markdown: str,
    metadata: Mapping[str, Any],
    *,
    range_label: str = "Desde",
) -> PriceInfo:
    """Lowest tagged amount is the "from" price; a wide spread adds range/original.

    Markdown lines about shipping are left out so a shipping fee is never
    taken for the product price.
    """
    lines = [line for line in (markdown or "").splitlines() if not _SHIPPING_LINE_RE.search(line)]
    parts = ["\n".join(lines)]
    for key in ("description", "title"):
        value = metadata.get(key)
        if isinstance(value, str):
            parts.append(value)
    content = " ".join(parts)

    symbol = "€"
    values = _collect(EUR_PATTERNS, content)
    if not values:
        values = _collect(USD_PATTERNS, content)
        symbol = "$"
    if not values:
        return PriceInfo()

    values.sort()
    low, high = values[0], values[-1]
    info = PriceInfo(price=format_price(low, symbol), currency=symbol, found=True)
    if len(values) > 1 and high > low * RANGE_THRESHOLD:
        info.price_range = f"{range_label} {format_price(low, symbol)}"
        if high > low * ORIGINAL_THRESHOLD:
            info.original_price = format_price(high, symbol)
    return info


def calculate_discount(current_price: str, original_price: str) -> str:
    """'-NN%' when original is above current, else ''."""
    current = parse_price_value(current_price)
    original = parse_price_value(original_price)
    if current is None or original is None:
        return ""
    if original > current > 0:
        discount = round((original - current) / original * 100)
        if 0 < discount < 100:
            return f"-{discount}%"
    return ""


def extract_rating(markdown: str) -> Optional[float]:
    m = _RATING_RE.search(markdown or "")
    if not m:
        return None
    rating = float(m.group(1).replace(",", "."))
    if rating < 1:
        return None
    return min(rating, 5.0)


def _count(rx: re.Pattern, markdown: str) -> Optional[int]:
    m = rx.search(markdown or "")
    if not m:
        return None
    raw = m.group(1)
    if not re.search(r"[kK]", raw):
        raw = re.sub(r"[.,]", "", raw)
    return to_int(raw)


def extract_review_count(markdown: str) -> Optional[int]:
    return _count(_REVIEWS_RE, markdown)


def extract_orders_count(markdown: str) -> Optional[int]:
    return _count(_ORDERS_RE, markdown)


def extract_shipping(markdown: str) -> Tuple[str, str]:
    """Return (shipping_cost, delivery_time), empty strings when not found."""
    shipping_cost = ""
    m = _SHIPPING_RE.search(markdown or "")
    if m:
        unit = m.group(2).upper().replace(" ", "")
        symbol = "€" if unit in ("€", "EUR") else "$"
        shipping_cost = f"{symbol}{m.group(1)}"
    else:
        m = _SHIPPING_PREFIX_RE.search(markdown or "")
        if m:
            symbol = "€" if m.group(1) == "€" else "$"
            shipping_cost = f"{symbol}{m.group(2)}"
        elif _FREE_SHIPPING_RE.search(markdown or ""):
            shipping_cost = "€0.00"

    delivery_time = ""
    m = _DELIVERY_RE.search(markdown or "")
    if m:
        delivery_time = " ".join(m.group(1).split())
    return shipping_cost, delivery_time


def extract_sku(html: str) -> str:
    m = _SKU_JSON_RE.search(html or "")
    if m:
        return m.group(1)
    m = _SKU_LABEL_RE.search(html or "")
    if m:
        return m.group(1)
    return ""


def _option_image(value: Mapping[str, Any]) -> Optional[str]:
    for key in ("skuPropertyImagePath", "imageUrl", "skuPropertyImage", "skuPropertyImageSummPath"):
        url = value.get(key)
        if isinstance(url, str) and url.strip():
            url = url.strip()
            return "https:" + url if url.startswith("//") else url
    return None


def extract_variants(html: str) -> List[VariantGroup]:
    """Decode the embedded ``skuProperties`` array into variant groups."""
    m = _SKU_PROPERTIES_RE.search(html or "")
    if not m:
        return []
    start = m.end() - 1
    try:
        raw, _ = json.JSONDecoder().raw_decode(html, start)
    except ValueError as e:
        LOGGER.debug("Discarding malformed skuProperties JSON: %s", e)
        return []
    if not isinstance(raw, list):
        return []

    groups: List[VariantGroup] = []
    for prop in raw:
        if not isinstance(prop, dict):
            continue
        name = str(prop.get("skuPropertyName") or prop.get("name") or "").strip()
        values = prop.get("skuPropertyValues") or prop.get("values") or []
        if not name or not isinstance(values, list):
            continue
        options: List[VariantOption] = []
        for v in values:
            if not isinstance(v, dict):
                continue
            label = str(
                v.get("propertyValueDisplayName") or v.get("propertyValueName") or v.get("name") or v.get("value") or ""
            ).strip()
            if label:
                options.append(VariantOption(label=label, image_url=_option_image(v)))
        if options:
            groups.append(VariantGroup(group=name, options=options))
    return groups
