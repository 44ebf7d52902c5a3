from __future__ import annotations

"""Utility helpers: slugs, time and price text conversion."""
import re
import time
import unicodedata
from typing import Optional

SLUG_MAX_LENGTH = 50

_PRICE_NUMBER_RE = re.compile(r"(\d+(?:[.,]\d{1,2})?)")


def slugify(text: str, *, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Lowercase, accent-stripped, hyphenated identifier (may be empty)."""
    s = unicodedata.normalize("NFD", text.lower())
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = re.sub(r"[^a-z0-9]+", "-", s)
    s = s.strip("-")[:max_length]
    return s.strip("-")


def generate_slug(title: str, *, prefix: str = "producto") -> str:
    slug = slugify(title or "")
    return slug or f"{prefix}-{epoch_ms()}"


def epoch_ms() -> int:
    return int(time.time() * 1000)


def parse_price_value(text: Optional[str]) -> Optional[float]:
    """Read the first numeric amount out of a price string like '€12,50'."""
    if not text:
        return None
    cleaned = text.replace("€", "").replace("$", "").strip()
    m = _PRICE_NUMBER_RE.search(cleaned)
    if not m:
        return None
    try:
        return float(m.group(1).replace(",", "."))
    except ValueError:
        return None


def format_price(value: float, symbol: str = "€") -> str:
    return f"{symbol}{value:.2f}"


def to_int(s: Optional[str]) -> Optional[int]:
    """Parse counts like '1,234', '1.234' or '2.5k'."""
    if not s:
        return None
    s = s.strip()
    m = re.match(r"^(\d+(?:[.,]\d+)?)\s*[kK]\+?$", s)
    if m:
        return int(float(m.group(1).replace(",", ".")) * 1000)
    digits = re.sub(r"[^\d]", "", s)
    return int(digits) if digits else None
