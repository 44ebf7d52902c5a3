from __future__ import annotations

import pytest

from aliexpress_importer.exceptions import UnsupportedUrl
from aliexpress_importer.models import ScrapeResponse
from aliexpress_importer.parsers import (
    detect_antibot,
    discover_canonical_url,
    ensure_supported,
    extract_canonical_product_url,
    is_short_link,
    is_supported_url,
    parse_product_id,
)


def test_parse_product_id_common_urls():
    assert parse_product_id("https://www.aliexpress.com/item/1005001234567890.html") == "1005001234567890"
    assert parse_product_id("/item/1005009999999999.html?spm=...#hash") == "1005009999999999"
    assert parse_product_id("https://m.aliexpress.com/detail?productId=1005001111111111") == "1005001111111111"
    assert parse_product_id("https://aliexpress.com/i/1005002222222222.html") == "1005002222222222"
    assert parse_product_id("https://a.aliexpress.com/_ABCDE") is None


def test_parse_product_id_needs_eight_digits():
    assert parse_product_id("https://www.aliexpress.com/item/1234567.html") is None
    assert parse_product_id("https://www.aliexpress.com/item/12345678.html") == "12345678"


def test_short_link_hosts():
    assert is_short_link("https://s.click.aliexpress.com/e/_DdXyZ")
    assert is_short_link("https://a.aliexpress.com/_mKq1Zz")
    assert is_short_link("https://click.aliexpress.com/e/abc")
    assert is_short_link("https://aliexpress.ru/abcd")
    assert not is_short_link("https://www.aliexpress.com/item/1005001234567890.html")


def test_supported_vendor():
    assert is_supported_url("https://es.aliexpress.com/item/1005001234567890.html")
    assert not is_supported_url("https://www.amazon.com/dp/B000")
    with pytest.raises(UnsupportedUrl):
        ensure_supported("https://www.amazon.com/dp/B000")


def test_canonical_prefers_www_host():
    links = [
        "https://es.aliexpress.com/item/1005001234567890.html",
        "https://www.aliexpress.com/item/1005001234567890.html",
    ]
    assert extract_canonical_product_url("", links) == "https://www.aliexpress.com/item/1005001234567890.html"
    assert extract_canonical_product_url("<p>nothing here</p>", []) is None


def test_discover_canonical_from_link_tag():
    html = '<html><head><link rel="canonical" href="//www.aliexpress.com/item/123.html"></head></html>'
    resp = ScrapeResponse(ok=True, html=html)
    assert discover_canonical_url(resp) == "https://www.aliexpress.com/item/123.html"


def test_discover_canonical_from_metadata():
    resp = ScrapeResponse(ok=True, metadata={"ogUrl": "https://www.aliexpress.com/item/42.html"})
    assert discover_canonical_url(resp) == "https://www.aliexpress.com/item/42.html"


def test_detect_antibot_keywords():
    html = """
    <html><body>
      <h1>Please verify you are human</h1>
      <p>Slide to verify</p>
    </body></html>
    """
    assert detect_antibot(html) is True
    assert detect_antibot("<html><body><h1>Widget</h1></body></html>") is False
