from __future__ import annotations

import asyncio
import random

import pytest

from aliexpress_importer import main, rehost
from aliexpress_importer.config import ImporterConfig
from aliexpress_importer.exceptions import StorageError
from aliexpress_importer.fetcher import build_response
from aliexpress_importer.main import ProductImporter, parse_product
from aliexpress_importer.models import ScrapeResponse

PID = "1005001234567890"
ITEM_URL = f"https://www.aliexpress.com/item/{PID}.html"
MOBILE_URL = f"https://m.aliexpress.com/item/{PID}.html"

EMPTY_WITH_CANONICAL = '<html><head><link rel="canonical" href="https://www.aliexpress.com/item/123.html"></head><body></body></html>'


class ScriptedFetcher:
    """Returns a scripted response (or raises) per URL and records call order."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    async def __call__(self, url):
        self.calls.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            return ScrapeResponse.failed(url, "Failed to scrape")
        return build_response(page, url)


class MemoryStore:
    def __init__(self, fail_all=False):
        self.fail_all = fail_all
        self.saved = {}

    def upload(self, path, data, content_type):
        if self.fail_all:
            raise StorageError("bucket unavailable")
        self.saved[path] = data
        return f"https://storage.test/{path}"


def _cfg(**kw):
    kw.setdefault("scrapfly_key", "k")
    kw.setdefault("rehost_images", False)
    return ImporterConfig(**kw).finalize()


def test_parse_product_full_page(product_html):
    product = parse_product(build_response(product_html, ITEM_URL), "https://s.click.aliexpress.com/e/_x", ITEM_URL)
    assert product.title == "Widget"
    assert product.slug == "widget"
    assert product.price == "€12.50"
    assert product.original_price == "€29.99"
    assert product.discount == "-58%"
    assert product.price_found
    assert product.rating == 4.7
    assert product.review_count == 2345
    assert product.orders_count == 1200
    assert product.shipping_cost == "€0.00"
    assert product.delivery_time == "7-15 días"
    assert product.sku == "12000012345678"
    assert [o.label for o in product.variants[0].options] == ["Black", "White"]
    assert "https://ae01.alicdn.com/kf/Sa1b2c3d4e5.jpg" in product.images
    assert not any("avatar" in u for u in product.images)
    assert product.affiliate_link == "https://s.click.aliexpress.com/e/_x"
    assert product.aliexpress_url == ITEM_URL


def test_parse_product_placeholders_policy():
    empty = build_response("<html><body><h1>Thing</h1></body></html>", ITEM_URL)
    on = parse_product(empty, ITEM_URL, ITEM_URL, _cfg(), rng=random.Random(1))
    assert on.rating == 4.5
    assert 100 <= on.review_count < 600
    assert 100 <= on.orders_count < 600
    assert on.price == "€0.00"
    assert not on.price_found

    off = parse_product(empty, ITEM_URL, ITEM_URL, _cfg(placeholder_metrics=False))
    assert off.rating is None
    assert off.review_count is None
    assert off.orders_count is None


@pytest.mark.asyncio
async def test_canonical_stage_used_when_first_is_partial(product_html):
    fetch = ScriptedFetcher({ITEM_URL: EMPTY_WITH_CANONICAL, "https://www.aliexpress.com/item/123.html": product_html})
    async with ProductImporter(_cfg(), fetcher=fetch) as importer:
        result = await importer.import_product(f"https://es.aliexpress.com/item/{PID}.html?spm=1")
    assert result.success
    assert fetch.calls == [ITEM_URL, "https://www.aliexpress.com/item/123.html"]
    assert result.data.title == "Widget"
    assert result.data.aliexpress_url == "https://www.aliexpress.com/item/123.html"
    assert [s.stage for s in result.stages] == ["first", "canonical"]
    assert result.stages[-1].complete


@pytest.mark.asyncio
async def test_chain_falls_through_to_mobile(product_html):
    fetch = ScriptedFetcher({ITEM_URL: asyncio.TimeoutError(), MOBILE_URL: product_html})
    async with ProductImporter(_cfg(), fetcher=fetch) as importer:
        result = await importer.import_product(ITEM_URL)
    assert result.success
    assert fetch.calls == [ITEM_URL, MOBILE_URL]
    assert result.stages[0].error == "TimeoutError"
    assert result.data.title == "Widget"


@pytest.mark.asyncio
async def test_partial_result_is_returned_when_chain_is_exhausted():
    page = "<html><head><title>Only Title - AliExpress</title></head><body></body></html>"
    fetch = ScriptedFetcher({ITEM_URL: page, MOBILE_URL: page})
    async with ProductImporter(_cfg(), fetcher=fetch) as importer:
        result = await importer.import_product(ITEM_URL)
    assert result.success
    assert result.data.title == "Only Title"
    assert result.data.images == []
    assert len(fetch.calls) == 2


@pytest.mark.asyncio
async def test_all_stages_failing_returns_error():
    fetch = ScriptedFetcher({})
    async with ProductImporter(_cfg(), fetcher=fetch) as importer:
        result = await importer.import_product(ITEM_URL)
    assert not result.success
    assert result.error == "Failed to scrape"
    assert result.to_dict() == {"success": False, "error": "Failed to scrape"}


@pytest.mark.asyncio
async def test_max_fetches_bounds_the_chain():
    fetch = ScriptedFetcher({})
    async with ProductImporter(_cfg(max_fetches=1), fetcher=fetch) as importer:
        await importer.import_product(ITEM_URL)
    assert fetch.calls == [ITEM_URL]


@pytest.mark.asyncio
async def test_input_validation():
    importer = ProductImporter(_cfg(), fetcher=ScriptedFetcher({}))
    assert (await importer.import_product("  ")).error == "URL is required"
    assert (await importer.import_product("https://www.ebay.com/itm/1")).error == "Unsupported provider"


@pytest.mark.asyncio
async def test_rehost_replaces_images(product_html, monkeypatch):
    monkeypatch.setattr(rehost, "rehost_one", lambda url, store, **kw: store.upload(f"products/{len(store.saved)}.jpg", b"x", "image/jpeg"))
    store = MemoryStore()
    fetch = ScriptedFetcher({ITEM_URL: product_html})
    async with ProductImporter(_cfg(rehost_images=True, rehost_concurrency=1), fetcher=fetch, store=store) as importer:
        result = await importer.import_product(ITEM_URL)
    assert result.success
    assert result.data.images
    assert all(u.startswith("https://storage.test/products/") for u in result.data.images)


@pytest.mark.asyncio
async def test_rehost_total_failure_keeps_vendor_urls(product_html, monkeypatch):
    monkeypatch.setattr(rehost, "rehost_one", lambda url, store, **kw: None)
    fetch = ScriptedFetcher({ITEM_URL: product_html})
    async with ProductImporter(_cfg(rehost_images=True), fetcher=fetch, store=MemoryStore(fail_all=True)) as importer:
        result = await importer.import_product(ITEM_URL)
    assert result.success
    assert all("alicdn.com" in u for u in result.data.images)


@pytest.mark.asyncio
async def test_unexpected_error_becomes_failure_result():
    async def boom(url):
        raise KeyError("surprise")

    async with ProductImporter(_cfg(), fetcher=boom) as importer:
        result = await importer.import_product(ITEM_URL)
    assert not result.success
    assert "surprise" in result.error


def test_split_span_price_is_not_confused_with_shipping():
    html = (
        "<html><head><title>Lamp - AliExpress</title></head><body>"
        "<div><span>12</span><span>,</span><span>50</span><span>€</span></div>"
        "<div>Envío: <span>1,99 €</span></div>"
        "</body></html>"
    )
    product = parse_product(build_response(html, ITEM_URL), ITEM_URL, ITEM_URL, _cfg())
    assert product.price == "€12.50"
    assert product.shipping_cost == "€1,99"


@pytest.mark.asyncio
async def test_rehost_crash_keeps_vendor_urls(product_html, monkeypatch):
    async def broken(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(main, "rehost_images", broken)
    fetch = ScriptedFetcher({ITEM_URL: product_html})
    async with ProductImporter(_cfg(rehost_images=True), fetcher=fetch, store=MemoryStore()) as importer:
        result = await importer.import_product(ITEM_URL)
    assert result.success
    assert result.data.title == "Widget"
    assert result.data.images
    assert all("alicdn.com" in u for u in result.data.images)
