from __future__ import annotations

"""Main orchestrator for the importer.

Exposes a `ProductImporter` class used by the CLI, the web server and the
programmatic API.

Fetch chain (each stage runs only while the result is still partial, and the
total number of provider calls is capped by ``max_fetches``):

    first -> canonical -> resolved (-> resolved_canonical) -> mobile

A result is complete once it has a title and at least one image.
"""
import asyncio
import random
from typing import Awaitable, Callable, List, Optional

import requests

from .config import ImporterConfig
from .exceptions import ImporterError
from .extractors import (
    calculate_discount,
    extract_description,
    extract_orders_count,
    extract_prices,
    extract_rating,
    extract_review_count,
    extract_shipping,
    extract_sku,
    extract_title,
    extract_variants,
)
from .fetcher import fetch_page
from .images import extract_images
from .logger import get_logger
from .models import ImportedProduct, ImportResult, ResolvedUrlSet, ScrapeResponse, StageAttempt
from .parsers import discover_canonical_url, ensure_supported
from .rehost import ImageStore, SupabaseImageStore, rehost_images
from .urls import resolve_url
from .utils import format_price, generate_slug

Fetcher = Callable[[str], Awaitable[ScrapeResponse]]


def apply_placeholders(product: ImportedProduct, cfg: ImporterConfig, rng: random.Random) -> None:
    """Fill missing social-proof metrics when the placeholder policy is on."""
    if not cfg.placeholder_metrics:
        return
    low, high = cfg.placeholder_range
    if product.rating is None:
        product.rating = cfg.default_rating
    if product.review_count is None:
        product.review_count = rng.randrange(low, high)
    if product.orders_count is None:
        product.orders_count = rng.randrange(low, high)


def parse_product(
    source: ScrapeResponse,
    affiliate_url: str,
    canonical_url: str,
    cfg: Optional[ImporterConfig] = None,
    *,
    rng: Optional[random.Random] = None,
) -> ImportedProduct:
    """Run every field extractor over one provider response."""
    cfg = cfg or ImporterConfig()
    markdown, html, links, metadata = source.markdown, source.html, source.links, source.metadata

    title = extract_title(markdown, html, metadata)
    prices = extract_prices(markdown, metadata, range_label=cfg.price_range_label)
    price = prices.price or format_price(0, cfg.currency_symbol)
    shipping_cost, delivery_time = extract_shipping(markdown)

    product = ImportedProduct(
        title=title,
        price=price,
        slug=generate_slug(title),
        description=extract_description(markdown, metadata),
        original_price=prices.original_price,
        price_range=prices.price_range,
        discount=calculate_discount(price, prices.original_price) if prices.found and prices.original_price else "",
        images=extract_images(html, markdown, links, metadata),
        rating=extract_rating(markdown),
        review_count=extract_review_count(markdown),
        orders_count=extract_orders_count(markdown),
        shipping_cost=shipping_cost,
        delivery_time=delivery_time,
        sku=extract_sku(html),
        variants=extract_variants(html),
        affiliate_link=affiliate_url,
        aliexpress_url=canonical_url,
        price_found=prices.found,
    )
    apply_placeholders(product, cfg, rng or random.Random())
    return product


class ProductImporter:
    """ProductImporter resolves, fetches, extracts and rehosts one product per call."""

    def __init__(
        self,
        config: ImporterConfig,
        *,
        fetcher: Optional[Fetcher] = None,
        store: Optional[ImageStore] = None,
        session: Optional[requests.Session] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.cfg = config
        self.logger = get_logger(debug=config.debug)
        self._fetcher = fetcher
        self._store = store
        self._session = session
        self._rng = rng or random.Random()
        self._owns_session = False

    async def __aenter__(self) -> "ProductImporter":
        if self._session is None:
            self._session = requests.Session()
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None
            self._owns_session = False

    @property
    def store(self) -> Optional[ImageStore]:
        if self._store is None and self.cfg.rehost_images and self.cfg.storage_configured:
            self._store = SupabaseImageStore(
                self.cfg.supabase_url,  # type: ignore[arg-type]
                self.cfg.supabase_key,  # type: ignore[arg-type]
                bucket=self.cfg.storage_bucket,
                timeout=self.cfg.image_timeout,
            )
        return self._store

    async def _fetch(self, url: str) -> ScrapeResponse:
        if self._fetcher is not None:
            return await self._fetcher(url)
        return await fetch_page(url, self.cfg)

    async def _attempt(self, stage: str, url: str, stages: List[StageAttempt]) -> Optional[ScrapeResponse]:
        """One bounded provider call; transport failures degrade to None."""
        attempt = StageAttempt(stage=stage, url=url)
        stages.append(attempt)
        self.logger.info("Import stage %s: fetching %s", stage, url)
        try:
            response = await self._fetch(url)
        except (asyncio.TimeoutError, requests.RequestException, OSError) as e:
            attempt.error = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            self.logger.warning("Stage %s transport failure for %s: %s", stage, url, attempt.error)
            return None
        if not response.ok:
            attempt.error = response.error or "Failed to scrape"
            self.logger.warning("Stage %s provider failure for %s: %s", stage, url, attempt.error)
            return None
        attempt.ok = True
        return response

    async def _run_chain(self, urls: ResolvedUrlSet, stages: List[StageAttempt]) -> Optional[ImportedProduct]:
        budget = self.cfg.max_fetches
        data: Optional[ImportedProduct] = None
        tried: set = set()

        async def stage(name: str, url: str) -> Optional[ScrapeResponse]:
            nonlocal budget, data
            if budget <= 0 or not url or url in tried:
                return None
            budget -= 1
            tried.add(url)
            response = await self._attempt(name, url, stages)
            if response is not None:
                data = parse_product(response, urls.original_input_url, url, self.cfg, rng=self._rng)
                stages[-1].complete = data.is_complete
            return response

        def done() -> bool:
            return data is not None and data.is_complete

        first = await stage("first", urls.scrape_url)
        if done():
            return data

        if first is not None:
            canonical = discover_canonical_url(first)
            if canonical and canonical != urls.scrape_url:
                await stage("canonical", canonical)
                if done():
                    return data

        if urls.resolved_url and urls.resolved_url != urls.scrape_url:
            resolved = await stage("resolved", urls.resolved_url)
            if done():
                return data
            if resolved is not None:
                canonical = discover_canonical_url(resolved)
                if canonical and canonical != urls.resolved_url:
                    await stage("resolved_canonical", canonical)
                    if done():
                        return data

        if urls.mobile_url:
            await stage("mobile", urls.mobile_url)
        return data

    async def _rehost(self, data: ImportedProduct) -> None:
        """Swap vendor image URLs for rehosted ones; vendor URLs stay on any failure."""
        try:
            store = self.store
            if store is None:
                return
            hosted = await rehost_images(
                data.images,
                store,
                timeout=self.cfg.image_timeout,
                concurrency=self.cfg.rehost_concurrency,
            )
        except Exception:
            self.logger.exception("Image rehosting failed; keeping vendor URLs")
            return
        if hosted:
            data.images = hosted
        else:
            self.logger.warning("No image could be rehosted; keeping vendor URLs")

    async def import_product(self, url: str) -> ImportResult:
        """Import one product URL. Never raises for business failures."""
        if not url or not url.strip():
            return ImportResult.failure("URL is required")
        stages: List[StageAttempt] = []
        try:
            ensure_supported(url)
            urls = await asyncio.to_thread(
                resolve_url, url, session=self._session, timeout=self.cfg.redirect_timeout
            )
            data = await self._run_chain(urls, stages)
            if data is None:
                last_error = next((s.error for s in reversed(stages) if s.error), None)
                return ImportResult.failure(last_error or "Failed to scrape", stages)
            if not data.is_complete:
                self.logger.warning(
                    "Import of %s finished with partial data (title=%r, images=%d)",
                    url, data.title, len(data.images),
                )
        except ImporterError as e:
            self.logger.error("Import of %s failed: %s", url, e)
            return ImportResult.failure(str(e), stages)
        except Exception as e:
            self.logger.exception("Unexpected error importing %s", url)
            return ImportResult.failure(str(e) or "Failed to import", stages)

        if data.images and self.cfg.rehost_images:
            await self._rehost(data)
        return ImportResult(success=True, data=data, stages=stages)


async def import_product(url: str, config: Optional[ImporterConfig] = None) -> ImportResult:
    """Convenience wrapper: import one URL with a config from the environment."""
    cfg = config or ImporterConfig.from_env()
    async with ProductImporter(cfg) as importer:
        return await importer.import_product(url)
