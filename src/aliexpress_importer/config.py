from __future__ import annotations

"""Configuration for the AliExpress importer.

Defines the ImporterConfig dataclass with sensible defaults, environment
loading and CLI-controlled overrides.
"""
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


@dataclass
class ImporterConfig:
    """Importer configuration.

    Attributes:
        scrapfly_key: Scrapfly API key used by the page fetcher.
        country: Proxy country for Scrapfly localization.
        rendering_wait_ms: Time the provider waits for client-side rendering.
        provider_timeout_ms: Timeout Scrapfly applies to one scrape.
        request_timeout: Upper bound (seconds) on one provider call from our side.
        redirect_timeout: Timeout (seconds) for HEAD/GET short-link resolution.
        image_timeout: Timeout (seconds) for one image download.
        max_fetches: Maximum provider calls per import (length of the fallback chain).
        rehost_images: Whether to copy images into owned storage.
        rehost_concurrency: Parallel image downloads/uploads.
        supabase_url: Supabase project URL for image storage.
        supabase_key: Supabase service key for image storage.
        storage_bucket: Bucket receiving rehosted images.
        placeholder_metrics: Fill missing rating/review/order counts with
            plausible placeholder values instead of leaving them empty.
        default_rating: Rating used when placeholders are enabled and none is found.
        placeholder_range: Half-open range for placeholder review/order counts.
        currency_symbol: Symbol used for the zero-price fallback.
        price_range_label: Prefix of the "from" price range string.
        debug: Enable extra logging and file log.
    """

    scrapfly_key: Optional[str] = None
    country: str = "ES"
    rendering_wait_ms: int = 10000
    provider_timeout_ms: int = 90000
    request_timeout: float = 120.0
    redirect_timeout: float = 15.0
    image_timeout: float = 20.0
    max_fetches: int = 5
    rehost_images: bool = True
    rehost_concurrency: int = 4
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    storage_bucket: str = "product-images"
    placeholder_metrics: bool = True
    default_rating: float = 4.5
    placeholder_range: Tuple[int, int] = (100, 600)
    currency_symbol: str = "€"
    price_range_label: str = "Desde"
    debug: bool = False

    @classmethod
    def from_env(cls, **overrides) -> "ImporterConfig":
        """Build a config from environment variables (and a .env file if present)."""
        load_dotenv()
        cfg = cls(
            scrapfly_key=os.environ.get("SCRAPFLY_KEY") or None,
            country=os.environ.get("SCRAPE_COUNTRY", cls.country),
            request_timeout=_env_float("IMPORTER_REQUEST_TIMEOUT", cls.request_timeout),
            max_fetches=_env_int("IMPORTER_MAX_FETCHES", cls.max_fetches),
            supabase_url=os.environ.get("SUPABASE_URL") or None,
            supabase_key=os.environ.get("SUPABASE_KEY") or None,
            storage_bucket=os.environ.get("IMPORTER_STORAGE_BUCKET", cls.storage_bucket),
            placeholder_metrics=_env_bool("IMPORTER_PLACEHOLDER_METRICS", cls.placeholder_metrics),
        )
        for key, value in overrides.items():
            if value is not None:
                setattr(cfg, key, value)
        return cfg.finalize()

    def finalize(self) -> "ImporterConfig":
        """Clamp derived values into safe ranges."""
        self.max_fetches = max(1, self.max_fetches)
        self.rehost_concurrency = max(1, self.rehost_concurrency)
        low, high = self.placeholder_range
        if high <= low:
            self.placeholder_range = (low, low + 1)
        return self

    @property
    def storage_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)
