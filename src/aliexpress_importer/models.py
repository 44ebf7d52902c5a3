from __future__ import annotations

"""Data models for the AliExpress importer.

Example output schema (ImportResult.to_dict()):
{
  "success": true,
  "data": {
    "title": "Wireless Bluetooth Earbuds X100",
    "description": "Noise cancelling earbuds with 30h battery",
    "price": "€12.50",
    "originalPrice": "€29.99",
    "priceRange": "Desde €12.50",
    "discount": "-58%",
    "images": ["https://ae01.alicdn.com/kf/S1a2b3c4d.jpg"],
    "rating": 4.7,
    "reviewCount": 2345,
    "ordersCount": 12340,
    "shippingCost": "€1.99",
    "deliveryTime": "7-15 días",
    "sku": "1005001234567890",
    "variants": [{"group": "Color", "options": [{"label": "Black", "imageUrl": "https://..."}]}],
    "slug": "wireless-bluetooth-earbuds-x100",
    "affiliateLink": "https://s.click.aliexpress.com/e/_DdXyZ",
    "aliexpressUrl": "https://www.aliexpress.com/item/1005001234567890.html",
    "priceFound": true
  }
}
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ResolvedUrlSet:
    original_input_url: str
    formatted_url: str
    scrape_url: str
    mobile_url: str = ""
    resolved_url: str = ""
    product_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalInputUrl": self.original_input_url,
            "formattedUrl": self.formatted_url,
            "scrapeUrl": self.scrape_url,
            "mobileUrl": self.mobile_url,
            "resolvedUrl": self.resolved_url,
            "productId": self.product_id,
        }


@dataclass
class ScrapeResponse:
    ok: bool
    markdown: str = ""
    html: str = ""
    links: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    url: str = ""
    status_code: Optional[int] = None

    @classmethod
    def failed(cls, url: str, error: str, status_code: Optional[int] = None) -> "ScrapeResponse":
        return cls(ok=False, error=error, url=url, status_code=status_code)


@dataclass
class VariantOption:
    label: str
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"label": self.label}
        if self.image_url:
            d["imageUrl"] = self.image_url
        return d


@dataclass
class VariantGroup:
    group: str
    options: List[VariantOption] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"group": self.group, "options": [o.to_dict() for o in self.options]}


@dataclass
class ImportedProduct:
    title: str
    price: str
    slug: str
    description: str = ""
    original_price: str = ""
    price_range: str = ""
    discount: str = ""
    images: List[str] = field(default_factory=list)
    rating: Optional[float] = None
    review_count: Optional[int] = None
    orders_count: Optional[int] = None
    shipping_cost: str = ""
    delivery_time: str = ""
    sku: str = ""
    variants: List[VariantGroup] = field(default_factory=list)
    affiliate_link: str = ""
    aliexpress_url: str = ""
    price_found: bool = False

    @property
    def is_complete(self) -> bool:
        return bool(self.title) and len(self.images) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "originalPrice": self.original_price,
            "priceRange": self.price_range,
            "discount": self.discount,
            "images": list(self.images),
            "rating": self.rating,
            "reviewCount": self.review_count,
            "ordersCount": self.orders_count,
            "shippingCost": self.shipping_cost,
            "deliveryTime": self.delivery_time,
            "sku": self.sku,
            "variants": [v.to_dict() for v in self.variants],
            "slug": self.slug,
            "affiliateLink": self.affiliate_link,
            "aliexpressUrl": self.aliexpress_url,
            "priceFound": self.price_found,
        }


@dataclass
class StageAttempt:
    stage: str
    url: str
    ok: bool = False
    complete: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "url": self.url,
            "ok": self.ok,
            "complete": self.complete,
            "error": self.error,
        }


@dataclass
class ImportResult:
    success: bool
    data: Optional[ImportedProduct] = None
    error: Optional[str] = None
    stages: List[StageAttempt] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str, stages: Optional[List[StageAttempt]] = None) -> "ImportResult":
        return cls(success=False, error=error, stages=stages or [])

    def to_dict(self, *, include_stages: bool = False) -> Dict[str, Any]:
        d: Dict[str, Any] = {"success": self.success}
        if self.success and self.data is not None:
            d["data"] = self.data.to_dict()
        else:
            d["error"] = self.error or "Failed to import"
        if include_stages:
            d["stages"] = [s.to_dict() for s in self.stages]
        return d
