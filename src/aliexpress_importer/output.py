from __future__ import annotations

"""Output writers for import results."""
import json
from pathlib import Path

from .models import ImportResult


def write_json(path: Path, result: ImportResult, *, include_stages: bool = False) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(result.to_dict(include_stages=include_stages), f, ensure_ascii=False, indent=2)


def print_summary(result: ImportResult) -> None:
    if not result.success or result.data is None:
        print(f"Import failed: {result.error}")
    else:
        p = result.data
        print(f"Title: {p.title or '(none)'}")
        print(f"Price: {p.price}" + ("" if p.price_found else " (not found)"))
        if p.original_price:
            print(f"Original price: {p.original_price} {p.discount}".rstrip())
        print(f"Images: {len(p.images)}")
        print(f"Variants: {', '.join(v.group for v in p.variants) or '-'}")
        print(f"Slug: {p.slug}")
        print(f"Canonical URL: {p.aliexpress_url}")
    for s in result.stages:
        status = "complete" if s.complete else ("ok" if s.ok else f"failed ({s.error})")
        print(f"  - {s.stage}: {s.url} -> {status}")
