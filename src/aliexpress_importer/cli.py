from __future__ import annotations

"""CLI wrapper using argparse (Scrapfly backend)."""
import argparse
import asyncio
import json
from pathlib import Path
from typing import Optional

from .config import ImporterConfig
from .logger import add_file_handler, get_logger
from .main import ProductImporter
from .output import print_summary, write_json
from .urls import resolve_url


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Import an AliExpress product (Scrapfly backend)")
    p.add_argument("url", help="Product URL, mobile URL or affiliate short link")
    p.add_argument("--output", type=Path, help="Write the import result as JSON")
    p.add_argument("--resolve-only", action="store_true", help="Only resolve the URL and print the candidates")
    p.add_argument("--no-rehost", action="store_true", help="Keep vendor image URLs")
    p.add_argument(
        "--no-placeholders",
        action="store_true",
        help="Leave rating/review/order counts empty when the page has none",
    )
    p.add_argument("--max-fetches", type=int, help="Cap on provider calls for this import")
    p.add_argument("--debug", action="store_true")
    # Scrapfly options
    p.add_argument(
        "--scrapfly-key", type=str, help="Scrapfly API key (or set SCRAPFLY_KEY env)"
    )
    p.add_argument(
        "--country",
        type=str,
        help="Country code for localization with Scrapfly",
    )
    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    cfg = ImporterConfig.from_env(
        scrapfly_key=args.scrapfly_key,
        country=args.country,
        max_fetches=args.max_fetches,
        debug=args.debug or None,
    )
    if args.no_rehost:
        cfg.rehost_images = False
    if args.no_placeholders:
        cfg.placeholder_metrics = False

    logger = get_logger(debug=cfg.debug)
    if cfg.debug:
        add_file_handler(logger, Path("importer.debug.log"))

    if args.resolve_only:
        try:
            resolved = resolve_url(args.url, timeout=cfg.redirect_timeout)
        except ValueError as e:
            print(f"Cannot resolve: {e}")
            return 1
        print(json.dumps(resolved.to_dict(), indent=2))
        return 0

    if not cfg.scrapfly_key:
        print("Scrapfly API key required: pass --scrapfly-key or set SCRAPFLY_KEY env")
        return 2

    async def runner() -> int:
        async with ProductImporter(cfg) as importer:
            result = await importer.import_product(args.url)
        if args.output:
            write_json(args.output, result, include_stages=True)
        print_summary(result)
        return 0 if result.success else 1

    return asyncio.run(runner())


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
