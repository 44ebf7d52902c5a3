"""Built-in HTTP server exposing the importer as a JSON endpoint.

This avoids external web frameworks. The storefront's admin panel (already
authenticated upstream) POSTs a product URL and receives the import result.

Flow:
1) Client POSTs ``{"url": "..."}`` to /api/import.
2) Server runs the `ProductImporter` (resolve, fetch chain, extract, rehost).
3) Server returns the ``ImportResult`` dict: ``{"success": true, "data": {...}}``
   or ``{"success": false, "error": "..."}``.
"""

from __future__ import annotations

import asyncio
import json
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

from .config import ImporterConfig
from .logger import get_logger
from .main import ProductImporter
from .models import ImportResult

LOGGER = get_logger()
REPO_ROOT = Path(__file__).resolve().parents[2]

load_dotenv(REPO_ROOT / ".env")


def run_import(url: str, cfg: ImporterConfig) -> ImportResult:
    async def _run() -> ImportResult:
        async with ProductImporter(cfg) as importer:
            return await importer.import_product(url)

    return asyncio.run(_run())


class Handler(BaseHTTPRequestHandler):
    server_version = "AliImporterServer/0.1"

    def _set_cors(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "POST, OPTIONS")
        self.send_header(
            "Access-Control-Allow-Headers", "authorization, x-client-info, apikey, content-type"
        )

    def _send_json(self, status: HTTPStatus, payload: Dict[str, Any]) -> None:
        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self._set_cors()
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        LOGGER.debug("%s - %s", self.address_string(), format % args)

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(HTTPStatus.NO_CONTENT)
        self._set_cors()
        self.end_headers()

    def do_POST(self) -> None:  # noqa: N802
        if self.path.split("?", 1)[0] != "/api/import":
            self._send_json(HTTPStatus.NOT_FOUND, {"success": False, "error": "Not found"})
            return

        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError:
            length = -1
        if length < 0:
            self._send_json(HTTPStatus.BAD_REQUEST, {"success": False, "error": "Invalid Content-Length"})
            return

        try:
            raw = self.rfile.read(length) if length else b"{}"
            body = json.loads(raw.decode("utf-8"))
        except (ValueError, UnicodeDecodeError):
            self._send_json(HTTPStatus.BAD_REQUEST, {"success": False, "error": "Invalid JSON"})
            return

        url = body.get("url") if isinstance(body, dict) else None
        if not isinstance(url, str) or not url.strip():
            self._send_json(HTTPStatus.BAD_REQUEST, {"success": False, "error": "URL is required"})
            return

        cfg = ImporterConfig.from_env()
        if not cfg.scrapfly_key:
            LOGGER.error("SCRAPFLY_KEY is not configured")
            self._send_json(
                HTTPStatus.INTERNAL_SERVER_ERROR,
                {"success": False, "error": "Scraping provider key not configured"},
            )
            return

        LOGGER.info("Import requested for %s", url)
        result = run_import(url.strip(), cfg)
        self._send_json(HTTPStatus.OK, result.to_dict())


def main(host: str = "127.0.0.1", port: int = 8787) -> int:
    httpd = ThreadingHTTPServer((host, port), Handler)
    LOGGER.info("Serving importer API at http://%s:%d/api/import", host, port)
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:  # pragma: no cover
        LOGGER.info("Shutting down...")
    finally:
        httpd.server_close()
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
