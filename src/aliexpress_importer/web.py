"""Console entry to run the built-in import server."""

from __future__ import annotations

import argparse
from typing import Optional

from .server import main


def run(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Serve POST /api/import")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8787)
    args = p.parse_args(argv)
    return main(args.host, args.port)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(run())
