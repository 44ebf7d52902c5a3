"""Module entrypoint for `python -m aliexpress_importer`.

Forwards to the built-in import server. For one-off imports, use `aliexpress-import`.
"""

from __future__ import annotations

from .web import run as main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
