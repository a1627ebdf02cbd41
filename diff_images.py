"""Script entry point kept for ``python diff_images.py [strategy] [input] [output]``.

The implementation lives in the package under ``diff_images.cli``; this
wrapper only forwards to it.
"""
from __future__ import annotations

from diff_images.cli import main


if __name__ == "__main__":  # pragma: no cover - exercised via integration test
    raise SystemExit(main())
