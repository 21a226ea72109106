"""Manual ingestion entrypoint.

This script reads plain-text manuals, chunks them, and writes the JSON corpus
store used by the API and CLI. It mirrors the ``manual-rag-ingest`` console
script for checkouts that are not installed.
"""

from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from manual_rag.app.ingest import main


if __name__ == "__main__":
    raise SystemExit(main())
