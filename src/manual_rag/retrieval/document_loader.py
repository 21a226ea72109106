"""manual_rag.retrieval.document_loader

Loading manuals from disk and writing the JSON corpus store.

PDF text is extracted with PyMuPDF, DOCX text (paragraphs, then table cells)
with python-docx, and ``.txt``/``.md`` files are read as UTF-8. Image-only PDFs
yield no text and are skipped; they need OCR before ingestion.

Functions
---------
find_manuals
    List supported manual files in a directory.
extract_text
    Raw text of one manual, dispatched on its suffix.
load_manual_text
    Extract a manual and collapse its whitespace.
load_manuals
    Read every supported manual, skipping unreadable or empty ones.
write_store
    Atomically write the corpus store consumed by the snapshot manager.
"""

from __future__ import annotations

import json
import logging
import os
import re
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import docx
import fitz
from docx.opc.exceptions import PackageNotFoundError

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".pdf", ".docx", ".txt", ".md")
DEFAULT_CHARSET = "utf-8"

_WS = re.compile(r"\s+")

# PyMuPDF reports broken documents as RuntimeError subclasses; python-docx
# surfaces bad packages as PackageNotFoundError, BadZipFile or KeyError.
_EXTRACTION_ERRORS = (
    OSError,
    UnicodeError,
    ValueError,
    RuntimeError,
    KeyError,
    zipfile.BadZipFile,
    PackageNotFoundError,
)


@dataclass
class LoadReport:
    """Manuals read by :func:`load_manuals` and the files that were skipped."""

    documents: list[tuple[str, str]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    short: list[str] = field(default_factory=list)


def find_manuals(manuals_dir: str | Path) -> list[Path]:
    """Return supported manual files in ``manuals_dir``, sorted by name."""
    root = Path(manuals_dir)
    if not root.is_dir():
        return []
    return sorted(
        p for p in root.iterdir()
        if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES
    )


def _pdf_text(path: Path) -> str:
    with fitz.open(path) as doc:
        return "\n".join(page.get_text() for page in doc)


def _docx_text(path: Path) -> str:
    document = docx.Document(str(path))
    parts = [p.text for p in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            parts.extend(cell.text for cell in row.cells)
    return "\n".join(parts)


def _plain_text(path: Path) -> str:
    return path.read_text(encoding=DEFAULT_CHARSET, errors="replace")


_EXTRACTORS: dict[str, Callable[[Path], str]] = {
    ".pdf": _pdf_text,
    ".docx": _docx_text,
    ".txt": _plain_text,
    ".md": _plain_text,
}


def extract_text(path: str | Path) -> str:
    """Return the raw text of ``path``.

    Raises
    ------
    ValueError
        If the suffix is not one of :data:`SUPPORTED_SUFFIXES`.
    """
    p = Path(path)
    extractor = _EXTRACTORS.get(p.suffix.lower())
    if extractor is None:
        raise ValueError(f"Unsupported manual type: {p.suffix}")
    return extractor(p)


def load_manual_text(path: str | Path) -> str:
    """Extract ``path`` with runs of whitespace collapsed to one space."""
    return _WS.sub(" ", extract_text(path)).strip()


def load_manuals(manuals_dir: str | Path, min_text_chars: int = 80) -> LoadReport:
    """Read every supported manual in ``manuals_dir``.

    Files that cannot be read or hold no text (typically image-only PDFs) are
    skipped with a warning. Files shorter than ``min_text_chars`` are kept but
    reported, since they often come from an incomplete extraction.
    """
    report = LoadReport()
    for path in find_manuals(manuals_dir):
        logger.info("Extracting %s", path.name)
        try:
            text = load_manual_text(path)
        except _EXTRACTION_ERRORS as e:
            logger.warning("Failed to extract %s: %s", path.name, e)
            report.skipped.append(path.name)
            continue

        if not text:
            logger.warning("%s holds no text (image-only PDF needing OCR?); skipping.", path.name)
            report.skipped.append(path.name)
            continue
        if len(text) < min_text_chars:
            logger.warning(
                "%s has only %d characters; including it, but check whether it needs OCR.",
                path.name,
                len(text),
            )
            report.short.append(path.name)

        report.documents.append((path.name, text))
    return report


def write_store(
        path: str | Path,
        records: list[dict[str, Any]],
        meta: dict[str, Any] | None = None,
    ) -> Path:
    """Write ``{"createdAt", "meta", "docs"}`` to ``path`` atomically.

    The payload goes to a temporary sibling file first, which then replaces
    ``path``, so readers never observe a partially written store.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "createdAt": datetime.now(timezone.utc).isoformat(),
        "meta": dict(meta or {}),
        "docs": records,
    }
    tmp = target.with_name(target.name + ".tmp")
    with tmp.open("w", encoding=DEFAULT_CHARSET) as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    os.replace(tmp, target)
    return target


__all__ = ["LoadReport", "extract_text", "find_manuals", "load_manual_text", "load_manuals", "write_store"]
