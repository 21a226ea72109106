"""Manual ingestion entrypoint.

Reads PDF, DOCX and plain-text manuals from the configured directory, splits them into
overlapping character chunks and writes the JSON corpus store that the API
and CLI load at startup.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path

from manual_rag.common.logging_utils import configure_logging
from manual_rag.config import GlobalConfig
from manual_rag.retrieval.document_loader import find_manuals, load_manuals, write_store
from manual_rag.retrieval.text_splitter import get_chunk_records

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    store_path: Path | None
    total_files: int
    chunks: int


def ingest(
        config: GlobalConfig,
        manuals_dir: str | Path | None = None,
        store_path: str | Path | None = None,
    ) -> IngestResult:
    """Chunk every manual and write the corpus store.

    Parameters
    ----------
    config : GlobalConfig
        Supplies chunking parameters and default locations.
    manuals_dir, store_path : str or Path, optional
        Overrides for ``corpus.manuals_dir`` and ``corpus.store_path``.

    Returns
    -------
    IngestResult
        ``store_path`` is ``None`` when no manual was found and nothing was written.
    """
    corpus = config.corpus
    src = Path(manuals_dir) if manuals_dir else config.manuals_dir
    dst = Path(store_path) if store_path else config.store_path

    files = find_manuals(src)
    if not files:
        logger.warning("No manuals found in %s (.pdf/.docx/.txt/.md). Nothing ingested.", src)
        return IngestResult(store_path=None, total_files=0, chunks=0)

    report = load_manuals(src, min_text_chars=corpus.min_text_chars)
    records = get_chunk_records(report.documents, corpus.chunk_size, corpus.chunk_overlap)
    meta = {
        "totalFiles": len(files),
        "chunkSize": corpus.chunk_size,
        "overlap": corpus.chunk_overlap,
        "skippedFiles": report.skipped,
    }
    written = write_store(dst, records, meta)
    logger.info("Corpus store written to %s with %d chunks.", written, len(records))
    return IngestResult(store_path=written, total_files=len(files), chunks=len(records))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest manuals into the JSON corpus store")

    parser.add_argument(
        "--config-file",
        "-c",
        required=False,
        type=str,
        default=None,
        help="Path to the YAML configuration file. Defaults are used when omitted.",
    )

    parser.add_argument(
        "--manuals-dir",
        "-m",
        required=False,
        type=str,
        default=None,
        help="Override corpus.manuals_dir from config (optional).",
    )

    parser.add_argument(
        "--store-path",
        "-o",
        required=False,
        type=str,
        default=None,
        help="Override corpus.store_path from config (optional).",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    cfg = GlobalConfig.load(args.config_file) if args.config_file else GlobalConfig()
    configure_logging(cfg.log_level)

    result = ingest(cfg, manuals_dir=args.manuals_dir, store_path=args.store_path)
    if result.store_path is None:
        return 1
    print(f"Store: {result.store_path}")
    print(f"Files: {result.total_files}  Chunks: {result.chunks}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
