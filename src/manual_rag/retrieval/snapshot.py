"""manual_rag.retrieval.snapshot

Immutable corpus snapshots and their atomic publication.

A :class:`CorpusSnapshot` is built once from raw chunk records, precomputes
per-chunk token lists and term statistics (including the Okapi BM25 index),
and is never mutated afterwards. :class:`SnapshotManager` owns the single
reference to the active snapshot: reloads are serialised by a lock, and a new
snapshot is published by one reference assignment so that concurrent readers
see either the fully-old or the fully-new corpus.

Classes
-------
CorpusSnapshot
    Immutable, queryable view of the chunk corpus.
SnapshotManager
    Serialised reload and atomic swap of the active snapshot.

Functions
---------
load_chunk_records
    Read chunk records from the JSON corpus store.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from rank_bm25 import BM25Okapi

from manual_rag.common.errors import NotInitializedError
from manual_rag.common.schemas import Chunk
from manual_rag.common.tokenisation import tokenize
from manual_rag.config.settings import RetrieverSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorpusSnapshot:
    """Immutable, versioned collection of chunks with term statistics.

    Attributes
    ----------
    chunks : tuple[Chunk, ...]
        Chunks in insertion order.
    tokens : tuple[tuple[str, ...], ...]
        Token list per chunk, aligned with ``chunks``.
    doc_freqs : Mapping[str, int]
        Number of chunks containing each term (read-only view).
    avg_doc_len : float
        Mean token count per chunk.
    version : int
        Monotonic snapshot version assigned by the manager.
    skipped : int
        Number of raw records excluded at load time (empty text, malformed
        record or duplicate id).
    created_at : datetime
        UTC timestamp of construction.
    bm25 : BM25Okapi or None
        Okapi BM25 index over ``tokens``; ``None`` for an empty corpus.
    """

    chunks: tuple[Chunk, ...]
    tokens: tuple[tuple[str, ...], ...]
    doc_freqs: Mapping[str, int]
    avg_doc_len: float
    version: int = 0
    skipped: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    bm25: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def build(
            cls,
            records: Iterable[Mapping[str, Any]],
            *,
            version: int = 0,
            settings: RetrieverSettings | None = None,
        ) -> "CorpusSnapshot":
        """Build a snapshot from raw chunk records.

        Parameters
        ----------
        records : Iterable[Mapping[str, Any]]
            Raw records with at least ``source`` and ``text``. Missing ids are
            assigned from the record position (1-based).
        version : int, optional
            Version number stamped on the snapshot.
        settings : RetrieverSettings or None, optional
            BM25 parameters. Defaults to :class:`RetrieverSettings` defaults.

        Returns
        -------
        CorpusSnapshot
            Fully built snapshot. Invalid records are skipped and counted.
        """
        settings = settings or RetrieverSettings()
        chunks: list[Chunk] = []
        seen_ids: set[int] = set()
        skipped = 0

        for position, record in enumerate(records):
            chunk = Chunk.from_record(record, position)
            if chunk is None:
                skipped += 1
                continue
            if chunk.id in seen_ids:
                logger.warning("Duplicate chunk id %s from %s skipped.", chunk.id, chunk.source)
                skipped += 1
                continue
            seen_ids.add(chunk.id)
            chunks.append(chunk)

        if skipped:
            logger.warning("%d invalid chunk record(s) removed while loading the corpus.", skipped)

        tokens = tuple(tuple(tokenize(c.text)) for c in chunks)

        doc_freqs: Counter[str] = Counter()
        for toks in tokens:
            doc_freqs.update(set(toks))

        total = sum(len(t) for t in tokens)
        avg_doc_len = total / len(tokens) if tokens else 0.0

        # BM25Okapi divides by the vocabulary size and the mean length.
        bm25 = None
        if doc_freqs:
            bm25 = BM25Okapi(
                [list(t) for t in tokens],
                k1=settings.k1,
                b=settings.b,
                epsilon=settings.epsilon,
            )

        return cls(
            chunks=tuple(chunks),
            tokens=tokens,
            doc_freqs=MappingProxyType(dict(doc_freqs)),
            avg_doc_len=avg_doc_len,
            version=version,
            skipped=skipped,
            bm25=bm25,
        )

    def __len__(self) -> int:
        return len(self.chunks)


def load_chunk_records(path: str | Path) -> list[dict[str, Any]]:
    """Read raw chunk records from the JSON corpus store.

    The store is either an object ``{"createdAt": ..., "meta": ..., "docs": [...]}``
    as written by the ingestion script, or a bare list of records.

    Parameters
    ----------
    path : str or Path
        Location of the store file.

    Returns
    -------
    list[dict[str, Any]]
        Raw records. Validation happens in :meth:`CorpusSnapshot.build`.

    Raises
    ------
    FileNotFoundError
        If the store does not exist.
    ValueError
        If the file is not valid JSON or has an unexpected shape.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(
            f"Corpus store not found: {p}. Run the ingestion script first."
        )

    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse corpus store {p}: {e}") from e

    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        docs = data.get("docs")
        return docs if isinstance(docs, list) else []
    raise ValueError(f"Corpus store {p} must contain an object or a list, got {type(data)!r}")


class SnapshotManager:
    """Holds the active :class:`CorpusSnapshot` and rebuilds it on demand.

    Parameters
    ----------
    loader : Callable[[], Iterable[Mapping[str, Any]]]
        Zero-argument callable returning raw chunk records. Called once per
        :meth:`reload`.
    settings : RetrieverSettings or None, optional
        BM25 parameters used for every snapshot built by this manager.

    Notes
    -----
    Reads never lock: :meth:`current` returns whatever reference is published.
    Rebuilds are serialised by ``_reload_lock`` and published with a single
    attribute assignment.
    """

    def __init__(
            self,
            loader: Callable[[], Iterable[Mapping[str, Any]]],
            settings: RetrieverSettings | None = None,
        ):
        self._loader = loader
        self._settings = settings or RetrieverSettings()
        self._active: CorpusSnapshot | None = None
        self._version = 0
        self._reload_lock = threading.Lock()

    @classmethod
    def from_store(
            cls,
            path: str | Path,
            settings: RetrieverSettings | None = None,
        ) -> "SnapshotManager":
        """Create a manager reading records from a JSON corpus store."""
        store = Path(path)
        return cls(lambda: load_chunk_records(store), settings=settings)

    @property
    def is_loaded(self) -> bool:
        return self._active is not None

    def current(self) -> CorpusSnapshot:
        """Return the active snapshot.

        Raises
        ------
        NotInitializedError
            If no snapshot has been published yet.
        """
        snapshot = self._active
        if snapshot is None:
            raise NotInitializedError("Corpus not loaded. Call reload() first.")
        return snapshot

    def reload(self) -> int:
        """Rebuild the snapshot from the loader and publish it.

        Returns
        -------
        int
            Number of chunks in the newly published snapshot.

        Raises
        ------
        Exception
            Whatever the loader raises. The previously active snapshot stays
            published in that case.
        """
        with self._reload_lock:
            records = self._loader()
            snapshot = CorpusSnapshot.build(
                records,
                version=self._version + 1,
                settings=self._settings,
            )
            self._version = snapshot.version
            self._active = snapshot

        logger.info(
            "Corpus snapshot v%d published with %d chunks (%d skipped).",
            snapshot.version,
            len(snapshot),
            snapshot.skipped,
        )
        return len(snapshot)

    def publish(self, snapshot: CorpusSnapshot) -> None:
        """Publish a prebuilt snapshot, e.g. one built from in-memory records."""
        with self._reload_lock:
            self._version = max(self._version, snapshot.version)
            self._active = snapshot


__all__ = ["CorpusSnapshot", "SnapshotManager", "load_chunk_records"]
