"""manual_rag.retrieval.text_splitter

Character-window chunking for manual text.

Manuals are split into fixed-size character windows that overlap, so a
sentence cut at a window edge still appears whole in the neighbouring chunk.

Classes
-------
TextSpan
    A chunk of text with its offsets in the source document.

Functions
---------
chunk_text
    Split text into overlapping character windows.
get_chunk_records
    Turn per-document text into corpus store records with global ids.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

DEFAULT_CHUNK_SIZE = 900
DEFAULT_OVERLAP = 150


@dataclass(frozen=True)
class TextSpan:
    start: int
    end: int
    text: str


def chunk_text(
        text: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
    ) -> list[TextSpan]:
    """Split ``text`` into windows of ``chunk_size`` characters.

    Consecutive windows share ``overlap`` characters. Whitespace-only windows
    are dropped.

    Parameters
    ----------
    text : str
        Text to split.
    chunk_size : int, optional
        Window length in characters. Defaults to ``900``.
    overlap : int, optional
        Characters shared by consecutive windows. Defaults to ``150``.

    Returns
    -------
    list[TextSpan]
        Windows in document order.

    Raises
    ------
    ValueError
        If ``chunk_size`` is not positive or ``overlap`` is not in ``[0, chunk_size)``.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not 0 <= overlap < chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")
    if not text:
        return []

    spans: list[TextSpan] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        piece = text[start:end]
        if piece.strip():
            spans.append(TextSpan(start=start, end=end, text=piece))
        if end == len(text):
            break
        start = end - overlap
    return spans


def get_chunk_records(
        documents: Iterable[tuple[str, str]],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
        first_id: int = 1,
    ) -> list[dict]:
    """Chunk ``(source, text)`` pairs into store records.

    Ids are assigned sequentially across all documents, starting at ``first_id``.
    """
    records: list[dict] = []
    next_id = first_id
    for source, text in documents:
        for span in chunk_text(text, chunk_size, overlap):
            records.append({
                "id": next_id,
                "source": source,
                "start": span.start,
                "end": span.end,
                "length": len(span.text),
                "text": span.text,
            })
            next_id += 1
    return records


__all__ = ["TextSpan", "chunk_text", "get_chunk_records"]
