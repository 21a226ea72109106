"""manual_rag.common.schemas

Core data schemas shared across the question-answering pipeline.

These lightweight dataclasses describe the canonical shapes passed between
the corpus snapshot, the lexical retriever, the reranker and the answer
normaliser.

Classes
-------
Chunk
    A bounded span of extracted manual text tagged with its origin document.
Candidate
    A chunk annotated with a query-specific relevance score.
CanonicalAnswer
    Bounded-shape answer (``intro``/``steps``/``extra`` plus ``sources``).
Origin
    Which code path produced a reranking or an answer.
RerankOutcome
    Reranked candidates together with the path that produced them.
AnswerOutcome
    Canonical answer together with the path that produced it.

Notes
-----
Candidates and answers are created fresh per query and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


@dataclass(frozen=True)
class Chunk:
    """A contiguous span of manual text.

    Attributes
    ----------
    id : int
        Identifier, unique within a corpus snapshot.
    source : str
        Name of the origin document (e.g. ``"ERP_MANUAL.pdf"``).
    text : str
        Non-empty, trimmed chunk text.
    start : int
        Character offset of the chunk within its source document.
    end : int
        End offset (exclusive) within the source document.
    length : int
        Character length of the chunk as produced at ingestion time.
    """

    id: int
    source: str
    text: str
    start: int = 0
    end: int = 0
    length: int = 0

    @classmethod
    def from_record(cls, record: Mapping[str, Any], position: int) -> "Chunk | None":
        """Build a chunk from a raw corpus record.

        Parameters
        ----------
        record : Mapping[str, Any]
            Raw record with at least ``text`` and ``source``; ``id`` is optional.
        position : int
            Zero-based position of the record in the corpus source. Used to
            assign ``id = position + 1`` when the record carries none.

        Returns
        -------
        Chunk or None
            ``None`` when the record is not a mapping, its text is missing or
            whitespace-only, or its id cannot be read as an integer.
        """
        if not isinstance(record, Mapping):
            return None

        text = record.get("text")
        if not isinstance(text, str) or not text.strip():
            return None
        text = text.strip()

        raw_id = record.get("id")
        if raw_id is None:
            chunk_id = position + 1
        else:
            try:
                chunk_id = int(raw_id)
            except (TypeError, ValueError):
                return None

        source = record.get("source")
        if not isinstance(source, str) or not source.strip():
            source = "unknown"

        start = _as_int(record.get("start"), 0)
        end = _as_int(record.get("end"), start + len(text))
        length = _as_int(record.get("length"), len(text))

        return cls(id=chunk_id, source=source.strip(), text=text, start=start, end=end, length=length)


@dataclass(frozen=True)
class Candidate:
    """A chunk scored against a specific query. Higher score means more relevant."""

    chunk: Chunk
    score: float

    @property
    def id(self) -> int:
        return self.chunk.id

    @property
    def source(self) -> str:
        return self.chunk.source

    @property
    def text(self) -> str:
        return self.chunk.text


@dataclass(frozen=True)
class CanonicalAnswer:
    """Bounded-shape answer returned to callers.

    Attributes
    ----------
    intro : str
        At most one sentence. Never empty when ``steps`` is non-empty.
    steps : tuple[str, ...]
        Up to three short, case-insensitively distinct steps.
    extra : str
        Free-form remark, possibly empty.
    sources : tuple[str, ...]
        Up to three bare document names, deduplicated case-insensitively.
    """

    intro: str
    steps: tuple[str, ...] = ()
    extra: str = ""
    sources: tuple[str, ...] = ()

    @property
    def messages(self) -> list[str]:
        """Flat view for presentation layers: intro, steps, then extra."""
        parts = [self.intro, *self.steps, self.extra]
        return [p for p in parts if p]

    def to_dict(self) -> dict[str, Any]:
        return {
            "intro": self.intro,
            "steps": list(self.steps),
            "extra": self.extra,
            "sources": list(self.sources),
        }


class Origin(str, Enum):
    """Code path that produced a result."""

    MODEL = "model"
    HEURISTIC = "heuristic"
    PASSTHROUGH = "passthrough"
    FALLBACK = "fallback"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class RerankOutcome:
    """Final candidate order plus the reranking path that produced it."""

    candidates: list[Candidate]
    origin: Origin
    reason: str | None = None


@dataclass(frozen=True)
class AnswerOutcome:
    """Canonical answer plus the normalisation path that produced it."""

    answer: CanonicalAnswer
    origin: Origin
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def _as_int(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
