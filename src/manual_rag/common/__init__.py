"""
Common building blocks shared across the question-answering stack.

This package provides small, widely-used primitives (schemas, the error
taxonomy and tokenisers) intended to be imported by multiple layers of the
system.

Classes
-------
Chunk
    Span of manual text tagged with its origin document.
Candidate
    Chunk scored against a query.
CanonicalAnswer
    Bounded-shape answer contract.

See Also
--------
manual_rag.common.errors
    Exception taxonomy (``NotInitializedError``, ``GenerationFailure``).
manual_rag.common.tokenisation
    Lexical tokenisers.
"""
from __future__ import annotations
from typing import TypeAlias

from .schemas import (
    AnswerOutcome,
    Candidate,
    CanonicalAnswer,
    Chunk,
    Origin,
    RerankOutcome,
)

ChunkId: TypeAlias = int

__all__ = [
    "AnswerOutcome",
    "Candidate",
    "CanonicalAnswer",
    "Chunk",
    "ChunkId",
    "Origin",
    "RerankOutcome",
]
