"""manual_rag.retrieval.types

Shared type definitions for the retrieval layer.

This module defines lightweight protocol abstractions used to decouple the
pipeline from concrete retriever and reranker classes.

Classes
-------
Retriever
    Protocol defining the minimal retriever interface.
Reranker
    Protocol defining the minimal reranker interface.
"""

from typing import Protocol, List, Sequence

from manual_rag.common.schemas import Candidate, RerankOutcome


class Retriever(Protocol):
    """Protocol defining the retriever interface.

    A retriever takes a natural-language query string and returns a ranked
    list of scored chunks.
    """

    def search(self, query: str, k: int = 5) -> List[Candidate]:
        """Return up to ``k`` candidates with non-increasing scores."""
        ...


class Reranker(Protocol):
    """Protocol defining the reranker interface."""

    def select(self, query: str, candidates: Sequence[Candidate], k: int) -> RerankOutcome:
        """Narrow ``candidates`` to the final top ``k``, most relevant first."""
        ...
