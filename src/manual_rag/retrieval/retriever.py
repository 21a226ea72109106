"""manual_rag.retrieval.retriever

Lexical retrieval over the active corpus snapshot.

The retriever scores chunks with Okapi BM25 using the term statistics
precomputed in the snapshot. When BM25 yields no positive score (for instance
on tiny corpora, where common terms receive negative IDF), it falls back to a
token-overlap ratio that never fails, so retrieval returns something whenever
the query shares at least one token with a chunk.

Classes
-------
LexicalRetriever
    BM25 retriever with a deterministic token-overlap fallback.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from manual_rag.common import Candidate, Chunk, ChunkId
from manual_rag.common.tokenisation import tokenize
from manual_rag.retrieval.snapshot import CorpusSnapshot, SnapshotManager

logger = logging.getLogger(__name__)


class LexicalRetriever:
    """BM25 retriever bound to a :class:`SnapshotManager`.

    Parameters
    ----------
    snapshots : SnapshotManager
        Source of the active snapshot. The snapshot is read once per call, so a
        concurrent reload never mixes two corpora within one search.
    default_k : int, optional
        Result count used by :meth:`retrieve`. Defaults to ``8``.
    """

    def __init__(
            self,
            snapshots: SnapshotManager,
            *,
            default_k: int = 8,
        ):
        self.snapshots = snapshots
        self.default_k = max(1, int(default_k))

    def search(
            self,
            query: str,
            k: int = 5,
        ) -> list[Candidate]:
        """Return up to ``k`` candidates, most relevant first.

        Parameters
        ----------
        query : str
            Natural-language query. Empty or non-string queries return ``[]``.
        k : int, optional
            Maximum number of candidates. Defaults to ``5``.

        Returns
        -------
        list[Candidate]
            Candidates with non-increasing scores. Ties keep the chunk
            insertion order.

        Raises
        ------
        NotInitializedError
            If no snapshot has been loaded.
        """
        snapshot = self.snapshots.current()

        if not isinstance(query, str) or not query.strip() or k <= 0:
            return []

        query_tokens = tokenize(query)
        if not query_tokens:
            return []

        hits = self._bm25_scores(snapshot, query_tokens, k)
        if hits:
            return hits

        logger.info("BM25 returned no hits for %r; using token-overlap fallback.", query)
        return self.fallback_scores(snapshot, query_tokens, k)

    def retrieve(self, query: str) -> list[Candidate]:
        """Search with :attr:`default_k` results."""
        return self.search(query, self.default_k)

    def get_by_ids(self, ids: Iterable[ChunkId | str]) -> list[Chunk]:
        """Return the chunks whose id is in ``ids``, in snapshot order."""
        snapshot = self.snapshots.current()
        if ids is None or isinstance(ids, (str, bytes)):
            return []
        wanted = {str(i) for i in ids}
        return [c for c in snapshot.chunks if str(c.id) in wanted]

    @staticmethod
    def _bm25_scores(
            snapshot: CorpusSnapshot,
            query_tokens: Sequence[str],
            k: int,
        ) -> list[Candidate]:
        if snapshot.bm25 is None:
            return []

        scores = snapshot.bm25.get_scores(list(query_tokens))
        positive = [i for i in range(len(snapshot.chunks)) if scores[i] > 0]
        ordered = sorted(positive, key=lambda i: scores[i], reverse=True)[:k]
        return [Candidate(chunk=snapshot.chunks[i], score=float(scores[i])) for i in ordered]

    @staticmethod
    def fallback_scores(
            snapshot: CorpusSnapshot,
            query_tokens: Sequence[str],
            k: int,
        ) -> list[Candidate]:
        """Score chunks by the share of their tokens that occur in the query.

        ``score = common / max(1, len(chunk_tokens))`` where ``common`` counts
        chunk token occurrences found in the query token set. Chunks scoring
        zero are dropped. This path never raises.
        """
        if not query_tokens or k <= 0:
            return []

        qset = set(query_tokens)
        scored: list[tuple[float, int]] = []
        for idx, toks in enumerate(snapshot.tokens):
            common = sum(1 for t in toks if t in qset)
            score = common / max(1, len(toks))
            if score > 0:
                scored.append((score, idx))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            Candidate(chunk=snapshot.chunks[idx], score=score)
            for score, idx in scored[:k]
        ]


__all__ = ["LexicalRetriever"]
