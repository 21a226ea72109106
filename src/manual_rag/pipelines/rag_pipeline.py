"""manual_rag.pipelines.rag_pipeline

End-to-end question answering over the manuals corpus.

This module defines the :class:`RAGPipeline`, which coordinates query-time
retrieval, reranking, prompt construction, bounded generation and answer
normalisation.

Classes
-------
QueryResult
    Canonical answer plus the candidates and paths that produced it.
RAGPipeline
    Orchestrates retrieval → rerank → prompt building → generation → normalisation.

Notes
-----
Only :class:`~manual_rag.common.errors.NotInitializedError` leaves
:meth:`RAGPipeline.run`. Every other failure degrades to a deterministic
answer built from the retrieved candidates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from manual_rag.answer.normalizer import AnswerNormalizer
from manual_rag.common.errors import GenerationFailure, NotInitializedError, ProviderError
from manual_rag.common.schemas import AnswerOutcome, Candidate, CanonicalAnswer, Origin
from manual_rag.generation.llm_interface import BaseLLM, GenerationRequest, generate_text
from manual_rag.generation.prompt_builder import PromptBuilder
from manual_rag.retrieval.types import Reranker, Retriever

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryResult:
    """Outcome of one pipeline run.

    Attributes
    ----------
    query : str
        Question as received.
    answer : CanonicalAnswer
        Bounded-shape answer.
    candidates : list[Candidate]
        Final (reranked) candidates the answer is grounded on.
    answer_origin : Origin
        Path that produced the answer.
    rerank_origin : Origin or None
        Path that produced the candidate order, ``None`` when nothing was retrieved.
    reasons : dict[str, str]
        Degradation reasons keyed by stage, for diagnostics.
    """

    query: str
    answer: CanonicalAnswer
    candidates: list[Candidate] = field(default_factory=list)
    answer_origin: Origin = Origin.MODEL
    rerank_origin: Origin | None = None
    reasons: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.answer.to_dict(),
            "messages": self.answer.messages,
            "answer_origin": self.answer_origin.value,
            "rerank_origin": self.rerank_origin.value if self.rerank_origin else None,
        }


class RAGPipeline:
    """Retrieval-augmented question answering orchestrator.

    The pipeline is stateless beyond its configured components, making it safe
    to reuse across concurrent requests.

    Parameters
    ----------
    retriever : Retriever
        Lexical retriever producing the candidate pool.
    reranker : Reranker
        Narrows the pool to ``top_k`` candidates.
    prompt_builder : PromptBuilder
        Renders the answer prompt from the final candidates.
    prompt_name : str
        Name of the answer prompt template.
    llm : BaseLLM or None
        Generator backend. ``None`` answers every query by deterministic fallback.
    normalizer : AnswerNormalizer
        Turns raw output (or a failure) into a canonical answer.
    pool_size : int, optional
        Candidates fetched before reranking. Defaults to ``8``.
    top_k : int, optional
        Candidates kept after reranking. Defaults to ``3``.
    generation_timeout : float, optional
        Seconds allowed for the answer generation call. Defaults to ``30``.
    llm_generate_defaults : dict or None, optional
        ``temperature``/``max_tokens``/``top_p`` for the answer request.
    """

    def __init__(
            self,
            retriever: Retriever,
            reranker: Reranker,
            prompt_builder: PromptBuilder,
            prompt_name: str,
            llm: BaseLLM | None,
            normalizer: AnswerNormalizer,
            *,
            pool_size: int = 8,
            top_k: int = 3,
            generation_timeout: float = 30.0,
            llm_generate_defaults: dict | None = None,
        ):
        self.retriever = retriever
        self.reranker = reranker
        self.prompt_builder = prompt_builder
        self.prompt_name = prompt_name
        self.llm = llm
        self.normalizer = normalizer
        self.pool_size = pool_size
        self.top_k = top_k
        self.generation_timeout = generation_timeout
        self.llm_generate_defaults = {
            "temperature": 0.15,
            "max_tokens": 512,
            "top_p": 0.95,
            **(llm_generate_defaults or {}),
        }

    def run(self, query: str) -> QueryResult:
        """Answer ``query`` from the active corpus snapshot.

        Raises
        ------
        NotInitializedError
            If no corpus snapshot has been loaded.
        """
        pool = self.retriever.search(query, self.pool_size)
        reasons: dict[str, str] = {}

        try:
            rerank = self.reranker.select(query, pool, self.top_k)
            candidates, rerank_origin = list(rerank.candidates), rerank.origin
            if rerank.reason:
                reasons["rerank"] = rerank.reason
        except NotInitializedError:
            raise
        except Exception as e:
            logger.exception("Reranker failed; keeping retrieval order.")
            candidates, rerank_origin = list(pool[: self.top_k]), Origin.PASSTHROUGH
            reasons["rerank"] = f"{type(e).__name__}: {e}"

        if not candidates:
            logger.info("No candidates for query; returning not-found answer.")
            outcome = self.normalizer.not_found()
            return self._result(query, outcome, [], None, reasons)

        raw = self._generate(query, candidates)
        outcome = self.normalizer.normalize(raw, candidates)
        return self._result(query, outcome, candidates, rerank_origin, reasons)

    def _generate(self, query: str, candidates: list[Candidate]) -> str | GenerationFailure:
        """Run the bounded generation call; failures are returned, not raised."""
        if self.llm is None:
            return ProviderError("no generator LLM configured")
        try:
            prompt = self.prompt_builder.build_answer_prompt(self.prompt_name, query, candidates)
        except Exception as e:
            logger.exception("Failed to build answer prompt '%s'.", self.prompt_name)
            return ProviderError(f"prompt rendering failed: {e}", cause=e)

        request = GenerationRequest(prompt=prompt, **self.llm_generate_defaults)
        try:
            return generate_text(self.llm, request, timeout=self.generation_timeout)
        except GenerationFailure as e:
            logger.warning("Answer generation failed (%s): %s", e.kind, e)
            return e

    def _result(
            self,
            query: str,
            outcome: AnswerOutcome,
            candidates: list[Candidate],
            rerank_origin: Origin | None,
            reasons: dict[str, str],
        ) -> QueryResult:
        if outcome.reason:
            reasons["answer"] = outcome.reason
        return QueryResult(
            query=query,
            answer=outcome.answer,
            candidates=candidates,
            answer_origin=outcome.origin,
            rerank_origin=rerank_origin,
            reasons=reasons,
        )

    def __call__(self, query: str) -> QueryResult:
        """Convenience wrapper around :meth:`run`."""
        return self.run(query)


__all__ = ["QueryResult", "RAGPipeline"]
