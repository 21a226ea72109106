"""manual_rag.retrieval.reranker

Reranker abstractions and implementations.

This module narrows a retrieval candidate pool to the final top-k:

- :class:`HeuristicReranker` scores candidates by query-token overlap with a
  tiny contribution of the original retrieval score as tie-breaker. It is a
  pure function of its inputs and never fails.
- :class:`ModelAssistedReranker` asks a generative model to pick the most
  relevant candidate ids, and falls back to the heuristic whenever the call
  fails or the answer cannot be used.

Both return a :class:`~manual_rag.common.schemas.RerankOutcome` recording
which path produced the order. The returned order is final; callers must not
sort it again.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Sequence

from manual_rag.common.errors import GenerationFailure
from manual_rag.common.schemas import Candidate, Origin, RerankOutcome
from manual_rag.common.tokenisation import simple_tokens
from manual_rag.config.settings import RerankSettings
from manual_rag.generation.llm_interface import BaseLLM, GenerationRequest, generate_text
from manual_rag.generation.prompt_builder import PromptBuilder

logger = logging.getLogger(__name__)

TIE_BREAK_WEIGHT = 0.001
_ID_LIST = re.compile(r"\[\s*([0-9,\s\"']*)\]")


class BaseReranker(ABC):
    """Abstract interface for reranking retrieval candidates."""

    @abstractmethod
    def select(self, query: str, candidates: Sequence[Candidate], k: int) -> RerankOutcome:
        """Return at most ``k`` candidates, most relevant first."""
        raise NotImplementedError

    def rerank(self, query: str, candidates: Sequence[Candidate], k: int) -> list[Candidate]:
        """Return only the reranked candidates of :meth:`select`."""
        return self.select(query, candidates, k).candidates


class HeuristicReranker(BaseReranker):
    """Token-overlap reranker.

    ``score = overlap + 0.001 * retrieval_score`` where ``overlap`` is the
    share of the candidate's first ``text_chars`` characters' tokens that also
    occur in the query.
    """

    def __init__(self, *, text_chars: int = 800):
        self.text_chars = int(text_chars)

    def select(self, query: str, candidates: Sequence[Candidate], k: int) -> RerankOutcome:
        candidates = list(candidates or [])
        if len(candidates) <= k:
            return RerankOutcome(candidates=candidates, origin=Origin.PASSTHROUGH)
        return RerankOutcome(candidates=self.rank(query, candidates, k), origin=Origin.HEURISTIC)

    def rank(self, query: str, candidates: Sequence[Candidate], k: int) -> list[Candidate]:
        """Score and sort ``candidates``; ties keep their incoming order."""
        if k <= 0:
            return []
        qtokens = set(simple_tokens(query))
        scored: list[tuple[float, Candidate]] = []
        for cand in candidates:
            tokens = simple_tokens(cand.text[: self.text_chars])
            common = sum(1 for t in tokens if t in qtokens)
            overlap = common / max(1, len(tokens))
            scored.append((overlap + _as_float(cand.score) * TIE_BREAK_WEIGHT, cand))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [cand for _, cand in scored[:k]]


class ModelAssistedReranker(BaseReranker):
    """Reranker delegating the judgment to a generative model.

    Parameters
    ----------
    llm : BaseLLM
        Backend asked to choose candidate ids.
    prompt_builder : PromptBuilder
        Registry holding the judgment template.
    prompt_name : str
        Name of the judgment template.
    settings : RerankSettings
        Listing size, token budget, model override and timeout.
    fallback : HeuristicReranker or None, optional
        Reranker used on any failure. Defaults to a new heuristic reranker.
    """

    def __init__(
            self,
            *,
            llm: BaseLLM,
            prompt_builder: PromptBuilder,
            prompt_name: str,
            settings: RerankSettings,
            fallback: HeuristicReranker | None = None,
        ):
        self.llm = llm
        self.prompt_builder = prompt_builder
        self.prompt_name = prompt_name
        self.settings = settings
        self.fallback = fallback or HeuristicReranker(text_chars=settings.heuristic_chars)

    def select(self, query: str, candidates: Sequence[Candidate], k: int) -> RerankOutcome:
        candidates = list(candidates or [])
        if len(candidates) <= k:
            return RerankOutcome(candidates=candidates, origin=Origin.PASSTHROUGH)

        try:
            prompt = self.prompt_builder.build_rerank_prompt(
                self.prompt_name, query, self.format_listing(candidates), k
            )
            request = GenerationRequest(
                prompt=prompt,
                model_id=self.settings.model_name,
                temperature=0.0,
                max_tokens=self.settings.max_tokens,
                top_p=0.95,
            )
            raw = generate_text(self.llm, request, timeout=self.settings.timeout)
        except GenerationFailure as e:
            return self._degrade(query, candidates, k, f"generation failed ({e.kind}): {e}")
        except Exception as e:
            # Prompt rendering problems must not fail the request either.
            return self._degrade(query, candidates, k, f"{type(e).__name__}: {e}")

        top_ids = parse_top_ids(raw)
        if not top_ids:
            return self._degrade(query, candidates, k, "response held no usable topIds")

        by_id = {str(c.id): c for c in candidates}
        selected: list[Candidate] = []
        seen: set[str] = set()
        for tid in top_ids:
            cand = by_id.get(tid)
            if cand is None or tid in seen:
                continue
            seen.add(tid)
            selected.append(cand)
            if len(selected) >= k:
                break

        if not selected:
            return self._degrade(query, candidates, k, "no returned id matched a candidate")

        logger.debug("Model rerank selected ids %s", [c.id for c in selected])
        return RerankOutcome(candidates=selected, origin=Origin.MODEL)

    def format_listing(self, candidates: Sequence[Candidate]) -> str:
        """Compact listing of the first ``max_candidates`` candidates for the judgment prompt."""
        lines = []
        for i, c in enumerate(candidates[: self.settings.max_candidates], start=1):
            snippet = c.text[: self.settings.snippet_chars].replace("\n", " ")
            lines.append(
                f'{i}. id:{c.id} source:"{c.source or "unknown"}" score:{str(c.score)[:8]}\n'
                f'   snippet: "{snippet}"'
            )
        return "\n\n".join(lines)

    def _degrade(self, query: str, candidates: list[Candidate], k: int, reason: str) -> RerankOutcome:
        logger.warning("Model rerank unavailable, using heuristic: %s", reason)
        return RerankOutcome(
            candidates=self.fallback.rank(query, candidates, k),
            origin=Origin.HEURISTIC,
            reason=reason,
        )


def parse_top_ids(raw: Any) -> list[str]:
    """Extract the ordered ``topIds`` list from a judgment response.

    The JSON object between the first ``{`` and the last ``}`` is parsed first.
    When that fails, the first bracketed list of numbers is salvaged. Ids are
    returned as strings; an empty list means the response is unusable.
    """
    text = str(raw or "").strip()
    if not text:
        return []

    first, last = text.find("{"), text.rfind("}")
    json_part = text[first:last + 1] if first != -1 and last > first else text

    try:
        parsed = json.loads(json_part)
    except (json.JSONDecodeError, ValueError):
        match = _ID_LIST.search(text)
        if not match:
            return []
        return [tok.strip(" \"'") for tok in match.group(1).split(",") if tok.strip(" \"'")]

    if isinstance(parsed, dict):
        ids = parsed.get("topIds")
    elif isinstance(parsed, list):
        ids = parsed
    else:
        ids = None
    if not isinstance(ids, list):
        return []
    return [str(i).strip() for i in ids if isinstance(i, (int, str)) and str(i).strip()]


def create_reranker(
        *,
        settings: RerankSettings,
        llm: BaseLLM | None = None,
        prompt_builder: PromptBuilder | None = None,
        prompt_name: str = "rerank_judgment",
    ) -> BaseReranker:
    """Create a reranker from settings.

    Model-assisted reranking is used only when ``settings.enabled`` is true and
    both an LLM and a prompt builder are available; otherwise the heuristic
    reranker is returned.
    """
    heuristic = HeuristicReranker(text_chars=settings.heuristic_chars)
    if not settings.enabled:
        return heuristic
    if llm is None or prompt_builder is None:
        logger.warning("Model rerank enabled but no generator LLM is configured; using heuristic.")
        return heuristic
    return ModelAssistedReranker(
        llm=llm,
        prompt_builder=prompt_builder,
        prompt_name=prompt_name,
        settings=settings,
        fallback=heuristic,
    )


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


__all__ = [
    "BaseReranker",
    "HeuristicReranker",
    "ModelAssistedReranker",
    "create_reranker",
    "parse_top_ids",
]
