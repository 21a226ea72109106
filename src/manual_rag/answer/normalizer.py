"""manual_rag.answer.normalizer

Turns whatever the generation step produced (structured output, free text,
garbage or a failure) into a :class:`~manual_rag.common.schemas.CanonicalAnswer`.

The normaliser is total and deterministic: it never raises, and identical
inputs always give identical answers. It records which path produced the
answer in the returned :class:`~manual_rag.common.schemas.AnswerOutcome`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Sequence

from manual_rag.answer import text as tx
from manual_rag.answer.strategies import (
    NOT_FOUND_MESSAGE,
    Draft,
    ParseContext,
    ParseStrategy,
    SentenceExtractor,
    default_chain,
)
from manual_rag.common.errors import GenerationFailure
from manual_rag.common.schemas import AnswerOutcome, Candidate, CanonicalAnswer, Origin
from manual_rag.config.settings import AnswerSettings

logger = logging.getLogger(__name__)


class AnswerNormalizer:
    """Ordered parsing chain followed by bounded-shape post-processing.

    Parameters
    ----------
    settings : AnswerSettings or None, optional
        Caps applied to the answer. Defaults to :class:`AnswerSettings`.
    strategies : list[ParseStrategy] or None, optional
        Parsing chain, tried in order. Defaults to :func:`default_chain`.
    """

    def __init__(
            self,
            settings: AnswerSettings | None = None,
            strategies: list[ParseStrategy] | None = None,
        ):
        self.settings = settings or AnswerSettings()
        self.strategies = strategies if strategies is not None else default_chain()
        self.extractor = SentenceExtractor(self.settings)

    def normalize(self, raw: Any, candidates: Sequence[Candidate] | None) -> AnswerOutcome:
        """Normalise ``raw`` generation output grounded on ``candidates``.

        Parameters
        ----------
        raw : str, Mapping, GenerationFailure or None
            Generation output, or the failure raised by the generation boundary.
        candidates : Sequence[Candidate] or None
            Final (reranked) candidates.

        Returns
        -------
        AnswerOutcome
            Canonical answer, with ``origin`` set to ``not_found``, ``fallback``
            or ``model``.
        """
        cands = [c for c in (candidates or []) if isinstance(c, Candidate)]
        failure = raw if isinstance(raw, GenerationFailure) else None
        ctx = ParseContext(raw=_raw_text(raw), failure=failure, candidates=cands)

        try:
            draft = self._run_chain(ctx)
            return self._finish(draft, ctx)
        except Exception as e:
            logger.warning("Answer normalisation failed, using deterministic fallback: %s", e, exc_info=True)
            return self.fallback(cands, reason=f"{type(e).__name__}: {e}")

    __call__ = normalize

    def not_found(self) -> AnswerOutcome:
        return AnswerOutcome(
            answer=CanonicalAnswer(intro=NOT_FOUND_MESSAGE),
            origin=Origin.NOT_FOUND,
            metadata={"strategy": "not_found"},
        )

    def fallback(self, candidates: Sequence[Candidate], reason: str | None = None) -> AnswerOutcome:
        """Answer derived from candidate text alone, without any generation output."""
        cands = [c for c in (candidates or []) if isinstance(c, Candidate)]
        if not cands:
            return self.not_found()
        ctx = ParseContext(raw="", failure=None, candidates=cands)
        draft = Draft(origin=Origin.FALLBACK, strategy="fallback", reason=reason)
        return self._finish(draft, ctx)

    def _run_chain(self, ctx: ParseContext) -> Draft:
        for strategy in self.strategies:
            draft = strategy.parse(ctx)
            if draft is not None:
                return draft
        return Draft(origin=Origin.FALLBACK, strategy="none", reason="output held no usable content")

    def _finish(self, draft: Draft, ctx: ParseContext) -> AnswerOutcome:
        if draft.origin is Origin.NOT_FOUND:
            return self.not_found()

        s = self.settings
        strategies = [draft.strategy] if draft.strategy else []
        origin = draft.origin
        reason = draft.reason

        intro = tx.squash(draft.intro)
        steps = [tx.squash(step) for step in draft.steps]
        extra = tx.squash(draft.extra)

        if not any(steps) and ctx.candidates:
            steps = self.extractor.extract(ctx.candidates)
            strategies.append("sentence_extraction")
            if not intro and not extra and origin is Origin.MODEL:
                origin = Origin.FALLBACK
                reason = reason or "output held no usable content"

        intro = self._guard(intro)
        steps = [self._guard(step) for step in steps]

        steps = tx.dedupe_casefold(steps)
        if steps and not intro:
            intro = steps.pop(0)
        intro = tx.keep_first_sentence(intro)
        if intro:
            steps = [step for step in steps if step.casefold() != intro.casefold()]
        steps = steps[: s.max_steps]

        intro = tx.cap_words(intro, s.intro_max_words)
        intro = tx.cap_chars(intro, s.intro_max_chars)

        answer = CanonicalAnswer(
            intro=intro,
            steps=tuple(steps),
            extra=extra,
            sources=tuple(self._sources(ctx)),
        )
        if origin is Origin.FALLBACK:
            logger.info("Answer built by deterministic fallback: %s", reason)
        return AnswerOutcome(
            answer=answer,
            origin=origin,
            reason=reason,
            metadata={"strategy": "+".join(strategies)},
        )

    @staticmethod
    def _guard(fragment: str) -> str:
        """Keep only the first sentence of fragments quoting manual file names."""
        if fragment and tx.leaks_filename(fragment):
            return tx.keep_first_sentence(fragment)
        return fragment

    def _sources(self, ctx: ParseContext) -> list[str]:
        names = [tx.bare_name(s) for s in ctx.declared_sources]
        names = tx.dedupe_casefold(names, limit=self.settings.max_sources)
        if names:
            return names
        return tx.dedupe_casefold(
            (tx.bare_name(c.source) for c in ctx.candidates),
            limit=self.settings.max_sources,
        )


def _raw_text(raw: Any) -> str:
    if raw is None or isinstance(raw, GenerationFailure):
        return ""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace").strip()
    if isinstance(raw, Mapping):
        return json.dumps(raw, ensure_ascii=False, default=str)
    return str(raw).strip()


_DEFAULT = AnswerNormalizer()


def normalize(raw: Any, candidates: Sequence[Candidate] | None) -> AnswerOutcome:
    """Normalise with default settings. See :meth:`AnswerNormalizer.normalize`."""
    return _DEFAULT.normalize(raw, candidates)


__all__ = ["AnswerNormalizer", "NOT_FOUND_MESSAGE", "normalize"]
