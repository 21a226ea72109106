"""manual_rag.answer.strategies

Parsing strategies turning raw generation output into a draft answer.

The answer normaliser walks an ordered list of strategies; the first one
returning a :class:`Draft` wins. A strategy may also rewrite the shared
:class:`ParseContext` (for example, a structured payload carrying a flat
answer string hands that string to the paragraph heuristic) and return
``None`` to let the next strategy run.

Classes
-------
ParseContext
    Mutable state shared by the strategies for one normalisation.
Draft
    Unbounded answer fields produced by a strategy, before post-processing.
ParseStrategy
    Base class for strategies.
NoCandidatesStrategy, GenerationFailedStrategy, StructuredStrategy,
ParagraphStrategy
    Concrete strategies, in chain order.
SentenceExtractor
    Deterministic per-candidate sentence extraction.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from manual_rag.answer import text as tx
from manual_rag.common.errors import GenerationFailure
from manual_rag.common.schemas import Candidate, Origin
from manual_rag.config.settings import AnswerSettings

NOT_FOUND_MESSAGE = "I did not find relevant information in the manuals for this question."

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_LEADING_NUMBER = re.compile(r"^\s*(\d{1,2})\s*[.)]\s")
_INLINE_NUMBER = re.compile(r"\s(\d{1,2})[.)]\s")
_SOURCES_TRAILER = re.compile(r"^\s*(?:fontes?|sources?)\s*:\s*(.+?)\s*$", re.IGNORECASE)
_SOURCE_SEPARATORS = re.compile(r"\s*[|;,]\s*")


@dataclass
class ParseContext:
    """State shared by the strategies of one normalisation.

    Attributes
    ----------
    raw : str
        Raw generation output, stripped. Empty when generation failed.
    failure : GenerationFailure or None
        Failure reported by the generation boundary, if any.
    candidates : list[Candidate]
        Final candidates the answer is grounded on.
    text : str
        Flat text the paragraph heuristic should read. Starts as ``raw``.
    declared_sources : list[str]
        Sources named by the generation output itself.
    """

    raw: str
    failure: GenerationFailure | None
    candidates: list[Candidate]
    text: str = ""
    declared_sources: list[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.text:
            self.text = self.raw


@dataclass
class Draft:
    intro: str = ""
    steps: list[str] = field(default_factory=list)
    extra: str = ""
    origin: Origin = Origin.MODEL
    strategy: str = ""
    reason: str | None = None


class ParseStrategy(ABC):
    """A single step of the parsing chain."""

    name = "strategy"

    @abstractmethod
    def parse(self, ctx: ParseContext) -> Draft | None:
        """Return a draft, or ``None`` to let the next strategy run."""
        raise NotImplementedError


class SentenceExtractor:
    """Derives one short statement per candidate from the candidate text alone.

    For each of the first ``max_steps`` candidates, the first sentence of
    acceptable length is taken; when there is none, a leading snippet cut at a
    word boundary is used instead.
    """

    def __init__(self, settings: AnswerSettings):
        self.settings = settings

    def extract(self, candidates: Sequence[Candidate]) -> list[str]:
        s = self.settings
        out = []
        for cand in list(candidates)[: s.max_steps]:
            sentence = tx.first_sentence(cand.text, s.sentence_min_chars, s.sentence_max_chars)
            if sentence is None:
                sentence = tx.clip_snippet(cand.text, s.snippet_min_chars, s.snippet_max_chars)
            if sentence:
                out.append(sentence)
        return out


class NoCandidatesStrategy(ParseStrategy):
    name = "not_found"

    def parse(self, ctx: ParseContext) -> Draft | None:
        if ctx.candidates:
            return None
        return Draft(origin=Origin.NOT_FOUND, strategy=self.name)


class GenerationFailedStrategy(ParseStrategy):
    """Empty drafts for failed generation; sentence extraction fills them in."""

    name = "generation_failed"

    def parse(self, ctx: ParseContext) -> Draft | None:
        if ctx.failure is None and ctx.raw:
            return None
        if ctx.failure is not None:
            reason = f"generation failed ({ctx.failure.kind}): {ctx.failure}"
        else:
            reason = "generation returned no text"
        return Draft(origin=Origin.FALLBACK, strategy=self.name, reason=reason)


class StructuredStrategy(ParseStrategy):
    """Strict JSON parse of the object between the first ``{`` and the last ``}``.

    A nested ``answer`` object is adopted as is. A flat ``answer`` string or a
    ``messages`` list is handed on to the paragraph heuristic. Declared
    ``sources`` are always recorded on the context.
    """

    name = "structured"

    def parse(self, ctx: ParseContext) -> Draft | None:
        payload = self.load(ctx.raw)
        if payload is None:
            return None

        ctx.declared_sources = _string_list(payload.get("sources"))

        answer = payload.get("answer")
        if isinstance(answer, Mapping) and any(key in answer for key in ("intro", "steps", "extra")):
            return Draft(
                intro=_as_text(answer.get("intro")),
                steps=_steps_from(answer.get("steps")),
                extra=_as_text(answer.get("extra")),
                strategy=self.name,
            )

        if isinstance(answer, str):
            ctx.text = answer.strip()
            return None

        messages = payload.get("messages")
        if messages is None and isinstance(answer, list):
            messages = answer
        if isinstance(messages, list):
            ctx.text = "\n\n".join(_string_list(messages))
            return None

        # Valid JSON without any answer field carries nothing to show.
        ctx.text = ""
        return None

    @staticmethod
    def load(raw: str) -> Mapping[str, Any] | None:
        first, last = raw.find("{"), raw.rfind("}")
        if first == -1 or last <= first:
            return None
        try:
            parsed = json.loads(raw[first:last + 1])
        except (json.JSONDecodeError, ValueError):
            return None
        return parsed if isinstance(parsed, Mapping) else None


class ParagraphStrategy(ParseStrategy):
    """Paragraph and bullet heuristic for flat text.

    The first paragraph becomes the intro. Paragraphs opening with a list
    marker (``1.``, ``1)``, ``-``, ``•``, ``*``) give one step per marker,
    other multi-line paragraphs one step per line, and single-line paragraphs
    are appended to ``extra``. A closing ``Fontes:``/``Sources:`` line is
    read as the declared sources.
    """

    name = "paragraph"

    def parse(self, ctx: ParseContext) -> Draft | None:
        text = (ctx.text or "").replace("\r\n", "\n").strip()
        text = self._take_sources_trailer(text, ctx)
        if not text:
            return None

        paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(text) if p.strip()]
        head = paragraphs[0].split("\n")
        # An intro line directly followed by a list, without a blank line between.
        split_at = next((i for i, line in enumerate(head) if i > 0 and tx.has_marker(line)), None)
        if split_at is not None:
            paragraphs = ["\n".join(head[:split_at]), "\n".join(head[split_at:]), *paragraphs[1:]]

        # A list right at the top has no intro; post-processing promotes a step.
        if tx.has_marker(head[0]):
            intro, rest = "", paragraphs
        else:
            intro, rest = tx.squash(paragraphs[0]), paragraphs[1:]

        steps: list[str] = []
        extras: list[str] = []
        for para in rest:
            lines = [line.strip() for line in para.split("\n") if line.strip()]
            if tx.has_marker(lines[0]):
                steps.extend(_explode_markers(lines))
            elif len(lines) > 1:
                steps.extend(lines)
            else:
                extras.append(lines[0])

        return Draft(intro=intro, steps=steps, extra=" ".join(extras), strategy=self.name)

    @staticmethod
    def _take_sources_trailer(text: str, ctx: ParseContext) -> str:
        """Strip a trailing ``Fontes: A.pdf | B.pdf`` line, recording its names."""
        lines = text.split("\n")
        match = _SOURCES_TRAILER.match(lines[-1]) if lines else None
        if match is None:
            return text
        names = [n for n in _SOURCE_SEPARATORS.split(match.group(1)) if n]
        if not ctx.declared_sources:
            ctx.declared_sources = names
        return "\n".join(lines[:-1]).strip()


def default_chain() -> list[ParseStrategy]:
    return [
        NoCandidatesStrategy(),
        GenerationFailedStrategy(),
        StructuredStrategy(),
        ParagraphStrategy(),
    ]


def _explode_markers(lines: list[str]) -> list[str]:
    """One step per list marker, continuation lines joined to their step."""
    steps: list[str] = []
    for line in lines:
        if tx.has_marker(line):
            steps.extend(tx.strip_marker(p) for p in _split_numbered(line))
        elif steps:
            steps[-1] = f"{steps[-1]} {line}"
        else:
            steps.append(line)
    return [s for s in steps if s]


def _split_numbered(line: str) -> list[str]:
    """Split a numbered line holding the next items inline ("1) a 2) b").

    Only numbers continuing the sequence open a new item, so a figure inside
    the text ("limite para 10. Depois") stays part of its step. Bullet lines
    are never split.
    """
    leading = _LEADING_NUMBER.match(line)
    if leading is None:
        return [line]

    expected = int(leading.group(1)) + 1
    parts: list[str] = []
    start = 0
    for match in _INLINE_NUMBER.finditer(line, leading.end()):
        if int(match.group(1)) != expected:
            continue
        parts.append(line[start:match.start()])
        start = match.start() + 1
        expected += 1
    parts.append(line[start:])
    return [p for p in parts if p.strip()]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return " ".join(_string_list(value))
    return str(value).strip()


def _steps_from(value: Any) -> list[str]:
    if isinstance(value, str):
        lines = [line.strip() for line in value.split("\n") if line.strip()]
        return [tx.strip_marker(line) if tx.has_marker(line) else line for line in lines]
    return [tx.strip_marker(s) if tx.has_marker(s) else s for s in _string_list(value)]


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    out = []
    for item in value:
        if isinstance(item, (str, int, float)) and not isinstance(item, bool):
            item = str(item).strip()
            if item:
                out.append(item)
    return out


__all__ = [
    "NOT_FOUND_MESSAGE",
    "Draft",
    "GenerationFailedStrategy",
    "NoCandidatesStrategy",
    "ParagraphStrategy",
    "ParseContext",
    "ParseStrategy",
    "SentenceExtractor",
    "StructuredStrategy",
    "default_chain",
]
