"""manual_rag.answer.text

Small, pure text helpers used by the answer normaliser.

Functions
---------
first_sentence
    First complete sentence within a length window.
clip_snippet
    Leading snippet cut at a word boundary.
cap_chars, cap_words
    Length caps with an ellipsis marker.
leaks_filename, keep_first_sentence
    Guard against raw manual text (recognised by embedded file names).
strip_marker
    Remove a leading list marker (``1.``, ``1)``, ``-``, ``•``, ``*``).
dedupe_casefold
    Case-insensitive, order-preserving deduplication.
bare_name
    Strip directory components from a document path.
"""

from __future__ import annotations

import re
from typing import Iterable

ELLIPSIS = "…"

_WS = re.compile(r"\s+")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_MARKER = re.compile(r"^\s*(?:\d{1,2}\s*[.)]|[-•*])\s+")
_FILENAME = re.compile(
    r"\b[A-Z][A-Z0-9]+(?:[ _\-][A-Z0-9]+)*\.(?i:pdf|docx?|txt|md)\b"
)
_PATH_SEP = re.compile(r"[\\/]")


def squash(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WS.sub(" ", str(text or "")).strip()


def first_sentence(text: str, min_chars: int = 20, max_chars: int = 220) -> str | None:
    """Return the first sentence of ``min_chars``..``max_chars`` characters.

    A sentence starts at the beginning of ``text`` or right after terminal
    punctuation, and ends with ``.``, ``!`` or ``?``.

    Returns
    -------
    str or None
        The sentence with whitespace collapsed, or ``None`` if no sentence of
        acceptable length exists.
    """
    flat = squash(text)
    if not flat:
        return None
    start = 0
    for match in re.finditer(r"[.!?]+(?=\s|$)", flat):
        end = match.end()
        sentence = flat[start:end].strip()
        if min_chars <= len(sentence) <= max_chars:
            return sentence
        start = end
    return None


def clip_snippet(text: str, min_chars: int = 120, max_chars: int = 160) -> str:
    """Return the leading ``max_chars`` characters, cut at a word boundary.

    The cut moves back to the last space when that keeps at least
    ``min_chars`` characters. An ellipsis marks truncation.
    """
    flat = squash(text)
    if len(flat) <= max_chars:
        return flat
    cut = flat[:max_chars]
    space = cut.rfind(" ")
    if space >= min_chars:
        cut = cut[:space]
    return cut.rstrip(" ,;:") + ELLIPSIS


def cap_chars(text: str, limit: int) -> str:
    """Cap ``text`` at ``limit`` characters, ellipsis included."""
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 1)].rstrip() + ELLIPSIS


def cap_words(text: str, limit: int) -> str:
    """Cap ``text`` at ``limit`` whitespace-separated words."""
    words = text.split()
    if len(words) <= limit:
        return text
    return " ".join(words[:limit]).rstrip(" ,;:") + ELLIPSIS


def leaks_filename(text: str) -> bool:
    """True when ``text`` embeds an all-caps manual file name such as ``ERP_MANUAL.pdf``."""
    return bool(_FILENAME.search(text or ""))


def keep_first_sentence(text: str) -> str:
    """Return the first sentence of ``text`` (split on terminal punctuation + space)."""
    return _SENTENCE_END.split(text.strip(), maxsplit=1)[0].strip()


def has_marker(line: str) -> bool:
    return bool(_MARKER.match(line))


def strip_marker(line: str) -> str:
    return _MARKER.sub("", line, count=1).strip()


def dedupe_casefold(items: Iterable[str], limit: int | None = None) -> list[str]:
    """Drop empty and case-insensitive duplicate items, keeping first occurrences."""
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if not isinstance(item, str):
            continue
        value = item.strip()
        key = value.casefold()
        if not value or key in seen:
            continue
        seen.add(key)
        out.append(value)
        if limit is not None and len(out) >= limit:
            break
    return out


def bare_name(path: str) -> str:
    """Return the last path component of ``path`` for ``/`` or ``\\`` separators."""
    return _PATH_SEP.split(str(path or "").strip())[-1].strip()
