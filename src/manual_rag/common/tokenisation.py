"""manual_rag.common.tokenisation

Lexical tokenisers used by the retriever and the reranker.

Two tokenisers are provided because the two stages look at text differently:

- :func:`tokenize` is Unicode-aware and keeps every letter and digit, so term
  statistics work for any language the manuals are written in.
- :func:`simple_tokens` is the cheaper reranker tokeniser restricted to ASCII
  letters, digits and the accented letters common in Portuguese manuals.

Functions
---------
tokenize
    Lower-case, strip punctuation, collapse whitespace and split.
simple_tokens
    Restricted-alphabet tokeniser used by heuristic reranking.
"""

from __future__ import annotations

import re
import unicodedata

_NON_WORD = re.compile(r"[^\w\s]|_", flags=re.UNICODE)
_WHITESPACE = re.compile(r"\s+")
_RERANK_NON_WORD = re.compile(r"[^a-z0-9áéíóúàâêôãõçü\s]")


def tokenize(text: str) -> list[str]:
    """Split ``text`` into lower-cased word tokens.

    Parameters
    ----------
    text : str
        Input text. Non-string or blank input yields an empty list.

    Returns
    -------
    list[str]
        Tokens in reading order, duplicates preserved.

    Examples
    --------
    >>> tokenize("Configurações: clique em 'Salvar'!")
    ['configurações', 'clique', 'em', 'salvar']
    """
    if not isinstance(text, str) or not text.strip():
        return []
    normalised = unicodedata.normalize("NFC", text).lower()
    normalised = _NON_WORD.sub(" ", normalised)
    return _WHITESPACE.sub(" ", normalised).strip().split()


def simple_tokens(text: str) -> list[str]:
    """Tokenise ``text`` for overlap heuristics."""
    lowered = unicodedata.normalize("NFC", str(text or "")).lower()
    lowered = _RERANK_NON_WORD.sub(" ", lowered)
    return _WHITESPACE.sub(" ", lowered).strip().split()


__all__ = ["tokenize", "simple_tokens"]
