"""manual_rag.config.settings

Typed, immutable settings passed to each component at construction.

Feature toggles (reranking enabled, token budgets, model identifiers) live in
these values rather than in process-wide environment lookups, so every
component can be built and tested in isolation.

Classes
-------
CorpusSettings
    Corpus store location and ingestion chunking parameters.
RetrieverSettings
    Candidate pool size and BM25 parameters.
RerankSettings
    Reranking mode and model-assisted judgment budget.
AnswerSettings
    Caps applied by the answer normaliser.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping


def _coerce(cls, data: Mapping[str, Any] | None, section: str):
    """Build ``cls`` from ``data``, validating keys and casting to field types."""
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise TypeError(f"'{section}' must be a mapping, got {type(data)!r}.")

    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ValueError(f"Unknown keys in '{section}': {unknown}")

    kwargs: dict[str, Any] = {}
    for name, value in data.items():
        default = getattr(cls, name)
        if value is None or default is None:
            kwargs[name] = value
            continue
        caster = type(default)
        try:
            if caster is bool and isinstance(value, str):
                kwargs[name] = value.strip().lower() in {"1", "true", "yes", "on"}
            else:
                kwargs[name] = caster(value)
        except (TypeError, ValueError) as e:
            raise TypeError(
                f"'{section}.{name}' must be {caster.__name__}, got {value!r}."
            ) from e
    return cls(**kwargs)


@dataclass(frozen=True)
class CorpusSettings:
    """Corpus store and ingestion settings."""

    store_path: str = "data/store/base.json"
    manuals_dir: str = "data/manuals"
    chunk_size: int = 900
    chunk_overlap: int = 150
    min_text_chars: int = 80

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError("'corpus.chunk_size' must be a positive integer.")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("'corpus.chunk_overlap' must be in [0, chunk_size).")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "CorpusSettings":
        return _coerce(cls, data, "corpus")


@dataclass(frozen=True)
class RetrieverSettings:
    """Lexical retriever settings.

    Attributes
    ----------
    pool_size : int
        Number of candidates fetched before reranking.
    k1, b, epsilon : float
        Okapi BM25 parameters.
    """

    pool_size: int = 8
    k1: float = 1.5
    b: float = 0.75
    epsilon: float = 0.25

    def __post_init__(self):
        if self.pool_size <= 0:
            raise ValueError("'retriever.pool_size' must be a positive integer.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "RetrieverSettings":
        return _coerce(cls, data, "retriever")


@dataclass(frozen=True)
class RerankSettings:
    """Reranker settings.

    Attributes
    ----------
    enabled : bool
        Opt into model-assisted reranking. Heuristic mode is used otherwise.
    top_k : int
        Number of candidates kept after reranking.
    max_candidates : int
        Maximum number of candidates listed in the judgment prompt.
    snippet_chars : int
        Characters of candidate text shown per listing entry.
    heuristic_chars : int
        Characters of candidate text compared by the overlap heuristic.
    max_tokens : int
        Token budget for the judgment response.
    model_name : str or None
        Model used for judgments. ``None`` reuses the generator model.
    timeout : float
        Seconds allowed for the judgment call.
    """

    enabled: bool = False
    top_k: int = 3
    max_candidates: int = 12
    snippet_chars: int = 350
    heuristic_chars: int = 800
    max_tokens: int = 256
    model_name: str | None = None
    timeout: float = 20.0

    def __post_init__(self):
        if self.top_k <= 0:
            raise ValueError("'rerank.top_k' must be a positive integer.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "RerankSettings":
        return _coerce(cls, data, "rerank")


@dataclass(frozen=True)
class AnswerSettings:
    """Caps enforced by the answer normaliser."""

    max_steps: int = 3
    max_sources: int = 3
    intro_max_chars: int = 1200
    intro_max_words: int = 18
    sentence_min_chars: int = 20
    sentence_max_chars: int = 220
    snippet_min_chars: int = 120
    snippet_max_chars: int = 160
    generation_timeout: float = 30.0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "AnswerSettings":
        return _coerce(cls, data, "answer")


__all__ = [
    "AnswerSettings",
    "CorpusSettings",
    "RerankSettings",
    "RetrieverSettings",
]
