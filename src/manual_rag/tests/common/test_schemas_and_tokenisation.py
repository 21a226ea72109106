import logging
import unicodedata

import pytest

from manual_rag.common.errors import (
    AuthError,
    EmptyResponse,
    GenerationFailure,
    GenerationTimeout,
    ProviderError,
    RateLimitError,
)
from manual_rag.common.logging_utils import configure_logging, parse_level
from manual_rag.common.schemas import Candidate, CanonicalAnswer, Chunk
from manual_rag.common.tokenisation import simple_tokens, tokenize


def test_tokenize_normalises_case_punctuation_and_whitespace():
    assert tokenize("Configurações:  clique em 'Salvar'!\n") == ["configurações", "clique", "em", "salvar"]
    assert tokenize("snake_case-word") == ["snake", "case", "word"]
    assert tokenize("   ") == []
    assert tokenize(None) == []


def test_tokenize_composes_unicode():
    composed = "Configura\u00e7\u00f5es"
    decomposed = unicodedata.normalize("NFD", composed)
    assert decomposed != composed
    assert tokenize(decomposed) == [composed.lower()]


def test_simple_tokens_keeps_portuguese_letters_only():
    assert simple_tokens("Ação rápida: ÍNDICE #2") == ["ação", "rápida", "índice", "2"]
    assert simple_tokens(None) == []


def test_chunk_from_record():
    chunk = Chunk.from_record({"text": "  abc  ", "source": " A.pdf "}, position=4)

    assert chunk == Chunk(id=5, source="A.pdf", text="abc", start=0, end=3, length=3)
    assert Chunk.from_record({"id": "12", "text": "x", "source": "B"}, 0).id == 12
    assert Chunk.from_record({"id": 1.5, "text": "x"}, 0).id == 1
    assert Chunk.from_record({"id": [1], "text": "x"}, 0) is None
    assert Chunk.from_record({"text": 3}, 0) is None


def test_candidate_delegates_to_chunk():
    cand = Candidate(chunk=Chunk(id=2, source="S.md", text="t"), score=0.5)

    assert (cand.id, cand.source, cand.text) == (2, "S.md", "t")


def test_canonical_answer_views():
    answer = CanonicalAnswer(intro="Oi.", steps=("a", "b"), extra="", sources=("A.pdf",))

    assert answer.messages == ["Oi.", "a", "b"]
    assert answer.to_dict() == {"intro": "Oi.", "steps": ["a", "b"], "extra": "", "sources": ["A.pdf"]}


@pytest.mark.parametrize(
    "cls, kind",
    [
        (AuthError, "auth"),
        (RateLimitError, "rate_limit"),
        (GenerationTimeout, "timeout"),
        (ProviderError, "provider"),
        (EmptyResponse, "empty"),
    ],
)
def test_generation_failure_kinds(cls, kind):
    cause = OSError("x")
    err = cls(cause=cause)

    assert isinstance(err, GenerationFailure)
    assert err.kind == kind
    assert str(err) == kind
    assert err.cause is cause


def test_parse_level():
    assert parse_level("debug") == logging.DEBUG
    assert parse_level("WARN") == logging.WARNING
    assert parse_level("15") == 15
    assert parse_level(30) == 30
    with pytest.raises(ValueError):
        parse_level("loud")
    with pytest.raises(ValueError):
        parse_level("")


def test_configure_logging_does_not_duplicate_handlers():
    name = "manual_rag.tests.logging"
    configure_logging("INFO", logger_name=name)
    configure_logging("DEBUG", logger_name=name)
    target = logging.getLogger(name)

    assert target.level == logging.DEBUG
    assert len([h for h in target.handlers if isinstance(h, logging.StreamHandler)]) == 1
