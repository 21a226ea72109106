import pytest

from manual_rag.common.errors import AuthError, RateLimitError
from manual_rag.common.schemas import Origin
from manual_rag.config.settings import RerankSettings
from manual_rag.generation.prompt_builder import PromptBuilder
from manual_rag.retrieval.reranker import (
    HeuristicReranker,
    ModelAssistedReranker,
    create_reranker,
    parse_top_ids,
)


@pytest.fixture
def pool(candidate_factory):
    return [
        candidate_factory(1, "O relatório financeiro é exportado pelo menu Relatórios.", score=5.0),
        candidate_factory(2, "Para resetar a senha abra Configurações e clique em Segurança.", score=4.0),
        candidate_factory(3, "Cadastro de produtos fica no módulo Estoque.", score=3.0),
        candidate_factory(4, "Senha esquecida: use a opção resetar senha na tela de login.", score=2.0),
        candidate_factory(5, "Notas fiscais canceladas aparecem na consulta.", score=1.0),
    ]


@pytest.fixture
def builder():
    b = PromptBuilder()
    b.register_from_source("pkg:manual_rag.generation:prompts/default.json")
    return b


def _model_reranker(llm, builder, **overrides):
    settings = RerankSettings(enabled=True, timeout=5.0, **overrides)
    return ModelAssistedReranker(
        llm=llm,
        prompt_builder=builder,
        prompt_name="rerank_judgment",
        settings=settings,
    )


def test_small_pool_passes_through_unchanged(candidate_factory):
    cands = [candidate_factory(7, "b", score=0.1), candidate_factory(3, "a", score=9.0)]
    outcome = HeuristicReranker().select("senha", cands, 3)

    assert outcome.origin is Origin.PASSTHROUGH
    assert outcome.candidates == cands


def test_small_pool_never_calls_the_model(candidate_factory, builder, stub_llm_factory):
    llm = stub_llm_factory('{"topIds": [3]}')
    cands = [candidate_factory(1, "a"), candidate_factory(3, "b")]
    outcome = _model_reranker(llm, builder).select("q", cands, 3)

    assert outcome.candidates == cands
    assert outcome.origin is Origin.PASSTHROUGH
    assert llm.prompts == []


def test_heuristic_prefers_token_overlap(pool):
    outcome = HeuristicReranker().select("resetar senha", pool, 2)

    assert outcome.origin is Origin.HEURISTIC
    assert [c.id for c in outcome.candidates] == [4, 2]


def test_heuristic_retrieval_score_breaks_ties(candidate_factory):
    cands = [
        candidate_factory(1, "nada relacionado", score=1.0),
        candidate_factory(2, "outro assunto", score=9.0),
        candidate_factory(3, "mais um", score=5.0),
    ]
    outcome = HeuristicReranker().select("senha", cands, 2)

    assert [c.id for c in outcome.candidates] == [2, 3]


def test_heuristic_is_pure(pool):
    reranker = HeuristicReranker()
    snapshot = list(pool)

    first = reranker.rerank("resetar senha", pool, 3)
    second = reranker.rerank("resetar senha", pool, 3)

    assert first == second
    assert pool == snapshot
    assert len(first) == 3
    assert all(c in pool for c in first)


def test_model_selection_is_used(pool, builder, stub_llm_factory):
    llm = stub_llm_factory('Aqui está: {"topIds": [4, 99, 4, "2", 1]}')
    outcome = _model_reranker(llm, builder).select("resetar senha", pool, 2)

    assert outcome.origin is Origin.MODEL
    assert [c.id for c in outcome.candidates] == [4, 2]
    prompt = llm.prompts[0]
    assert "resetar senha" in prompt
    assert 'id:1 source:"A.pdf"' in prompt
    assert llm.kwargs[0]["temperature"] == 0.0


@pytest.mark.parametrize(
    "reply",
    [
        "",
        "não sei",
        '{"topIds": []}',
        '{"topIds": [42, 43]}',
        '{"ids": [1]}',
        AuthError("bad key"),
        RateLimitError("slow down"),
        RuntimeError("socket closed"),
    ],
)
def test_model_failures_degrade_to_heuristic(pool, builder, stub_llm_factory, reply, caplog):
    llm = stub_llm_factory(reply)
    with caplog.at_level("WARNING"):
        outcome = _model_reranker(llm, builder).select("resetar senha", pool, 2)

    assert outcome.origin is Origin.HEURISTIC
    assert outcome.reason
    assert [c.id for c in outcome.candidates] == [4, 2]
    assert "using heuristic" in caplog.text


def test_unknown_prompt_degrades_to_heuristic(pool, stub_llm_factory):
    reranker = ModelAssistedReranker(
        llm=stub_llm_factory('{"topIds": [1]}'),
        prompt_builder=PromptBuilder(),
        prompt_name="missing",
        settings=RerankSettings(enabled=True),
    )
    outcome = reranker.select("resetar senha", pool, 2)

    assert outcome.origin is Origin.HEURISTIC
    assert "KeyError" in outcome.reason


def test_listing_is_bounded(pool, builder, stub_llm_factory):
    reranker = _model_reranker(stub_llm_factory(), builder, max_candidates=2, snippet_chars=10)
    listing = reranker.format_listing(pool)

    assert "1. id:1" in listing
    assert "2. id:2" in listing
    assert "id:3" not in listing
    assert 'snippet: "O relatóri"' in listing


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('{"topIds": [3, 1]}', ["3", "1"]),
        ('texto {"topIds": ["7", 8]} fim', ["7", "8"]),
        ("[5, 6]", ["5", "6"]),
        ('{"topIds": [1, 2', []),
        ("topIds: [4, 2, 9]", ["4", "2", "9"]),
        ('{"topIds": "1,2"}', []),
        ("", []),
        (None, []),
    ],
)
def test_parse_top_ids(raw, expected):
    assert parse_top_ids(raw) == expected


def test_create_reranker(builder, stub_llm_factory):
    assert isinstance(create_reranker(settings=RerankSettings()), HeuristicReranker)
    assert isinstance(create_reranker(settings=RerankSettings(enabled=True)), HeuristicReranker)
    model = create_reranker(
        settings=RerankSettings(enabled=True),
        llm=stub_llm_factory(),
        prompt_builder=builder,
    )
    assert isinstance(model, ModelAssistedReranker)
