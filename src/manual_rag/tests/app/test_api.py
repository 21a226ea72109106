import textwrap

import pytest
from fastapi.testclient import TestClient

from manual_rag.app import api
from manual_rag.app.container import build_container
from manual_rag.config import GlobalConfig
from manual_rag.retrieval.document_loader import write_store


def _config(tmp_path, store="store/base.json"):
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(f"""
        corpus:
          store_path: {store}
        logging:
          level: WARNING
    """), encoding="utf-8")
    return path


@pytest.fixture
def client():
    # Startup hooks only run inside the context manager; tests wire state directly.
    yield TestClient(api.app)
    api.app.state.container = None


@pytest.fixture
def loaded_container(tmp_path, manual_records):
    cfg = GlobalConfig.load(_config(tmp_path))
    write_store(cfg.store_path, manual_records, {"totalFiles": 3})
    container = build_container(cfg)
    container.snapshots.reload()
    return container


def test_health_without_container(client):
    api.app.state.container = None
    assert client.get("/health").json() == {"status": "ok", "loaded": False}


def test_query_rejects_blank_question(client, loaded_container):
    api.app.state.container = loaded_container
    resp = client.post("/v1/query", json={"question": "   "})

    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "Missing question"


def test_query_without_container_is_unavailable(client):
    api.app.state.container = None
    resp = client.post("/v1/query", json={"question": "senha"})

    assert resp.status_code == 503


def test_query_before_corpus_load_is_unavailable(client, tmp_path):
    api.app.state.container = build_container(GlobalConfig.load(_config(tmp_path)))
    resp = client.post("/v1/query", json={"question": "senha"})

    assert resp.status_code == 503
    assert "hint" in resp.json()["detail"]


def test_query_answers_from_candidates_without_llm(client, loaded_container):
    api.app.state.container = loaded_container
    resp = client.post("/v1/query", json={"question": "Como resetar a senha?"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["intro"].startswith("Para resetar a senha")
    assert body["sources"] == ["ERP_MANUAL.pdf"]
    assert body["answer_origin"] == "fallback"
    assert body["messages"][0] == body["intro"]


def test_query_without_matches_is_not_found(client, loaded_container):
    api.app.state.container = loaded_container
    body = client.post("/v1/query", json={"question": "xyzzy"}).json()

    assert body["answer_origin"] == "not_found"
    assert body["steps"] == []
    assert body["sources"] == []


def test_search_returns_ranked_hits(client, loaded_container):
    api.app.state.container = loaded_container
    resp = client.post("/v1/search", json={"query": "cadastrar produto", "k": 2})

    assert resp.status_code == 200
    results = resp.json()["results"]
    assert results[0]["rank"] == 1
    assert results[0]["id"] == 3
    assert results[0]["source"] == "ESTOQUE.docx"
    assert len(results) <= 2


def test_search_validates_k(client, loaded_container):
    api.app.state.container = loaded_container

    assert client.post("/v1/search", json={"query": "x", "k": 0}).status_code == 422


def test_reload_reports_count_and_failures(client, loaded_container):
    api.app.state.container = loaded_container

    resp = client.post("/v1/reload")
    assert resp.status_code == 200
    assert resp.json() == {"count": 5}

    loaded_container.config.store_path.unlink()
    failed = client.post("/v1/reload")
    assert failed.status_code == 500
    assert "FileNotFoundError" in failed.json()["detail"]["error"]
    assert client.get("/health").json()["loaded"] is True


def test_startup_survives_missing_store(tmp_path, monkeypatch):
    monkeypatch.setenv(api.CONFIG_ENV, str(_config(tmp_path, store="missing.json")))

    with TestClient(api.app) as client:
        assert client.get("/health").json() == {"status": "ok", "loaded": False}
        assert client.post("/v1/search", json={"query": "senha"}).status_code == 503
    api.app.state.container = None
