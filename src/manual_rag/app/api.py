# manual_rag/app/api.py
from __future__ import annotations

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from manual_rag.config import GlobalConfig
from manual_rag.app.container import build_container
from manual_rag.common.errors import NotInitializedError
from manual_rag.common.logging_utils import configure_logging
import logging
import os
from typing import Any

CONFIG_ENV = "MANUAL_RAG_CONFIG"
DEFAULT_CONFIG_PATH = "config/config.yaml"

app = FastAPI(title="Manual RAG API", version="0.1.0")
logger = logging.getLogger("manual_rag.api")


class QueryRequest(BaseModel):
    question: str


class QueryResponse(BaseModel):
    intro: str
    steps: list[str] = Field(default_factory=list)
    extra: str = ""
    sources: list[str] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)
    answer_origin: str


class SearchRequest(BaseModel):
    query: str
    k: int = Field(default=5, ge=1, le=50)


class SearchHit(BaseModel):
    rank: int
    id: int
    source: str
    score: float
    text: str


class SearchResponse(BaseModel):
    results: list[SearchHit] = Field(default_factory=list)


class ReloadResponse(BaseModel):
    count: int


def _container() -> Any:
    container = getattr(app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail={"error": "Service is not configured yet."})
    return container


def _not_ready(e: NotInitializedError) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={"error": f"{e}", "hint": "Run the ingestion script, then POST /v1/reload."},
    )


@app.on_event("startup")
def startup():
    # Use env var so Docker can pass config location
    cfg_path = os.environ.get(CONFIG_ENV, DEFAULT_CONFIG_PATH)
    cfg = GlobalConfig.load(cfg_path)
    configure_logging(cfg.log_level)
    container = build_container(cfg)
    app.state.container = container
    try:
        count = container.snapshots.reload()
        logger.info("Index loaded with %d chunks.", count)
    except (OSError, ValueError):
        # Queries answer 503 until a successful /v1/reload.
        logger.exception("Failed to load corpus store at startup")


@app.get("/health")
def health():
    container = getattr(app.state, "container", None)
    loaded = bool(container is not None and container.snapshots.is_loaded)
    return {"status": "ok", "loaded": loaded}


@app.post("/v1/query", response_model=QueryResponse)
def query(req: QueryRequest):
    question = req.question.strip()
    if not question:
        raise HTTPException(status_code=400, detail={"error": "Missing question"})

    container = _container()
    try:
        result = container.pipeline.run(question)
    except NotInitializedError as e:
        raise _not_ready(e)
    except Exception as e:
        logger.exception("Error while handling /v1/query")
        raise HTTPException(status_code=500, detail={"error": f"{type(e).__name__}: {e}"})

    answer = result.answer
    return QueryResponse(
        intro=answer.intro,
        steps=list(answer.steps),
        extra=answer.extra,
        sources=list(answer.sources),
        messages=answer.messages,
        answer_origin=result.answer_origin.value,
    )


@app.post("/v1/search", response_model=SearchResponse)
def search(req: SearchRequest):
    container = _container()
    try:
        hits = container.retriever.search(req.query, req.k)
    except NotInitializedError as e:
        raise _not_ready(e)

    return SearchResponse(
        results=[
            SearchHit(rank=i, id=h.id, source=h.source, score=float(h.score), text=h.text)
            for i, h in enumerate(hits, start=1)
        ]
    )


@app.post("/v1/reload", response_model=ReloadResponse)
def reload():
    container = _container()
    try:
        count = container.snapshots.reload()
    except (OSError, ValueError) as e:
        logger.exception("Error while handling /v1/reload")
        raise HTTPException(status_code=500, detail={"error": f"{type(e).__name__}: {e}"})
    return ReloadResponse(count=count)
