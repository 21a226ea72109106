"""manual_rag

Question answering over technical manuals.

This package retrieves relevant manual chunks lexically, narrows them with a
reranker, and turns the (possibly unreliable) output of a generative model
into a stable, bounded-shape answer, falling back to deterministic extraction
whenever generation fails.

Attributes
----------
__version__ : str
    Package version string. Defaults to ``"0.0.0-dev"`` when package metadata is
    unavailable.

Modules
-------
config
    Global configuration loader and typed settings.
app
    Composition root, FastAPI app, CLI and ingestion entry points.
pipelines
    End-to-end pipeline orchestration (retrieval → rerank → generation → normalisation).
retrieval
    Corpus snapshot, lexical retriever, rerankers and ingestion helpers.
generation
    LLM interface, generation boundary and prompt building.
answer
    Answer normaliser and its parsing strategies.
common
    Shared schemas, errors, tokenisers and logging setup.

Exports
-------
GlobalConfig
    Global configuration loader and accessor.
ManualRagContainer
    Cached runtime component container for applications.
build_container
    Factory function to construct a configured container.
RAGPipeline
    End-to-end question-answering pipeline.
CanonicalAnswer
    Bounded-shape answer contract.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("manual-rag")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from .config import GlobalConfig
from .app.container import ManualRagContainer, build_container
from .pipelines.rag_pipeline import RAGPipeline
from .common import CanonicalAnswer

__all__ = [
    "__version__",
    "GlobalConfig",
    "ManualRagContainer",
    "build_container",
    "RAGPipeline",
    "CanonicalAnswer",
]
