"""manual_rag.app.container

Composition root for the manuals question-answering system.

This module is the single place where concrete implementations are wired
together from configuration (snapshot manager, retriever, reranker, generator
LLM, prompt builder, answer normaliser and the end-to-end pipeline).
Components are constructed lazily and cached on first access.

Notes
-----
- Keep this module importable with minimal side effects:
  - do not perform network calls at import time
  - do not read files at import time
  - construct objects lazily (cached on first access)

- The corpus snapshot is not loaded by the container. Entry points call
  ``container.snapshots.reload()`` once at startup and on explicit reload;
  until then queries raise :class:`~manual_rag.common.errors.NotInitializedError`.

Examples
--------
>>> from manual_rag.config import GlobalConfig
>>> from manual_rag.app.container import build_container
>>> cfg = GlobalConfig.load("config/config.yaml")
>>> c = build_container(cfg)
>>> c.snapshots.reload()
>>> result = c.pipeline.run("Como resetar a senha?")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Mapping

logger = logging.getLogger(__name__)

_REQUEST_KEYS = ("temperature", "max_tokens", "top_p")


@dataclass(frozen=True)
class ManualRagContainer:
    """Holds the configured, cached runtime components for the application.

    Parameters
    ----------
    config : Any
        Loaded global configuration object (typically :class:`manual_rag.config.GlobalConfig`).
    """

    config: Any

    @cached_property
    def snapshots(self) -> Any:
        """Return the corpus snapshot manager reading the configured JSON store."""
        from manual_rag.retrieval.snapshot import SnapshotManager

        return SnapshotManager.from_store(self.config.store_path, settings=self.config.retriever)

    @cached_property
    def retriever(self) -> Any:
        """Return the lexical retriever bound to :attr:`snapshots`."""
        from manual_rag.retrieval.retriever import LexicalRetriever

        return LexicalRetriever(self.snapshots, default_k=self.config.retriever.pool_size)

    @cached_property
    def generator_llm(self) -> Any:
        """Return the LLM used to generate answers, or ``None`` when not configured.

        Returns
        -------
        BaseLLM or None
            Configured generator. Without one, every answer is built by the
            deterministic fallback.
        """
        section = _as_mapping(self.config.generator_llm)
        if not section:
            logger.warning("No 'generator_llm' configured; answers use the deterministic fallback.")
            return None

        from manual_rag.generation.llm_interface import create_llm

        return create_llm(dict(section))

    @cached_property
    def prompt_builder(self) -> Any:
        """Return the prompt builder initialised from ``config.prompts``.

        Prompt sources are resolved relative to the loaded config file
        directory, not the current working directory.
        """
        from manual_rag.generation.prompt_builder import PromptBuilder

        builder = PromptBuilder()
        for src in self.config.prompts:
            builder.register_from_source(src, base_dir=self.config.base_dir)
        return builder

    @cached_property
    def prompt_name(self) -> str:
        """Return the configured answer prompt name.

        Raises
        ------
        ValueError
            If the configured prompt name is not registered.
        """
        name = self.config.prompt_name
        if not self.prompt_builder.has_prompt(name):
            available = ", ".join(self.prompt_builder.list_prompts())
            raise ValueError(
                f"Configured prompt_name {name!r} was not found in loaded prompts. "
                f"Available: [{available}]"
            )
        return name

    @cached_property
    def reranker(self) -> Any:
        """Return the reranker selected by ``config.rerank``."""
        from manual_rag.retrieval.reranker import create_reranker

        settings = self.config.rerank
        if not settings.enabled:
            return create_reranker(settings=settings)
        return create_reranker(
            settings=settings,
            llm=self.generator_llm,
            prompt_builder=self.prompt_builder,
            prompt_name=self.config.rerank_prompt_name,
        )

    @cached_property
    def normalizer(self) -> Any:
        """Return the answer normaliser configured by ``config.answer``."""
        from manual_rag.answer.normalizer import AnswerNormalizer

        return AnswerNormalizer(self.config.answer)

    @cached_property
    def pipeline(self) -> Any:
        """Return the fully wired question-answering pipeline."""
        from manual_rag.pipelines.rag_pipeline import RAGPipeline

        model_kwargs = _as_mapping(self.config.generator_llm.get("model_kwargs") or {})
        defaults = {k: model_kwargs[k] for k in _REQUEST_KEYS if k in model_kwargs}

        return RAGPipeline(
            retriever=self.retriever,
            reranker=self.reranker,
            prompt_builder=self.prompt_builder,
            prompt_name=self.prompt_name,
            llm=self.generator_llm,
            normalizer=self.normalizer,
            pool_size=self.config.retriever.pool_size,
            top_k=self.config.rerank.top_k,
            generation_timeout=self.config.answer.generation_timeout,
            llm_generate_defaults=defaults,
        )


def build_container(config: Any) -> ManualRagContainer:
    """Create a :class:`~manual_rag.app.container.ManualRagContainer`.

    Single entry point for the FastAPI startup hook, CLI scripts and tests.
    """
    return ManualRagContainer(config=config)


def _as_mapping(obj: Any) -> Mapping[str, Any]:
    """Coerce an object into a mapping.

    Raises
    ------
    TypeError
        If ``obj`` cannot be interpreted as a mapping.
    """
    if isinstance(obj, Mapping):
        return obj

    if hasattr(obj, "__dict__"):
        return dict(vars(obj))

    raise TypeError(f"Expected mapping type but got {type(obj)}")


__all__ = ["ManualRagContainer", "build_container"]
