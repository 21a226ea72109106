"""manual_rag.config

Configuration subsystem for the manual question-answering pipeline.

This package provides structured access to global and component-level
configuration loaded from YAML files. It exposes validated, documented
interfaces rather than raw configuration dictionaries.

Modules
-------
global_config
    Global configuration loader and cached accessors.
settings
    Typed settings values handed to each component at construction.
"""
from .global_config import GlobalConfig
from .settings import AnswerSettings, CorpusSettings, RerankSettings, RetrieverSettings

__all__ = [
    "GlobalConfig",
    "AnswerSettings",
    "CorpusSettings",
    "RerankSettings",
    "RetrieverSettings",
]
