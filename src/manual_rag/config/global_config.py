"""manual_rag.config.global_config

Global configuration loader and accessors.

This module defines a lightweight wrapper around a raw YAML configuration
dictionary, providing validated, cached access to the configuration sections
used by the question-answering pipeline.

Environment variables of the form ``${VAR}`` are expanded recursively in all
string values at load time.

Classes
-------
GlobalConfig
    Loader and accessor for global project configuration.
"""

import os
import yaml
from pathlib import Path
from functools import cached_property

from manual_rag.config.settings import (
    AnswerSettings,
    CorpusSettings,
    RerankSettings,
    RetrieverSettings,
)

DEFAULT_PROMPTS = "pkg:manual_rag.generation:prompts/default.json"
DEFAULT_PROMPT_NAME = "manual_answer"
DEFAULT_RERANK_PROMPT_NAME = "rerank_judgment"


def _expand_env(obj):
    """Recursively expand environment variables in a nested structure.

    Parameters
    ----------
    obj : Any
        Object to expand. Supported types are dictionaries, lists, and strings.
        Other types are returned unchanged.

    Returns
    -------
    Any
        A structure of the same shape as ``obj`` with environment variables
        expanded in all string values.
    """
    if isinstance(obj, dict):
        return {k: _expand_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env(v) for v in obj]
    if isinstance(obj, str):
        return os.path.expandvars(obj)
    return obj


class GlobalConfig:
    """Loader and accessor for global project configuration.

    Parameters
    ----------
    raw : dict
        Raw configuration data as loaded from a YAML file.
    config_path : Path or None, optional
        Absolute path of the loaded file. Relative paths in the configuration
        (corpus store, manuals directory, prompt files) resolve against its
        parent directory.
    """

    def __init__(
            self,
            raw: dict | None = None,
            config_path: Path | None = None,
        ):
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise TypeError(f"Configuration root must be a mapping, got {type(raw)!r}.")
        self.raw = raw
        self.config_path = config_path

    @classmethod
    def load(
            cls,
            path: str | Path,
        ) -> "GlobalConfig":
        """Load configuration from a YAML file.

        Parameters
        ----------
        path : str or Path
            Path to the YAML configuration file.

        Returns
        -------
        GlobalConfig
            An instance initialised with the loaded and environment-expanded data.
        """
        cfg_path = Path(path).expanduser().resolve()
        with cfg_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        data = _expand_env(data or {})
        return cls(data, config_path=cfg_path)

    @property
    def base_dir(self) -> Path:
        """Directory relative paths are resolved against."""
        if self.config_path is not None:
            return Path(self.config_path).parent
        return Path.cwd()

    def resolve_path(self, value: str | Path) -> Path:
        """Resolve ``value`` relative to :attr:`base_dir` when not absolute."""
        p = Path(value).expanduser()
        if not p.is_absolute():
            p = self.base_dir / p
        return p.resolve()

    @cached_property
    def corpus(self) -> CorpusSettings:
        """Return the corpus settings (``corpus`` section)."""
        return CorpusSettings.from_mapping(self.raw.get("corpus"))

    @cached_property
    def store_path(self) -> Path:
        """Absolute path of the JSON corpus store."""
        return self.resolve_path(self.corpus.store_path)

    @cached_property
    def manuals_dir(self) -> Path:
        """Absolute path of the directory holding raw manuals."""
        return self.resolve_path(self.corpus.manuals_dir)

    @cached_property
    def retriever(self) -> RetrieverSettings:
        """Return the retriever settings (``retriever`` section)."""
        return RetrieverSettings.from_mapping(self.raw.get("retriever"))

    @cached_property
    def rerank(self) -> RerankSettings:
        """Return the reranker settings (``rerank`` section)."""
        return RerankSettings.from_mapping(self.raw.get("rerank"))

    @cached_property
    def answer(self) -> AnswerSettings:
        """Return the answer normaliser settings (``answer`` section)."""
        return AnswerSettings.from_mapping(self.raw.get("answer"))

    @cached_property
    def generator_llm(self) -> dict:
        """Return the generator LLM configuration section.

        Returns
        -------
        dict
            The ``generator_llm`` section, or an empty dict when generation is
            not configured (the pipeline then always uses local fallbacks).

        Raises
        ------
        TypeError
            If the section is present but is not a mapping.
        """
        section = self.raw.get("generator_llm") or {}
        if not isinstance(section, dict):
            raise TypeError("'generator_llm' must be a mapping.")
        return section

    @cached_property
    def prompts(self) -> list[str]:
        """Return prompt template sources.

        Returns
        -------
        list[str]
            Configured ``prompts`` entry normalised to a list. Defaults to the
            templates bundled with the package.
        """
        prompts = self.raw.get("prompts", DEFAULT_PROMPTS)
        if isinstance(prompts, str):
            return [prompts]
        if isinstance(prompts, (list, tuple)):
            return [str(p) for p in prompts]
        raise TypeError(f"'prompts' must be a str or list[str], got {type(prompts)!r}")

    @cached_property
    def prompt_name(self) -> str:
        """Name of the template used to build answer prompts."""
        return str(self.raw.get("prompt_name") or DEFAULT_PROMPT_NAME)

    @cached_property
    def rerank_prompt_name(self) -> str:
        """Name of the template used to build rerank judgment prompts."""
        return str(self.raw.get("rerank_prompt_name") or DEFAULT_RERANK_PROMPT_NAME)

    @cached_property
    def log_level(self) -> str:
        """Logging level for entrypoints (``logging.level``), default ``INFO``."""
        section = self.raw.get("logging") or {}
        if not isinstance(section, dict):
            raise TypeError("'logging' must be a mapping.")
        return str(section.get("level", "INFO"))
