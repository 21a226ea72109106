"""manual_rag.generation.llm_interface

Unified interface and factory for generative model backends.

This module defines a small, provider-agnostic abstraction for text
generation, a concrete implementation backed by LangChain's OpenAI-compatible
chat wrapper (suitable for Groq, OpenAI, vLLM and similar endpoints), and the
generation boundary used by the rest of the system.

The boundary (:func:`generate_text`) is the only place where provider errors
are seen. It never retries, bounds every call with a timeout and translates
every failure into one of the :class:`~manual_rag.common.errors.GenerationFailure`
kinds, which callers recover from locally.

Classes
-------
GenerationRequest
    Prompt plus sampling parameters for one generation call.
BaseLLM
    Abstract interface specifying the API used by the pipeline.
OpenAIChatLikeLLM
    Chat completions using an OpenAI-compatible HTTP API via LangChain.

Functions
---------
create_llm
    Construct an LLM implementation from a configuration mapping.
generate_text
    Run one bounded generation call and normalise its failures.
"""

from __future__ import annotations

import logging
import warnings
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Mapping

import openai
from langchain_core.callbacks import BaseCallbackHandler
from langchain_openai import ChatOpenAI

from manual_rag.common.errors import (
    AuthError,
    EmptyResponse,
    GenerationFailure,
    GenerationTimeout,
    ProviderError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

_GENERATION_POOL = ThreadPoolExecutor(max_workers=8, thread_name_prefix="generation")


def _is_groq(api_base: str | None) -> bool:
    return bool(api_base) and "api.groq.com" in api_base.lower()


def _sanitize_openai_kwargs(
    api_base: str | None,
    kwargs: dict[str, Any],
    *,
    context: str,
) -> dict[str, Any]:
    """Drop provider-incompatible OpenAI kwargs for known OpenAI-compatible backends."""
    sanitized = dict(kwargs)

    unsupported: set[str] = set()
    if _is_groq(api_base):
        unsupported |= {"logprobs", "top_logprobs", "logit_bias"}

    removed = sorted(k for k in unsupported if k in sanitized)
    for key in removed:
        sanitized.pop(key, None)
    if removed:
        warnings.warn(
            f"Dropping unsupported params for {api_base} during {context}: {', '.join(removed)}",
            UserWarning,
        )

    return sanitized


@dataclass(frozen=True)
class GenerationRequest:
    """One request across the generation boundary.

    Attributes
    ----------
    prompt : str
        Fully rendered prompt text.
    model_id : str or None
        Model override. ``None`` uses the backend's configured model.
    temperature : float
        Sampling temperature.
    max_tokens : int
        Completion token budget.
    top_p : float
        Nucleus sampling parameter.
    """

    prompt: str
    model_id: str | None = None
    temperature: float = 0.15
    max_tokens: int = 512
    top_p: float = 0.95

    def generation_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
        }
        if self.model_id:
            kwargs["model"] = self.model_id
        return kwargs


class BaseLLM(ABC):
    """Abstract interface for LLM text generation.

    Concrete implementations wrap provider-specific clients and expose a
    small, consistent API used by the pipeline.
    """

    @classmethod
    @abstractmethod
    def from_config_dict(
            cls,
            config: dict,
            callback_manager: BaseCallbackHandler = None
        ):
        """Create an LLM instance from a configuration mapping.

        Parameters
        ----------
        config : dict
            Configuration parameters for the concrete implementation.
        callback_manager : BaseCallbackHandler, optional
            Optional callback handler for logging/telemetry/streaming.

        Returns
        -------
        BaseLLM
            An initialised LLM implementation.

        Raises
        ------
        ValueError
            If required configuration keys are missing or invalid.
        """

    @property
    def model_name(self) -> str | None:
        """Configured model identifier, if known."""
        return None

    @abstractmethod
    def generate(
            self,
            prompt: str,
            **kwargs
        ) -> str:
        """Generate text for a single prompt.

        Parameters
        ----------
        prompt : str
            Prompt text to send to the model.
        **kwargs
            Sampling parameters (``temperature``, ``max_tokens``, ``top_p``,
            ``model``) forwarded to the underlying model.

        Returns
        -------
        str
            Completion text.
        """


class OpenAIChatLikeLLM(BaseLLM):
    """LLM interface using an OpenAI-compatible Chat Completions API via LangChain.

    This implementation wraps :class:`langchain_openai.ChatOpenAI`. Client-side
    retries are disabled; the generation boundary never retries.

    Parameters
    ----------
    model_name : str
        Model identifier (e.g., ``"llama-3.3-70b-versatile"``).
    api_base : str
        Base URL for the OpenAI-compatible API endpoint.
    api_key : str, optional
        API key value.
    timeout : float, optional
        Per-request HTTP timeout in seconds. Defaults to ``30``.
    callback_manager : BaseCallbackHandler, optional
        Optional callback handler for logging/telemetry/streaming.
    **model_kwargs : Any
        Default sampling parameters (``temperature``, ``top_p``, ``max_tokens``).
    """

    def __init__(
        self,
        model_name: str,
        api_base: str,
        api_key: str = "fake",
        timeout: float = 30.0,
        callback_manager: BaseCallbackHandler = None,
        **model_kwargs: Any,
    ):
        if not model_name:
            raise ValueError("'model_name' is required for the OpenAI-compatible chat LLM.")
        if not api_base:
            raise ValueError("'api_base' is required for the OpenAI-compatible chat LLM.")

        self.api_base = api_base
        self._model_name = model_name
        model_kwargs = _sanitize_openai_kwargs(api_base, model_kwargs, context="model init")
        self.model_kwargs = dict(model_kwargs)

        top_p = model_kwargs.pop("top_p", None)
        if top_p is not None:
            try:
                top_p_val = float(top_p)
            except (TypeError, ValueError):
                top_p_val = None
            else:
                if not (0.0 < top_p_val <= 1.0):
                    top_p_val = None
            top_p = top_p_val

        init_kwargs: dict[str, Any] = dict(model_kwargs)
        init_kwargs["model"] = model_name
        init_kwargs["base_url"] = api_base
        init_kwargs["api_key"] = api_key or "fake"
        init_kwargs["timeout"] = float(timeout)
        init_kwargs["max_retries"] = 0
        if top_p is not None:
            init_kwargs["top_p"] = top_p
        if callback_manager is not None:
            init_kwargs["callbacks"] = [callback_manager]

        self.llm = ChatOpenAI(**init_kwargs)

    @property
    def model_name(self) -> str | None:
        return self._model_name

    @classmethod
    def from_config_dict(
        cls,
        config: dict,
        callback_manager: BaseCallbackHandler = None,
    ) -> "OpenAIChatLikeLLM":
        """Create an OpenAI-compatible chat LLM from a mapping.

        Expected keys are ``model_name`` and ``api_base``, plus optional
        ``api_key``, ``timeout`` and ``model_kwargs``.
        """
        model_kwargs = dict(config.get("model_kwargs") or {})
        return cls(
            model_name=config.get("model_name"),
            api_base=config.get("api_base"),
            api_key=config.get("api_key", None),
            timeout=float(config.get("timeout", 30.0)),
            callback_manager=callback_manager,
            **model_kwargs,
        )

    def get_llm(self) -> ChatOpenAI:
        """Return the underlying LangChain chat model object."""
        return self.llm

    def generate(self, prompt: str, **kwargs) -> str:
        """Generate text for a single prompt."""
        if not isinstance(prompt, str):
            prompt = prompt.to_string() if hasattr(prompt, "to_string") else str(prompt)

        run_kwargs = _sanitize_openai_kwargs(self.api_base, kwargs, context="generation")
        response = self.llm.invoke(prompt, **run_kwargs)
        content = response.content if hasattr(response, "content") else response
        return _content_to_text(content)


def _content_to_text(content: Any) -> str:
    """Flatten LangChain message content (str or list of parts) to text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, Mapping) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)
    return str(content)


def _classify_failure(exc: BaseException) -> GenerationFailure:
    """Translate a provider or transport exception into a generation failure kind."""
    if isinstance(exc, GenerationFailure):
        return exc
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthError(str(exc), cause=exc)
    if isinstance(exc, openai.RateLimitError):
        return RateLimitError(str(exc), cause=exc)
    if isinstance(exc, (openai.APITimeoutError, TimeoutError, FutureTimeout)):
        return GenerationTimeout(str(exc) or "generation timed out", cause=exc)
    return ProviderError(f"{type(exc).__name__}: {exc}", cause=exc)


def generate_text(
        llm: BaseLLM | None,
        request: GenerationRequest,
        *,
        timeout: float,
    ) -> str:
    """Run one generation call bounded by ``timeout``.

    Parameters
    ----------
    llm : BaseLLM or None
        Backend to call. ``None`` means generation is not configured.
    request : GenerationRequest
        Prompt and sampling parameters.
    timeout : float
        Seconds to wait for the completion. The call is abandoned afterwards.

    Returns
    -------
    str
        Non-blank completion text.

    Raises
    ------
    GenerationFailure
        ``AuthError``, ``RateLimitError``, ``GenerationTimeout``,
        ``ProviderError`` or ``EmptyResponse``. No other exception escapes.
    """
    if llm is None:
        raise ProviderError("No generator LLM configured.")

    future = _GENERATION_POOL.submit(llm.generate, request.prompt, **request.generation_kwargs())
    try:
        text = future.result(timeout=timeout)
    except FutureTimeout as e:
        future.cancel()
        raise GenerationTimeout(f"generation exceeded {timeout:.1f}s", cause=e) from e
    except Exception as e:
        failure = _classify_failure(e)
        raise failure from e

    text = _content_to_text(text)
    if not text.strip():
        raise EmptyResponse("model returned an empty completion")
    return text


# ----------------- Factory helpers -----------------

def _get_llm_kind(cfg: Mapping[str, Any]) -> str:
    """Extract the LLM kind/type/provider discriminator from a config mapping."""
    for key in ("kind", "type", "provider", "backend", "impl"):
        val = cfg.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def _normalize_llm_kind(kind: str) -> str:
    """Normalise an LLM kind/type string to a stable registry key.

    Converts CamelCase to snake_case, replaces whitespace and hyphens with
    underscores, and collapses repeated underscores
    (e.g., ``"OpenAIChatLike"`` -> ``"open_aichat_like"`` -> ``"openai_chat"``).
    """
    k = kind.strip()
    if not k:
        return ""

    out: list[str] = []
    prev = ""
    for ch in k:
        if prev and prev.islower() and ch.isupper():
            out.append("_")
        out.append(ch)
        prev = ch

    k2 = "".join(out).replace("-", "_").replace(" ", "_")
    while "__" in k2:
        k2 = k2.replace("__", "_")
    k2 = k2.lower()

    for alias in (
        "open_ai_chat_like",
        "open_aichat_like",
        "openai_chat_like",
        "open_ai_chatlike",
        "openai_chatlike",
        "chat_open_ai",
        "chat_openai",
        "chatopenai",
    ):
        k2 = k2.replace(alias, "openai_chat")
    return k2


def create_llm(config: Mapping[str, Any], callback_manager: BaseCallbackHandler | None = None) -> BaseLLM:
    """Create an LLM implementation from a configuration mapping.

    The concrete implementation is selected by a discriminator field in the
    configuration (one of: ``kind``, ``type``, ``provider``, ``backend``, or
    ``impl``).

    Parameters
    ----------
    config : Mapping[str, Any]
        Configuration mapping used to construct the LLM.
    callback_manager : BaseCallbackHandler, optional
        Optional callback handler for logging/telemetry/streaming.

    Returns
    -------
    BaseLLM
        An initialised LLM implementation.

    Raises
    ------
    TypeError
        If ``config`` is not a mapping.
    ValueError
        If the discriminator field is missing or unsupported.
    """
    if not isinstance(config, Mapping):
        raise TypeError(f"create_llm expected a mapping/dict, got {type(config)}")

    kind_raw = _get_llm_kind(config)
    kind = _normalize_llm_kind(kind_raw)

    if not kind:
        raise ValueError(
            "LLM config is missing a discriminator field (type/kind/provider/etc.). "
            "Add e.g. type: openai_chat."
        )

    registry: dict[str, type[BaseLLM]] = {
        "openai_chat": OpenAIChatLikeLLM,
        "openai": OpenAIChatLikeLLM,
        "groq": OpenAIChatLikeLLM,
    }

    cls = registry.get(kind)
    if cls is None:
        raise ValueError(
            f"Unknown LLM kind '{kind_raw}' (normalized to '{kind}'). Supported kinds: {sorted(registry.keys())}."
        )

    return cls.from_config_dict(dict(config), callback_manager=callback_manager)


__all__ = [
    "BaseLLM",
    "GenerationRequest",
    "OpenAIChatLikeLLM",
    "create_llm",
    "generate_text",
]
