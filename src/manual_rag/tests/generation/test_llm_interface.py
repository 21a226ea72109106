import time
from types import SimpleNamespace

import httpx
import openai
import pytest

from manual_rag.common.errors import (
    AuthError,
    EmptyResponse,
    GenerationTimeout,
    ProviderError,
    RateLimitError,
)
from manual_rag.generation.llm_interface import (
    GenerationRequest,
    OpenAIChatLikeLLM,
    _normalize_llm_kind,
    _sanitize_openai_kwargs,
    create_llm,
    generate_text,
)

_REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def _status_error(cls, status):
    return cls("provider said no", response=httpx.Response(status, request=_REQUEST), body=None)


class SlowLLM:
    def generate(self, prompt, **kwargs):
        time.sleep(1.0)
        return "late"


def test_generate_text_forwards_sampling_parameters(stub_llm_factory):
    llm = stub_llm_factory("  resposta  ")
    request = GenerationRequest(prompt="p", model_id="m-1", temperature=0.3, max_tokens=64, top_p=0.9)

    assert generate_text(llm, request, timeout=5) == "  resposta  "
    assert llm.kwargs[0] == {"temperature": 0.3, "max_tokens": 64, "top_p": 0.9, "model": "m-1"}


def test_generation_request_omits_missing_model():
    assert "model" not in GenerationRequest(prompt="p").generation_kwargs()


@pytest.mark.parametrize(
    "error, expected",
    [
        (_status_error(openai.AuthenticationError, 401), AuthError),
        (_status_error(openai.PermissionDeniedError, 403), AuthError),
        (_status_error(openai.RateLimitError, 429), RateLimitError),
        (openai.APITimeoutError(request=_REQUEST), GenerationTimeout),
        (_status_error(openai.InternalServerError, 500), ProviderError),
        (openai.APIConnectionError(request=_REQUEST), ProviderError),
        (ValueError("weird"), ProviderError),
    ],
)
def test_provider_errors_are_classified(stub_llm_factory, error, expected):
    with pytest.raises(expected) as info:
        generate_text(stub_llm_factory(error), GenerationRequest(prompt="p"), timeout=5)

    assert info.value.cause is error or info.value.__cause__ is error


@pytest.mark.parametrize("reply", ["", "   \n"])
def test_blank_completion_is_empty_response(stub_llm_factory, reply):
    with pytest.raises(EmptyResponse):
        generate_text(stub_llm_factory(reply), GenerationRequest(prompt="p"), timeout=5)


def test_slow_generation_times_out():
    start = time.monotonic()
    with pytest.raises(GenerationTimeout) as info:
        generate_text(SlowLLM(), GenerationRequest(prompt="p"), timeout=0.05)

    assert info.value.kind == "timeout"
    assert time.monotonic() - start < 0.9


def test_missing_llm_is_provider_error():
    with pytest.raises(ProviderError):
        generate_text(None, GenerationRequest(prompt="p"), timeout=1)


@pytest.mark.parametrize(
    "kind, expected",
    [
        ("openai_chat", "openai_chat"),
        ("OpenAIChatLike", "openai_chat"),
        ("ChatOpenAI", "openai_chat"),
        ("open-ai-chat-like", "openai_chat"),
        ("Groq", "groq"),
        ("", ""),
    ],
)
def test_normalize_llm_kind(kind, expected):
    assert _normalize_llm_kind(kind) == expected


def test_create_llm_builds_openai_compatible_backend():
    llm = create_llm({
        "type": "groq",
        "model_name": "llama-3.1-8b-instant",
        "api_base": "https://api.groq.com/openai/v1",
        "api_key": "test-key",
        "timeout": 12,
        "model_kwargs": {"temperature": 0.15, "top_p": 0.95, "max_tokens": 512},
    })

    assert isinstance(llm, OpenAIChatLikeLLM)
    assert llm.model_name == "llama-3.1-8b-instant"
    assert llm.get_llm().max_retries == 0


@pytest.mark.parametrize(
    "config, error",
    [
        ({"model_name": "m", "api_base": "http://x"}, ValueError),
        ({"type": "telepathy", "model_name": "m", "api_base": "http://x"}, ValueError),
        ({"type": "openai_chat", "api_base": "http://x"}, ValueError),
        ("not a mapping", TypeError),
    ],
)
def test_create_llm_rejects_bad_config(config, error):
    with pytest.raises(error):
        create_llm(config)


def test_groq_unsupported_params_are_dropped_with_warning():
    with pytest.warns(UserWarning, match="logprobs"):
        cleaned = _sanitize_openai_kwargs(
            "https://api.groq.com/openai/v1",
            {"logprobs": True, "temperature": 0.1},
            context="generation",
        )
    assert cleaned == {"temperature": 0.1}


def test_generate_flattens_content_parts():
    llm = OpenAIChatLikeLLM(model_name="m", api_base="http://localhost:8000/v1")
    calls = []

    class FakeChat:
        def invoke(self, prompt, **kwargs):
            calls.append((prompt, kwargs))
            return SimpleNamespace(content=[{"type": "text", "text": "Olá"}, ", mundo"])

    llm.llm = FakeChat()

    assert llm.generate("pergunta", temperature=0.2) == "Olá, mundo"
    assert calls == [("pergunta", {"temperature": 0.2})]


def test_other_backends_keep_every_param():
    kwargs = {"frequency_penalty": 0.2, "logprobs": True}

    assert _sanitize_openai_kwargs("https://api.openai.com/v1", kwargs, context="generation") == kwargs
