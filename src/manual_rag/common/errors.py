"""manual_rag.common.errors

Exception taxonomy shared across the question-answering stack.

Only :class:`NotInitializedError` is allowed to fail a request. Every
:class:`GenerationFailure` subclass is recovered locally by the reranker and
the answer normaliser, which degrade to deterministic heuristics.

Classes
-------
NotInitializedError
    Raised when a query arrives before any corpus snapshot was published.
GenerationFailure
    Base class for failures at the generation boundary.
AuthError, RateLimitError, GenerationTimeout, ProviderError, EmptyResponse
    Concrete generation failure kinds.
"""

from __future__ import annotations


class NotInitializedError(RuntimeError):
    """No corpus snapshot has been loaded yet."""


class GenerationFailure(Exception):
    """A generation call did not produce usable text.

    Attributes
    ----------
    kind : str
        Short, stable label of the failure kind (e.g. ``"timeout"``).
    """

    kind = "provider"

    def __init__(self, message: str = "", *, cause: BaseException | None = None):
        super().__init__(message or self.kind)
        self.cause = cause


class AuthError(GenerationFailure):
    kind = "auth"


class RateLimitError(GenerationFailure):
    kind = "rate_limit"


class GenerationTimeout(GenerationFailure):
    kind = "timeout"


class ProviderError(GenerationFailure):
    kind = "provider"


class EmptyResponse(GenerationFailure):
    kind = "empty"


__all__ = [
    "NotInitializedError",
    "GenerationFailure",
    "AuthError",
    "RateLimitError",
    "GenerationTimeout",
    "ProviderError",
    "EmptyResponse",
]
