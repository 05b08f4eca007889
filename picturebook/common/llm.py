"""
LiteLLM-powered chat completion helper utilities.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, MutableMapping, Sequence

from litellm import completion
from litellm.exceptions import AuthenticationError, RateLimitError

from .errors import (
    InvalidCredentialError,
    QuotaExceededError,
    UpstreamError,
    classify_error_message,
)

ChatMessage = Mapping[str, Any]


@dataclass
class ChatResult:
    """
    Structured response returned from an LLM chat completion.
    """

    text: str
    raw: Any


CompletionCallable = Callable[..., ChatResult]


def call_chat_completion(
    *,
    model: str,
    messages: Sequence[ChatMessage],
    temperature: float | None = None,
    max_tokens: int | None = None,
    api_key: str | None = None,
    **extra_kwargs: Any,
) -> ChatResult:
    """
    Invoke LiteLLM's `completion` API and return the consolidated text.

    Content-less responses yield an empty ``text`` so callers can decide how to
    treat them. Provider exceptions propagate unchanged; use
    :func:`translate_completion_error` to classify them.
    """
    payload: MutableMapping[str, Any] = {
        "model": model,
        "messages": list(messages),
    }

    if temperature is not None:
        payload["temperature"] = temperature

    if max_tokens is not None:
        payload["max_tokens"] = max_tokens

    if api_key is not None:
        payload["api_key"] = api_key

    payload.update(extra_kwargs)

    response = completion(**payload)

    try:
        message = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise RuntimeError("Unexpected LiteLLM response format.") from exc

    text = str(message).strip() if message is not None else ""
    return ChatResult(text=text, raw=response)


def translate_completion_error(exc: Exception) -> UpstreamError:
    """
    Convert an exception raised during a chat completion into an ``UpstreamError``.
    """
    if isinstance(exc, UpstreamError):
        return exc
    if isinstance(exc, RateLimitError):
        return QuotaExceededError("Story provider quota exceeded.", details={"cause": str(exc)})
    if isinstance(exc, AuthenticationError):
        return InvalidCredentialError(
            "Story provider rejected the API key.", details={"cause": str(exc)}
        )

    error_cls = classify_error_message(str(exc))
    return error_cls("Failed to generate story.", details={"cause": str(exc)})
