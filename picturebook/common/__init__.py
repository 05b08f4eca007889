"""
Common utilities shared across PictureBook modules.
"""

from .config import PictureBookSettings
from .errors import (
    EmptyContentError,
    ErrorKind,
    InvalidCredentialError,
    InvalidInputError,
    NotConfiguredError,
    PictureBookError,
    QuotaExceededError,
    UnknownUpstreamError,
    UpstreamError,
)
from .llm import ChatResult, CompletionCallable, call_chat_completion, translate_completion_error

__all__ = [
    "ChatResult",
    "CompletionCallable",
    "call_chat_completion",
    "translate_completion_error",
    "PictureBookSettings",
    "ErrorKind",
    "PictureBookError",
    "InvalidInputError",
    "UpstreamError",
    "NotConfiguredError",
    "QuotaExceededError",
    "InvalidCredentialError",
    "EmptyContentError",
    "UnknownUpstreamError",
]
