"""
Error taxonomy shared by the PictureBook providers and the book assembler.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

TRY_AGAIN_LATER_MESSAGE = "The story service is busy right now. Please try again later."
UNAVAILABLE_MESSAGE = "Story generation is currently unavailable."
IMAGE_UNAVAILABLE_MESSAGE = "Image unavailable"


class ErrorKind(str, Enum):
    """Stable classification codes surfaced to callers."""

    INVALID_INPUT = "invalid_input"
    NOT_CONFIGURED = "not_configured"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_CREDENTIAL = "invalid_credential"
    EMPTY_CONTENT = "empty_content"
    UNKNOWN = "unknown"


class PictureBookError(Exception):
    """Base exception for every failure raised by PictureBook."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    retryable: bool = False

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def user_message(self) -> str:
        """Book-level message suitable for showing to an end user."""
        if self.retryable:
            return TRY_AGAIN_LATER_MESSAGE
        return UNAVAILABLE_MESSAGE


class InvalidInputError(PictureBookError):
    """The caller supplied an empty or malformed prompt."""

    kind = ErrorKind.INVALID_INPUT

    @property
    def user_message(self) -> str:
        return self.message


class UpstreamError(PictureBookError):
    """Base class for failures reported by a story or image provider."""


class NotConfiguredError(UpstreamError):
    """A required credential was not supplied."""

    kind = ErrorKind.NOT_CONFIGURED


class QuotaExceededError(UpstreamError):
    """The provider rejected the call because of a rate or quota limit."""

    kind = ErrorKind.QUOTA_EXCEEDED
    retryable = True


class InvalidCredentialError(UpstreamError):
    """The provider rejected the configured credential."""

    kind = ErrorKind.INVALID_CREDENTIAL


class EmptyContentError(UpstreamError):
    """The provider succeeded but produced nothing usable."""

    kind = ErrorKind.EMPTY_CONTENT


class UnknownUpstreamError(UpstreamError):
    """Any other provider failure."""

    kind = ErrorKind.UNKNOWN


def classify_error_message(message: str) -> type[UpstreamError]:
    """
    Map a raw provider error message onto an error class using known markers.
    """
    lowered = message.lower()
    if "insufficient_quota" in lowered or "rate_limit" in lowered or "rate limit" in lowered:
        return QuotaExceededError
    if "invalid_api_key" in lowered or "invalid api key" in lowered:
        return InvalidCredentialError
    return UnknownUpstreamError
