"""Error taxonomy shared by the generation client and its operations."""

from __future__ import annotations

from enum import Enum
from typing import Optional

__all__ = [
    "ErrorKind",
    "InvalidCredentialError",
    "LLMClientError",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
    "LogicInvariantError",
    "MissingCredentialError",
    "QuotaExceededError",
    "classify_failure",
    "describe_error",
]


class ErrorKind(str, Enum):
    """Classification attached to every failed generation attempt."""

    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_CREDENTIAL = "invalid_credential"
    MALFORMED_OUTPUT = "malformed_output"
    LOGIC_VIOLATION = "logic_violation"
    UNKNOWN = "unknown"

    @property
    def mutates_prompt(self) -> bool:
        """Quota and credential failures are retried with the same prompt."""
        return self not in (ErrorKind.QUOTA_EXCEEDED, ErrorKind.INVALID_CREDENTIAL)


class LLMClientError(RuntimeError):
    """Base error raised for generation client failures."""


class MissingCredentialError(LLMClientError):
    """Raised before any network call when no usable API key is configured."""


class LLMTransportError(LLMClientError):
    """Raised when the generation endpoint fails to return a response."""


class LLMResponseFormatError(LLMClientError):
    """Raised when the model returns a payload that is not valid JSON."""


class LogicInvariantError(LLMClientError):
    """Raised when a parsed payload is rejected by an operation validator."""


class LLMRetryError(LLMClientError):
    """Raised after exhausting retries; carries the classification of the last failure."""

    default_kind = ErrorKind.UNKNOWN

    def __init__(self, message: str, *, kind: Optional[ErrorKind] = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.kind = kind or self.default_kind
        self.attempts = attempts


class QuotaExceededError(LLMRetryError):
    """Raised when the endpoint kept reporting rate limiting or exhausted quota."""

    default_kind = ErrorKind.QUOTA_EXCEEDED


class InvalidCredentialError(LLMRetryError):
    """Raised when the endpoint kept rejecting the API key."""

    default_kind = ErrorKind.INVALID_CREDENTIAL


_QUOTA_MARKERS = (
    "429",
    "resource_exhausted",
    "resource has been exhausted",
    "quota exceeded",
    "quota",
    "rate limit",
    "too many requests",
)

_CREDENTIAL_MARKERS = (
    "api_key_invalid",
    "api key not valid",
    "api_key",
    "permission_denied",
    "unauthenticated",
    "401",
    "403",
)


# TODO: prefer the structured `error.status` field of Gemini error bodies once the
# transport surfaces it separately from the message text.
def classify_failure(text: str) -> ErrorKind:
    """Map raw transport failure text onto an ``ErrorKind``.

    Quota markers win over credential markers because quota responses often
    mention the key that hit the limit.
    """
    lowered = (text or "").lower()
    if any(marker in lowered for marker in _QUOTA_MARKERS):
        return ErrorKind.QUOTA_EXCEEDED
    if any(marker in lowered for marker in _CREDENTIAL_MARKERS):
        return ErrorKind.INVALID_CREDENTIAL
    return ErrorKind.UNKNOWN


def describe_error(error: BaseException) -> tuple[str, str]:
    """Return the (title, message) pair shown to the user for a terminal error."""
    if isinstance(error, QuotaExceededError):
        return (
            "Batas Kuota Tercapai",
            "Kuota penggunaan AI (Gemini API) telah habis. Silakan coba lagi nanti "
            "atau gunakan API Key pribadi.",
        )
    if isinstance(error, (InvalidCredentialError, MissingCredentialError)):
        return (
            "API Key Tidak Valid",
            "Kunci akses AI tidak tersedia, tidak valid, atau kedaluwarsa. Periksa pengaturan API Key.",
        )
    return ("Gagal", "Terjadi kesalahan saat menghubungi AI. Silakan coba lagi.")
