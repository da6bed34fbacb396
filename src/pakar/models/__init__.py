"""Convenience exports for the generation client implementations."""

from ..errors import (
    ErrorKind,
    InvalidCredentialError,
    LLMClientError,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
    LogicInvariantError,
    MissingCredentialError,
    QuotaExceededError,
)
from .credentials import Credential, CredentialOrigin, KeyResolver, UserKeyStore
from .gemini import GeminiClient, validate_api_key
from .llm_client import (
    Attempt,
    LLMClient,
    Operation,
    PromptRepair,
    ResponseShape,
    RetryPolicy,
    ValidationResult,
)

__all__ = [
    "Attempt",
    "Credential",
    "CredentialOrigin",
    "ErrorKind",
    "GeminiClient",
    "InvalidCredentialError",
    "KeyResolver",
    "LLMClient",
    "LLMClientError",
    "LLMResponseFormatError",
    "LLMRetryError",
    "LLMTransportError",
    "LogicInvariantError",
    "MissingCredentialError",
    "Operation",
    "PromptRepair",
    "QuotaExceededError",
    "ResponseShape",
    "RetryPolicy",
    "UserKeyStore",
    "ValidationResult",
    "validate_api_key",
]
