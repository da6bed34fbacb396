"""Generation client base class: credential, call, parse, validate, repair, retry."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import ValidationError
from pydantic.type_adapter import TypeAdapter

from ..errors import (
    ErrorKind,
    InvalidCredentialError,
    LLMClientError,
    LLMResponseFormatError,
    LLMRetryError,
    LLMTransportError,
    LogicInvariantError,
    QuotaExceededError,
    classify_failure,
)
from ..structured import parse_json_payload
from .credentials import Credential, KeyResolver

__all__ = [
    "Attempt",
    "AttemptObserver",
    "DEFAULT_MAX_ATTEMPTS",
    "GenerationRequest",
    "LLMClient",
    "Operation",
    "PromptRepair",
    "ResponseShape",
    "RetryPolicy",
    "ValidationResult",
    "Validator",
    "accept_any",
    "summarise_validation_error",
]

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


class ResponseShape(str, Enum):
    """Expected shape of the model output."""

    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Verdict of an operation validator for one attempt."""

    is_valid: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(True)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(False, error)


Validator = Callable[[Any], ValidationResult]


def accept_any(_: Any) -> ValidationResult:
    """Validator that accepts every parsed payload."""
    return ValidationResult.ok()


@dataclass(frozen=True, slots=True)
class Operation(Generic[T]):
    """Immutable descriptor of one generation operation."""

    name: str
    validator: Validator = accept_any
    response_model: Any = Any
    response_shape: ResponseShape = ResponseShape.JSON
    model: Optional[str] = None
    max_attempts: Optional[int] = None
    temperature: Optional[float] = None
    response_schema: Optional[Dict[str, Any]] = None


@dataclass(slots=True)
class GenerationRequest:
    """Endpoint-neutral request for a single attempt."""

    model: str
    prompt: str
    system_instruction: Optional[str] = None
    response_shape: ResponseShape = ResponseShape.JSON
    temperature: Optional[float] = None
    response_schema: Optional[Dict[str, Any]] = None


@dataclass(slots=True)
class Attempt:
    """Record of one attempt inside a single ``generate`` invocation."""

    index: int
    prompt: str
    raw: Optional[str] = None
    parsed: Any = None
    validation: Optional[ValidationResult] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    correction_note: Optional[str] = None
    delay: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.validation is not None and self.validation.is_valid


AttemptObserver = Callable[[GenerationRequest, Attempt], None]
Sleeper = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff with a slower clock for quota and credential failures."""

    base_delay: float = 1.0
    quota_base_delay: float = 4.0
    multiplier: float = 1.5

    def delay_for(self, kind: ErrorKind, attempt: int) -> float:
        """Return the sleep before the attempt following ``attempt`` (1-based)."""
        base = self.base_delay if kind.mutates_prompt else self.quota_base_delay
        return base * self.multiplier ** max(attempt - 1, 0)


@dataclass(frozen=True, slots=True)
class PromptRepair:
    """Append a deterministic correction note quoting the rejection reason."""

    header: str = "CATATAN KOREKSI"
    instruction: str = (
        "Perbaiki kesalahan tersebut dan kembalikan ulang seluruh jawaban "
        "sesuai format yang diminta, tanpa teks tambahan."
    )

    def note_for(self, reason: str) -> str:
        detail = (reason or "").strip() or "Jawaban tidak memenuhi format yang diminta."
        return f"\n\n[{self.header}] Jawaban sebelumnya ditolak: {detail}\n{self.instruction}"

    def apply(self, prompt: str, reason: str) -> tuple[str, str]:
        note = self.note_for(reason)
        return prompt + note, note


class LLMClient:
    """Drive a generation endpoint until an operation validator accepts the output."""

    def __init__(
        self,
        model: str,
        *,
        key_resolver: Optional[KeyResolver] = None,
        system_instruction: Optional[str] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_policy: Optional[RetryPolicy] = None,
        prompt_repair: Optional[PromptRepair] = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._model = model
        self._key_resolver = key_resolver or KeyResolver()
        self._system_instruction = system_instruction
        self._max_attempts = max_attempts
        self._retry_policy = retry_policy or RetryPolicy()
        self._prompt_repair = prompt_repair or PromptRepair()
        self._sleep = sleep

    @property
    def model(self) -> str:
        """Return the default model name configured for this client."""
        return self._model

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def generate(self, operation: Operation[T], prompt: str) -> T:
        """Run ``operation`` and return its validated, typed result."""
        result, _ = await self.generate_with_attempts(operation, prompt)
        return result

    async def generate_with_attempts(
        self,
        operation: Operation[T],
        prompt: str,
        *,
        observer: Optional[AttemptObserver] = None,
    ) -> tuple[T, List[Attempt]]:
        """Run ``operation`` and return the typed result plus every attempt made.

        The credential is resolved once, before the first call, and reused for
        every retry. Intermediate failures never escape; only the final
        classified error does.
        """
        credential = self._key_resolver.resolve()
        allowed = max(1, operation.max_attempts or self._max_attempts)
        current_prompt = prompt
        history: List[Attempt] = []
        last_error: Optional[LLMClientError] = None
        last_kind = ErrorKind.UNKNOWN

        for index in range(1, allowed + 1):
            attempt = Attempt(index=index, prompt=current_prompt)
            history.append(attempt)
            request = self._build_request(operation, current_prompt)
            try:
                attempt.raw = await self._call_endpoint(request, credential)
                attempt.parsed = self._decode(operation, attempt.raw)
                attempt.validation = operation.validator(attempt.parsed)
                if not attempt.validation.is_valid:
                    raise LogicInvariantError(
                        attempt.validation.error or f"{operation.name} output was rejected."
                    )
                result = self._coerce(operation, attempt.parsed)
            except LLMClientError as error:
                last_error = error
                last_kind = self._classify(error)
            else:
                if observer:
                    observer(request, attempt)
                if index > 1:
                    LOGGER.info("%s succeeded on attempt %d/%d", operation.name, index, allowed)
                return result, history

            attempt.error = str(last_error)
            attempt.error_kind = last_kind
            LOGGER.warning(
                "%s attempt %d/%d failed [%s]: %s",
                operation.name,
                index,
                allowed,
                last_kind.value,
                attempt.error,
            )
            final = index >= allowed
            if not final:
                attempt.delay = self._retry_policy.delay_for(last_kind, index)
                if last_kind.mutates_prompt:
                    current_prompt, attempt.correction_note = self._prompt_repair.apply(
                        current_prompt, attempt.error
                    )
                    LOGGER.info("%s correction note appended: %s", operation.name, attempt.correction_note.strip())
            if observer:
                observer(request, attempt)
            if final:
                break
            await self._sleep(attempt.delay)

        raise self._exhausted(operation, allowed, last_kind, last_error) from last_error

    async def _raw_invoke(self, request: GenerationRequest, credential: Credential) -> str:
        """Perform the endpoint call and return the model text. Subclasses must implement."""
        raise NotImplementedError("Subclasses must implement _raw_invoke().")

    async def _call_endpoint(self, request: GenerationRequest, credential: Credential) -> str:
        try:
            return await self._raw_invoke(request, credential)
        except LLMClientError:
            raise
        except Exception as error:
            raise LLMTransportError(f"Generation call failed: {error}") from error

    def _build_request(self, operation: Operation[Any], prompt: str) -> GenerationRequest:
        return GenerationRequest(
            model=operation.model or self._model,
            prompt=prompt,
            system_instruction=self._system_instruction,
            response_shape=operation.response_shape,
            temperature=operation.temperature,
            response_schema=operation.response_schema,
        )

    @staticmethod
    def _decode(operation: Operation[Any], raw: str) -> Any:
        if operation.response_shape is ResponseShape.TEXT:
            return (raw or "").strip()
        return parse_json_payload(raw)

    @staticmethod
    def _coerce(operation: Operation[T], data: Any) -> T:
        if operation.response_model is Any:
            return data
        try:
            return _cached_type_adapter(operation.response_model).validate_python(data)
        except ValidationError as error:
            raise LLMResponseFormatError(
                f"Output does not match the expected structure: {summarise_validation_error(error)}"
            ) from error

    @staticmethod
    def _classify(error: LLMClientError) -> ErrorKind:
        if isinstance(error, LogicInvariantError):
            return ErrorKind.LOGIC_VIOLATION
        if isinstance(error, LLMResponseFormatError):
            return ErrorKind.MALFORMED_OUTPUT
        if isinstance(error, LLMTransportError):
            return classify_failure(str(error))
        return ErrorKind.UNKNOWN

    @staticmethod
    def _exhausted(
        operation: Operation[Any],
        attempts: int,
        kind: ErrorKind,
        last_error: Optional[LLMClientError],
    ) -> LLMRetryError:
        message = f"{operation.name} failed after {attempts} attempt(s): {last_error}"
        LOGGER.error("%s [%s]", message, kind.value)
        if kind is ErrorKind.QUOTA_EXCEEDED:
            error: LLMRetryError = QuotaExceededError(message, attempts=attempts)
        elif kind is ErrorKind.INVALID_CREDENTIAL:
            error = InvalidCredentialError(message, attempts=attempts)
        else:
            error = LLMRetryError(message, kind=kind, attempts=attempts)
        return error


def summarise_validation_error(error: ValidationError, limit: int = 3) -> str:
    """Render the first few pydantic errors as ``location: message`` pairs."""
    parts = []
    for item in error.errors()[:limit]:
        location = ".".join(str(part) for part in item.get("loc", ())) or "<root>"
        parts.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


@lru_cache(maxsize=None)
def _cached_type_adapter(annotation: Any) -> TypeAdapter:
    """Reuse ``TypeAdapter`` instances across attempts."""
    return TypeAdapter(annotation)
