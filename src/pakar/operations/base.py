"""Shared helper for invoking operations and emitting structured logs."""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, TypeVar

from ..errors import LLMClientError, LLMRetryError
from ..models.llm_client import Attempt, GenerationRequest, LLMClient, Operation

__all__ = ["invoke_operation", "json_safe"]

T = TypeVar("T")


async def invoke_operation(
    operation: Operation[T],
    prompt: str,
    request: Any,
    *,
    client: LLMClient,
    logs_root: Optional[Path] = None,
) -> T:
    """Common helper used by the operation modules to call the generation client."""
    attempts: list[dict[str, Any]] = []

    def _record_attempt(generation_request: GenerationRequest, attempt: Attempt) -> None:
        attempts.append(
            {
                "attempt": attempt.index,
                "model": generation_request.model,
                "prompt": attempt.prompt,
                "raw": attempt.raw,
                "parsed": json_safe(attempt.parsed),
                "error": attempt.error,
                "error_kind": attempt.error_kind.value if attempt.error_kind else None,
                "correction_note": attempt.correction_note,
                "delay": attempt.delay,
            }
        )

    try:
        result, _ = await client.generate_with_attempts(operation, prompt, observer=_record_attempt)
    except LLMClientError as error:
        _write_operation_log(logs_root, operation, request, prompt, attempts, error=error)
        raise

    _write_operation_log(logs_root, operation, request, prompt, attempts, result=result)
    return result


def _write_operation_log(
    logs_root: Optional[Path],
    operation: Operation[Any],
    request: Any,
    prompt: str,
    attempts: list[dict[str, Any]],
    *,
    result: Any | None = None,
    error: Exception | None = None,
) -> Optional[Path]:
    """Persist a structured operation log for later debugging."""
    if logs_root is None:
        return None
    target_dir = Path(logs_root) / "operations"
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None

    entry: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "operation": operation.name,
        "model": operation.model,
        "max_attempts": operation.max_attempts,
        "request": json_safe(request),
        "prompt": prompt,
        "attempts": attempts,
    }
    if result is not None:
        entry["result"] = json_safe(result)
    if error is not None:
        entry["error"] = str(error)
        if isinstance(error, LLMRetryError):
            entry["error_kind"] = error.kind.value
        else:
            entry["error_kind"] = type(error).__name__

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    file_name = f"operation__{_slug(operation.name)}__{timestamp}__{uuid.uuid4().hex[:8]}.json"
    log_path = target_dir / file_name
    try:
        with log_path.open("w", encoding="utf-8") as handle:
            json.dump(entry, handle, indent=2, sort_keys=True, ensure_ascii=False)
    except OSError:
        return None
    return log_path


def json_safe(value: Any) -> Any:
    """Coerce complex objects into JSON-serialisable representations."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return value.as_posix()
    if is_dataclass(value) and not isinstance(value, type):
        return json_safe(asdict(value))
    if hasattr(value, "model_dump"):
        try:
            return json_safe(value.model_dump(by_alias=True))
        except TypeError:
            pass
    if isinstance(value, dict):
        return {str(key): json_safe(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_safe(item) for item in value]
    return str(value)


def _slug(value: str, *, fallback: str = "operation") -> str:
    """Normalise identifiers for use in log filenames."""
    cleaned = re.sub(r"[^A-Za-z0-9]+", "-", value).strip("-")
    return cleaned[:60] or fallback
