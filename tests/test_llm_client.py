from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List

import pytest

from pakar.errors import (
    ErrorKind,
    InvalidCredentialError,
    LLMRetryError,
    LLMTransportError,
    LogicInvariantError,
    MissingCredentialError,
    QuotaExceededError,
    classify_failure,
    describe_error,
)
from pakar.models.credentials import KeyResolver
from pakar.models.llm_client import (
    Operation,
    PromptRepair,
    ResponseShape,
    RetryPolicy,
    ValidationResult,
)
from pakar.schema import ThemeOption


def _non_empty_list(data: Any) -> ValidationResult:
    if isinstance(data, list) and data:
        return ValidationResult.ok()
    return ValidationResult.fail("Daftar tidak boleh kosong.")


LIST_OPERATION: Operation[List[str]] = Operation(
    name="sample",
    validator=_non_empty_list,
    response_model=List[str],
)


def test_first_valid_response_returns_without_sleeping(scripted_client) -> None:
    client = scripted_client(['["Kreativitas"]'])

    result = asyncio.run(client.generate(LIST_OPERATION, "prompt dasar"))

    assert result == ["Kreativitas"]
    assert len(client.requests) == 1
    assert client.delays == []


def test_malformed_output_retries_with_correction_note(scripted_client) -> None:
    client = scripted_client(["bukan json", '["Kolaborasi"]'])

    result, history = asyncio.run(client.generate_with_attempts(LIST_OPERATION, "prompt dasar"))

    assert result == ["Kolaborasi"]
    assert [attempt.error_kind for attempt in history] == [ErrorKind.MALFORMED_OUTPUT, None]
    assert client.delays == [1.0]
    first, second = client.prompts
    assert first == "prompt dasar"
    assert second.startswith("prompt dasar")
    assert "[CATATAN KOREKSI] Jawaban sebelumnya ditolak:" in second
    assert history[0].correction_note is not None
    assert second == first + history[0].correction_note


def test_validator_reason_is_quoted_and_notes_accumulate(scripted_client) -> None:
    client = scripted_client(["[]", "[]", "[]"])

    with pytest.raises(LLMRetryError) as excinfo:
        asyncio.run(client.generate(LIST_OPERATION, "prompt dasar"))

    error = excinfo.value
    assert error.kind is ErrorKind.LOGIC_VIOLATION
    assert error.attempts == 3
    assert isinstance(error.__cause__, LogicInvariantError)
    assert client.delays == [1.0, 1.5]
    assert client.prompts[1].count("Daftar tidak boleh kosong.") == 1
    assert client.prompts[2].count("[CATATAN KOREKSI]") == 2


def test_quota_failures_back_off_longer_and_keep_prompt(scripted_client) -> None:
    failure = LLMTransportError("HTTP 429: RESOURCE_EXHAUSTED")
    client = scripted_client([failure, failure, failure])

    with pytest.raises(QuotaExceededError) as excinfo:
        asyncio.run(client.generate(LIST_OPERATION, "prompt dasar"))

    assert excinfo.value.kind is ErrorKind.QUOTA_EXCEEDED
    assert client.delays == [4.0, 6.0]
    assert client.prompts == ["prompt dasar"] * 3


def test_invalid_key_surfaces_credential_error(scripted_client) -> None:
    failure = LLMTransportError("HTTP 400: API key not valid. Please pass a valid API key. API_KEY_INVALID")
    client = scripted_client([failure, failure, failure])

    with pytest.raises(InvalidCredentialError):
        asyncio.run(client.generate(LIST_OPERATION, "prompt dasar"))

    assert client.prompts == ["prompt dasar"] * 3
    assert client.delays == [4.0, 6.0]


def test_note_is_skipped_for_quota_but_added_for_later_parse_failure(scripted_client) -> None:
    client = scripted_client([LLMTransportError("429 Too Many Requests"), "{tidak valid", '["Kesehatan"]'])

    result, history = asyncio.run(client.generate_with_attempts(LIST_OPERATION, "prompt dasar"))

    assert result == ["Kesehatan"]
    assert client.delays == [4.0, 1.5]
    assert client.prompts[0] == client.prompts[1] == "prompt dasar"
    assert "[CATATAN KOREKSI]" in client.prompts[2]
    assert history[0].correction_note is None


def test_missing_credential_fails_without_any_call(scripted_client) -> None:
    client = scripted_client(['["Kreativitas"]'], key=None)

    with pytest.raises(MissingCredentialError):
        asyncio.run(client.generate(LIST_OPERATION, "prompt dasar"))

    assert client.requests == []


def test_credential_is_resolved_once_per_invocation(scripted_client) -> None:
    calls: List[int] = []

    def user_key() -> str:
        calls.append(1)
        return f"key-{len(calls)}"

    client = scripted_client(["[]", "[]", '["Kolaborasi"]'], key_resolver=KeyResolver(user_key=user_key))

    asyncio.run(client.generate(LIST_OPERATION, "prompt dasar"))

    assert len(calls) == 1
    assert {credential.value for credential in client.credentials} == {"key-1"}


def test_unexpected_exceptions_are_wrapped_and_classified_unknown(scripted_client) -> None:
    client = scripted_client([RuntimeError("koneksi terputus")], max_attempts=1)

    with pytest.raises(LLMRetryError) as excinfo:
        asyncio.run(client.generate(LIST_OPERATION, "prompt dasar"))

    assert excinfo.value.kind is ErrorKind.UNKNOWN
    assert "koneksi terputus" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, LLMTransportError)
    assert client.delays == []


def test_structure_mismatch_after_validation_is_retried(scripted_client) -> None:
    operation: Operation[List[ThemeOption]] = Operation(name="themes", response_model=List[ThemeOption])
    client = scripted_client(
        [
            json.dumps([{"name": "Kewirausahaan"}]),
            json.dumps([{"name": "Kewirausahaan", "reason": "Potensi UMKM sekitar sekolah."}]),
        ]
    )

    result, history = asyncio.run(client.generate_with_attempts(operation, "prompt dasar"))

    assert result == [ThemeOption(name="Kewirausahaan", reason="Potensi UMKM sekitar sekolah.")]
    assert history[0].error_kind is ErrorKind.MALFORMED_OUTPUT
    assert "reason" in history[0].error


def test_text_shape_returns_stripped_text(scripted_client) -> None:
    operation: Operation[str] = Operation(name="analysis", response_model=str, response_shape=ResponseShape.TEXT)
    client = scripted_client(["  Paragraf analisis.  \n"])

    assert asyncio.run(client.generate(operation, "prompt")) == "Paragraf analisis."
    assert client.requests[0].response_shape is ResponseShape.TEXT


def test_operation_attempt_limit_overrides_client_default(scripted_client) -> None:
    operation = Operation(name="short", validator=_non_empty_list, max_attempts=2)
    client = scripted_client(["[]", "[]", "[]"], max_attempts=5)

    with pytest.raises(LLMRetryError) as excinfo:
        asyncio.run(client.generate(operation, "prompt"))

    assert excinfo.value.attempts == 2
    assert len(client.requests) == 2
    assert client.delays == [1.0]


def test_operation_model_overrides_client_model(scripted_client) -> None:
    operation = Operation(name="final", model="gemini-3-pro-preview", temperature=0.2)
    client = scripted_client(['{"ok": true}'])

    asyncio.run(client.generate(operation, "prompt"))

    assert client.requests[0].model == "gemini-3-pro-preview"
    assert client.requests[0].temperature == 0.2


def test_observer_sees_every_attempt(scripted_client) -> None:
    seen = []
    client = scripted_client(["oops", '["Komunikasi"]'])

    asyncio.run(
        client.generate_with_attempts(
            LIST_OPERATION,
            "prompt",
            observer=lambda request, attempt: seen.append((attempt.index, attempt.succeeded)),
        )
    )

    assert seen == [(1, False), (2, True)]


def test_custom_retry_policy_is_honoured(scripted_client) -> None:
    policy = RetryPolicy(base_delay=0.5, quota_base_delay=2.0, multiplier=2.0)
    client = scripted_client(["[]", "[]", "[]"], retry_policy=policy)

    with pytest.raises(LLMRetryError):
        asyncio.run(client.generate(LIST_OPERATION, "prompt"))

    assert client.delays == [0.5, 1.0]


def test_failed_attempts_are_logged(scripted_client, caplog: pytest.LogCaptureFixture) -> None:
    client = scripted_client(["[]", '["Kreativitas"]'])

    with caplog.at_level(logging.INFO, logger="pakar.models.llm_client"):
        asyncio.run(client.generate(LIST_OPERATION, "prompt"))

    messages = [record.getMessage() for record in caplog.records]
    assert any("attempt 1/3 failed [logic_violation]" in message for message in messages)
    assert any("correction note appended" in message for message in messages)


def test_retry_policy_delays() -> None:
    policy = RetryPolicy()
    assert policy.delay_for(ErrorKind.MALFORMED_OUTPUT, 1) == 1.0
    assert policy.delay_for(ErrorKind.LOGIC_VIOLATION, 2) == 1.5
    assert policy.delay_for(ErrorKind.UNKNOWN, 3) == 2.25
    assert policy.delay_for(ErrorKind.QUOTA_EXCEEDED, 1) == 4.0
    assert policy.delay_for(ErrorKind.INVALID_CREDENTIAL, 2) == 6.0


def test_prompt_repair_is_deterministic() -> None:
    repair = PromptRepair()
    first = repair.apply("prompt", "Total JP 8, harus 10.")
    second = repair.apply("prompt", "Total JP 8, harus 10.")
    assert first == second
    prompt, note = first
    assert prompt == "prompt" + note
    assert "Total JP 8, harus 10." in note


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("HTTP 429: quota exceeded for API_KEY abc", ErrorKind.QUOTA_EXCEEDED),
        ("RESOURCE_EXHAUSTED", ErrorKind.QUOTA_EXCEEDED),
        ("HTTP 403: PERMISSION_DENIED", ErrorKind.INVALID_CREDENTIAL),
        ("API key not valid", ErrorKind.INVALID_CREDENTIAL),
        ("HTTP 500: internal error", ErrorKind.UNKNOWN),
        ("", ErrorKind.UNKNOWN),
    ],
)
def test_classify_failure(text: str, expected: ErrorKind) -> None:
    assert classify_failure(text) is expected


def test_describe_error_titles() -> None:
    assert describe_error(QuotaExceededError("x"))[0] == "Batas Kuota Tercapai"
    assert describe_error(InvalidCredentialError("x"))[0] == "API Key Tidak Valid"
    assert describe_error(MissingCredentialError("x"))[0] == "API Key Tidak Valid"
    assert describe_error(LLMRetryError("x", kind=ErrorKind.LOGIC_VIOLATION))[0] == "Gagal"
