from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Tuple

import pytest

from pakar.errors import ErrorKind, InvalidCredentialError, LLMRetryError, QuotaExceededError
from pakar.models.credentials import KeyResolver
from pakar.models.gemini import GeminiClient, build_payload, validate_api_key
from pakar.models.llm_client import GenerationRequest, Operation, ResponseShape


def _envelope(text: str) -> str:
    return json.dumps({"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]})


class RecordingTransport:
    def __init__(self, *responses: str) -> None:
        self._responses = list(responses)
        self.calls: List[Tuple[str, Dict[str, Any], str]] = []

    def __call__(self, url: str, body: Dict[str, Any], api_key: str) -> str:
        self.calls.append((url, body, api_key))
        return self._responses.pop(0)


async def _no_sleep(_: float) -> None:
    return None


def _client(transport: RecordingTransport, **kwargs: Any) -> GeminiClient:
    return GeminiClient(
        model="gemini-3-flash-preview",
        key_resolver=KeyResolver(user_key=lambda: "AIzaSyTestKey000001", system_key=lambda: None),
        system_instruction="Anda adalah Ahli Kokurikuler.",
        base_url="https://example.test/v1beta/",
        transport=transport,
        sleep=_no_sleep,
        **kwargs,
    )


def test_json_operation_request_shape() -> None:
    transport = RecordingTransport(_envelope('```json\n["Kreativitas"]\n```'))
    client = _client(transport)
    operation = Operation(name="dimensions", temperature=0.9, response_schema={"type": "ARRAY"})

    result = asyncio.run(client.generate(operation, "Pilih dimensi."))

    assert result == ["Kreativitas"]
    url, body, api_key = transport.calls[0]
    assert url == "https://example.test/v1beta/models/gemini-3-flash-preview:generateContent"
    assert api_key == "AIzaSyTestKey000001"
    assert body["contents"][0]["parts"][0]["text"] == "Pilih dimensi."
    assert body["systemInstruction"]["parts"][0]["text"] == "Anda adalah Ahli Kokurikuler."
    assert body["generationConfig"] == {
        "responseMimeType": "application/json",
        "responseSchema": {"type": "ARRAY"},
        "temperature": 0.9,
    }


def test_text_request_omits_json_mime_type() -> None:
    request = GenerationRequest(model="m", prompt="Analisis.", response_shape=ResponseShape.TEXT)
    body = build_payload(request)
    assert "generationConfig" not in body
    assert "systemInstruction" not in body


def test_operation_model_changes_endpoint() -> None:
    transport = RecordingTransport(_envelope('{"assessmentRubrics": []}'))
    client = _client(transport)

    asyncio.run(client.generate(Operation(name="finalize", model="gemini-3-pro-preview"), "prompt"))

    assert transport.calls[0][0].endswith("/models/gemini-3-pro-preview:generateContent")


def test_error_envelope_is_classified_as_quota() -> None:
    error_body = json.dumps(
        {"error": {"code": 429, "status": "RESOURCE_EXHAUSTED", "message": "Quota exceeded for metric."}}
    )
    transport = RecordingTransport(error_body, error_body)
    client = _client(transport, max_attempts=2)

    with pytest.raises(QuotaExceededError):
        asyncio.run(client.generate(Operation(name="ideas"), "prompt"))

    assert len(transport.calls) == 2
    assert transport.calls[0][1] == transport.calls[1][1]


def test_error_envelope_is_classified_as_invalid_key() -> None:
    error_body = json.dumps(
        {"error": {"code": 400, "status": "INVALID_ARGUMENT", "message": "API key not valid. Please pass a valid API key."}}
    )
    client = _client(RecordingTransport(error_body), max_attempts=1)

    with pytest.raises(InvalidCredentialError):
        asyncio.run(client.generate(Operation(name="ideas"), "prompt"))


def test_empty_candidates_are_treated_as_malformed_output() -> None:
    transport = RecordingTransport(json.dumps({"candidates": []}), _envelope('["Kolaborasi"]'))
    client = _client(transport)

    result, history = asyncio.run(client.generate_with_attempts(Operation(name="dimensions"), "prompt"))

    assert result == ["Kolaborasi"]
    assert history[0].error_kind is ErrorKind.MALFORMED_OUTPUT
    assert "[CATATAN KOREKSI]" in transport.calls[1][1]["contents"][0]["parts"][0]["text"]


def test_non_json_envelope_is_a_transport_failure() -> None:
    client = _client(RecordingTransport("<html>bad gateway</html>"), max_attempts=1)

    with pytest.raises(LLMRetryError) as excinfo:
        asyncio.run(client.generate(Operation(name="ideas"), "prompt"))

    assert excinfo.value.kind is ErrorKind.UNKNOWN


def test_validate_api_key_accepts_working_key() -> None:
    transport = RecordingTransport(_envelope("OK"))

    assert asyncio.run(validate_api_key("  AIzaSyTestKey000002 ", base_url="https://example.test", transport=transport))
    assert transport.calls[0][2] == "AIzaSyTestKey000002"
    assert "generationConfig" not in transport.calls[0][1]


def test_validate_api_key_rejects_empty_key_without_call() -> None:
    transport = RecordingTransport()
    assert not asyncio.run(validate_api_key("   ", transport=transport))
    assert transport.calls == []


def test_validate_api_key_rejects_failing_key() -> None:
    error_body = json.dumps({"error": {"code": 403, "status": "PERMISSION_DENIED", "message": "denied"}})
    transport = RecordingTransport(error_body)

    assert not asyncio.run(validate_api_key("AIzaSyTestKey000003", transport=transport))
    assert len(transport.calls) == 1
