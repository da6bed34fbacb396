"""Production Gemini client that speaks the ``generateContent`` REST API."""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any, Callable, Dict, Optional

from ..errors import LLMResponseFormatError, LLMTransportError
from .credentials import Credential, KeyResolver
from .llm_client import GenerationRequest, LLMClient, Operation, ResponseShape, RetryPolicy

__all__ = ["DEFAULT_BASE_URL", "GeminiClient", "build_payload", "validate_api_key"]


Transport = Callable[[str, Dict[str, Any], str], str]

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def build_payload(request: GenerationRequest) -> Dict[str, Any]:
    """Render the ``generateContent`` request body for one attempt."""
    body: Dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
    }
    if request.system_instruction:
        body["systemInstruction"] = {"parts": [{"text": request.system_instruction}]}

    config: Dict[str, Any] = {}
    if request.response_shape is ResponseShape.JSON:
        config["responseMimeType"] = "application/json"
        if request.response_schema:
            config["responseSchema"] = request.response_schema
    if request.temperature is not None:
        config["temperature"] = request.temperature
    if config:
        body["generationConfig"] = config
    return body


class GeminiClient(LLMClient):
    """Thin adapter around the Gemini REST endpoint."""

    def __init__(
        self,
        *,
        model: str = "gemini-3-flash-preview",
        key_resolver: Optional[KeyResolver] = None,
        system_instruction: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[Transport] = None,
        timeout: float = 120.0,
        max_attempts: int = 3,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        kwargs: Dict[str, Any] = {}
        if sleep is not None:
            kwargs["sleep"] = sleep
        super().__init__(
            model,
            key_resolver=key_resolver,
            system_instruction=system_instruction,
            max_attempts=max_attempts,
            retry_policy=retry_policy,
            **kwargs,
        )
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport or self._http_transport

    def endpoint_for(self, model: str) -> str:
        return f"{self._base_url}/models/{model}:generateContent"

    async def _raw_invoke(self, request: GenerationRequest, credential: Credential) -> str:
        """Send the request over the configured transport off the event loop."""
        url = self.endpoint_for(request.model)
        body = build_payload(request)
        raw_response = await asyncio.to_thread(self._transport, url, body, credential.value)
        return self._extract_text(raw_response)

    def _http_transport(self, url: str, body: Dict[str, Any], api_key: str) -> str:
        """Default HTTP transport built on ``urllib``."""
        import urllib.error
        import urllib.request

        if os.getenv("PAKAR_DEBUG_PAYLOAD"):
            print("[Gemini] request payload:")
            print(json.dumps(body, indent=2, sort_keys=True, ensure_ascii=False))

        data = json.dumps(body).encode("utf-8")
        http_request = urllib.request.Request(
            url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": api_key,
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(http_request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Gemini response timed out after {self._timeout}s.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")[:500]
            raise LLMTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Failed to reach Gemini endpoint: {error.reason}") from error

        if status >= 400:
            raise LLMTransportError(f"Unexpected HTTP status {status}")

        return raw.decode("utf-8")

    @staticmethod
    def _extract_text(raw_response: str) -> str:
        """Return the concatenated text parts of the first candidate."""
        try:
            data = json.loads(raw_response)
        except (TypeError, json.JSONDecodeError) as error:
            raise LLMTransportError("Gemini endpoint returned a non-JSON envelope.") from error

        if not isinstance(data, dict):
            raise LLMTransportError("Gemini endpoint returned an unexpected envelope.")

        if "error" in data:
            detail = data["error"]
            if isinstance(detail, dict):
                status = detail.get("status", "")
                message = detail.get("message", "")
                raise LLMTransportError(f"{detail.get('code', '')} {status}: {message}".strip())
            raise LLMTransportError(str(detail))

        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback") or {}
            reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            suffix = f" (blockReason={reason})" if reason else ""
            raise LLMResponseFormatError(f"Gemini response contained no candidates{suffix}.")

        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise LLMResponseFormatError("Model returned an empty response.")
        return text


async def validate_api_key(
    api_key: str,
    *,
    model: str = "gemini-3-flash-preview",
    base_url: str = DEFAULT_BASE_URL,
    transport: Optional[Transport] = None,
    timeout: float = 30.0,
) -> bool:
    """Check that ``api_key`` can complete one tiny generation call."""
    candidate = (api_key or "").strip()
    if not candidate:
        return False
    client = GeminiClient(
        model=model,
        key_resolver=KeyResolver(user_key=lambda: candidate, system_key=lambda: None),
        base_url=base_url,
        transport=transport,
        timeout=timeout,
        max_attempts=1,
    )
    check: Operation[str] = Operation(name="validate_key", response_shape=ResponseShape.TEXT, max_attempts=1)
    try:
        await client.generate(check, "Balas dengan satu kata: OK")
    except Exception:
        return False
    return True
