from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Iterable, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from pakar.models.credentials import Credential, KeyResolver  # noqa: E402
from pakar.models.llm_client import GenerationRequest, LLMClient, RetryPolicy  # noqa: E402


class ScriptedClient(LLMClient):
    """Client replaying canned responses; exceptions in the script are raised."""

    def __init__(
        self,
        responses: Iterable[Any],
        *,
        key: Optional[str] = "test-key",
        key_resolver: Optional[KeyResolver] = None,
        max_attempts: int = 3,
        retry_policy: Optional[RetryPolicy] = None,
        model: str = "test-model",
    ) -> None:
        self.delays: List[float] = []

        async def _sleep(seconds: float) -> None:
            self.delays.append(seconds)

        super().__init__(
            model,
            key_resolver=key_resolver or KeyResolver(user_key=lambda: key, system_key=lambda: None),
            max_attempts=max_attempts,
            retry_policy=retry_policy,
            sleep=_sleep,
        )
        self._responses = list(responses)
        self.requests: List[GenerationRequest] = []
        self.credentials: List[Credential] = []

    @property
    def prompts(self) -> List[str]:
        return [request.prompt for request in self.requests]

    async def _raw_invoke(self, request: GenerationRequest, credential: Credential) -> str:
        self.requests.append(request)
        self.credentials.append(credential)
        if not self._responses:
            raise RuntimeError("ScriptedClient ran out of responses")
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture()
def scripted_client() -> type[ScriptedClient]:
    """Return the scripted client class so tests can build one per scenario."""
    return ScriptedClient


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "GEMINI_API_KEY",
        "API_KEY",
        "VITE_GEMINI_API_KEY",
        "PAKAR_MODEL",
        "PAKAR_FINALIZE_MODEL",
        "PAKAR_TIMEOUT",
        "PAKAR_LOGS_DIR",
        "PAKAR_DEBUG_PAYLOAD",
    ):
        monkeypatch.delenv(name, raising=False)
