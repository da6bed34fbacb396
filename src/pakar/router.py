"""Routing logic that maps operation requests to their concrete implementations."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from pydantic import ValidationError
from pydantic.type_adapter import TypeAdapter

from .models.llm_client import LLMClient, summarise_validation_error
from .operations import OperationName
from .operations.activities import ActivitiesRequest, run as run_activities
from .operations.analyze import AnalyzeRequest, run as run_analyze
from .operations.dimensions import DimensionsRequest, run as run_dimensions
from .operations.finalize import FinalizeRequest, run as run_finalize
from .operations.goals import GoalsRequest, run as run_goals
from .operations.ideas import IdeasRequest, run as run_ideas
from .operations.themes import ThemesRequest, run as run_themes

OperationRunner = Callable[..., Awaitable[Any]]


@dataclass(slots=True)
class OperationEntry:
    """Metadata describing how to execute a single operation."""

    request_model: type[Any]
    runner: OperationRunner


class OperationRouter:
    """Dispatch table mapping operation names to their concrete handlers."""

    def __init__(
        self,
        *,
        client: LLMClient,
        logs_root: Optional[Path] = None,
        finalize_model: Optional[str] = None,
    ) -> None:
        self._client = client
        self._logs_root = logs_root
        self._finalize_model = finalize_model
        self._registry: Dict[OperationName, OperationEntry] = {
            OperationName.ANALYZE: OperationEntry(AnalyzeRequest, run_analyze),
            OperationName.DIMENSIONS: OperationEntry(DimensionsRequest, run_dimensions),
            OperationName.THEMES: OperationEntry(ThemesRequest, run_themes),
            OperationName.IDEAS: OperationEntry(IdeasRequest, run_ideas),
            OperationName.GOALS: OperationEntry(GoalsRequest, run_goals),
            OperationName.ACTIVITIES: OperationEntry(ActivitiesRequest, run_activities),
            OperationName.FINALIZE: OperationEntry(FinalizeRequest, run_finalize),
        }

    async def dispatch(self, operation: OperationName | str, payload: Any) -> Any:
        """Coerce the payload into the expected request type and execute the operation."""
        name = self._resolve(operation)
        entry = self._registry[name]
        request = self._build_request(payload, entry.request_model)
        kwargs: Dict[str, Any] = {"client": self._client, "logs_root": self._logs_root}
        if name is OperationName.FINALIZE and self._finalize_model:
            kwargs["model"] = self._finalize_model
        return await entry.runner(request, **kwargs)

    def available_operations(self) -> Iterable[OperationName]:
        """Return the operations currently registered with the router."""
        return self._registry.keys()

    def _resolve(self, operation: OperationName | str) -> OperationName:
        if isinstance(operation, OperationName):
            return operation
        name = str(operation).strip().lower()
        for candidate in self._registry:
            if candidate.value == name:
                return candidate
        valid = ", ".join(item.value for item in self._registry)
        raise KeyError(f"Unknown operation '{operation}'. Expected one of: {valid}")

    @staticmethod
    def _build_request(payload: Any, request_type: type[Any]) -> Any:
        """Turn a JSON-like ``payload`` into ``request_type``, naming the failing fields."""
        if isinstance(payload, request_type):
            return payload
        try:
            return TypeAdapter(request_type).validate_python(payload)
        except ValidationError as error:
            raise ValueError(
                f"Invalid payload for '{request_type.__name__}': {summarise_validation_error(error)}"
            ) from error
