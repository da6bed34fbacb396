"""Utilities for loading and inspecting structured operation logs."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Sequence

__all__ = ["OperationLogEntry", "list_operation_logs", "load_operation_log"]


@dataclass(slots=True)
class OperationLogEntry:
    """In-memory representation of a stored operation log."""

    path: Path
    operation: str
    payload: Mapping[str, Any]

    @property
    def attempts(self) -> Sequence[Mapping[str, Any]]:
        value = self.payload.get("attempts")
        if isinstance(value, list):
            return [item for item in value if isinstance(item, Mapping)]
        return []

    @property
    def succeeded(self) -> bool:
        return "result" in self.payload and "error" not in self.payload

    @property
    def error(self) -> str | None:
        value = self.payload.get("error")
        if isinstance(value, str) and value.strip():
            return value
        return None

    @property
    def correction_notes(self) -> List[str]:
        """Return the notes appended to the prompt between attempts, in order."""
        notes = []
        for attempt in self.attempts:
            note = attempt.get("correction_note")
            if isinstance(note, str) and note.strip():
                notes.append(note.strip())
        return notes

    def summary_lines(self) -> List[str]:
        lines = [f"Operation: {self.operation}", f"Attempts: {len(self.attempts)}"]
        for attempt in self.attempts:
            index = attempt.get("attempt")
            kind = attempt.get("error_kind")
            if kind:
                lines.append(f"- attempt {index}: {kind} :: {attempt.get('error')}")
            else:
                lines.append(f"- attempt {index}: accepted")
        lines.append("Outcome: success" if self.succeeded else f"Outcome: failed :: {self.error}")
        return lines


def load_operation_log(path: Path | str) -> OperationLogEntry:
    """Load a structured operation log from disk."""
    log_path = Path(path).resolve()
    with log_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    operation = str(payload.get("operation") or "").strip()
    return OperationLogEntry(path=log_path, operation=operation, payload=payload)


def list_operation_logs(logs_root: Path | str) -> List[Path]:
    """Return operation log files under ``logs_root`` ordered oldest first."""
    directory = Path(logs_root) / "operations"
    if not directory.is_dir():
        return []
    return sorted(directory.glob("operation__*.json"))
