from __future__ import annotations

import asyncio
import json
from pathlib import Path

from pakar.operations import activities
from pakar.tools import list_operation_logs, load_operation_log


def test_log_summary_lists_attempts_and_notes(scripted_client, tmp_path: Path) -> None:
    client = scripted_client(
        [
            json.dumps([{"name": "Observasi", "jp": 2}]),
            json.dumps([{"name": "Observasi", "jp": 4}]),
        ]
    )

    asyncio.run(
        activities.run(
            activities.ActivitiesRequest(total_jp=4, theme="Kewirausahaan"),
            client=client,
            logs_root=tmp_path,
        )
    )

    (path,) = list_operation_logs(tmp_path)
    entry = load_operation_log(path)

    assert entry.operation == "activities"
    assert entry.succeeded
    assert entry.error is None
    assert len(entry.correction_notes) == 1
    assert "selisih +2 JP" in entry.correction_notes[0]
    lines = entry.summary_lines()
    assert lines[0] == "Operation: activities"
    assert lines[1] == "Attempts: 2"
    assert lines[2].startswith("- attempt 1: logic_violation ::")
    assert lines[3] == "- attempt 2: accepted"
    assert lines[-1] == "Outcome: success"


def test_list_operation_logs_handles_missing_directory(tmp_path: Path) -> None:
    assert list_operation_logs(tmp_path / "kosong") == []
