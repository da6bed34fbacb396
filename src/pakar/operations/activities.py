"""Activity plan generation with a fixed lesson-hour (JP) allocation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, List, Optional

from ..models.llm_client import LLMClient, Operation, ValidationResult, Validator
from ..prompts import JSON_RESPONSE_INSTRUCTION
from ..schema import Activity, ActivityFormat, ProjectGoal
from .base import invoke_operation

# The arithmetic either converges on the first correction or not at all.
ACTIVITY_MAX_ATTEMPTS = 2

RESPONSE_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "id": {"type": "STRING"},
            "name": {"type": "STRING"},
            "type": {"type": "STRING"},
            "jp": {"type": "INTEGER"},
            "description": {"type": "STRING"},
        },
        "required": ["id", "name", "type", "jp", "description"],
    },
}

_FORMAT_NOTES = {
    ActivityFormat.CROSS_DISCIPLINARY: "Konteks: Kolaborasi Lintas Mapel. Tunjukkan keterhubungan skill antar mapel dalam aktivitas.",
    ActivityFormat.SUBJECT_COLLABORATION: "Konteks: Kolaborasi Mata Pelajaran. Kaitkan setiap aktivitas dengan mata pelajaran pengampu tujuannya.",
    ActivityFormat.SEVEN_HABITS: (
        "Konteks: Gerakan 7 KAIH. WAJIB menyertakan aktivitas pembiasaan berulang "
        "(monitoring jurnal/tantangan) selama beberapa JP."
    ),
}


@dataclass(slots=True)
class ActivitiesRequest:
    """Input payload for the activity plan operation."""

    total_jp: int
    theme: str
    goals: List[ProjectGoal] = field(default_factory=list)
    activity_format: ActivityFormat | str = ActivityFormat.OTHER
    title: str = ""


def build_prompt(request: ActivitiesRequest) -> str:
    note = _FORMAT_NOTES.get(ActivityFormat.parse(request.activity_format), "")
    goals_text = "\n".join(
        f"- {goal.description} ({', '.join(goal.subjects) or '-'})" for goal in request.goals
    ) or "-"
    title_line = f'- Judul: "{request.title}"\n' if request.title else ""
    special = f"\n3. {note}" if note else ""
    return f"""Peran: Ahli Kurikulum & Desain Instruksional.
Tugas: Susun "Alur Aktivitas Kokurikuler" yang detail.

KONTEKS PROJEK:
{title_line}- Tema: "{request.theme}"
- Total Waktu: {request.total_jp} JP (wajib dialokasikan habis, jumlah seluruh 'jp' TEPAT {request.total_jp}).
- Tujuan:
{goals_text}

INSTRUKSI KHUSUS:
1. Pecah kegiatan menjadi langkah-langkah nyata.
2. JP harus rasional (2-4 JP per pertemuan standar).{special}

Output JSON Array: [{{"id": "1", "name": "...", "type": "Tipe Aktivitas", "jp": 0, "description": "Langkah-langkah mikro..."}}]
{JSON_RESPONSE_INSTRUCTION}"""


def make_validator(target_jp: int) -> Validator:
    """Build the validator enforcing that item ``jp`` values sum to ``target_jp``."""

    def validate_activities(data: Any) -> ValidationResult:
        if not isinstance(data, list) or not data:
            return ValidationResult.fail("Output harus berupa JSON Array aktivitas yang tidak kosong.")
        total = 0
        for index, item in enumerate(data, start=1):
            hours = _as_hours(item.get("jp") if isinstance(item, dict) else None)
            if hours is None:
                return ValidationResult.fail(
                    f"Aktivitas ke-{index} tidak memiliki nilai 'jp' berupa bilangan bulat."
                )
            if hours <= 0:
                return ValidationResult.fail(
                    f"Aktivitas ke-{index} memiliki 'jp' {hours}; setiap aktivitas wajib bernilai minimal 1 JP."
                )
            total += hours
        if total != target_jp:
            delta = target_jp - total
            return ValidationResult.fail(
                f"Total JP seluruh aktivitas adalah {total}, padahal harus tepat {target_jp} "
                f"(selisih {delta:+d} JP). Sesuaikan nilai 'jp' agar jumlahnya tepat {target_jp}."
            )
        return ValidationResult.ok()

    return validate_activities


def _as_hours(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


OPERATION: Operation[List[Activity]] = Operation(
    name="activities",
    response_model=List[Activity],
    max_attempts=ACTIVITY_MAX_ATTEMPTS,
    response_schema=RESPONSE_SCHEMA,
)


async def run(
    request: ActivitiesRequest,
    *,
    client: LLMClient,
    logs_root: Optional[Path] = None,
) -> List[Activity]:
    if request.total_jp <= 0:
        raise ValueError("total_jp must be a positive number of lesson hours.")
    operation = replace(OPERATION, validator=make_validator(request.total_jp))
    activities = await invoke_operation(
        operation,
        build_prompt(request),
        request,
        client=client,
        logs_root=logs_root,
    )
    return [
        activity if activity.id else activity.model_copy(update={"id": str(index)})
        for index, activity in enumerate(activities, start=1)
    ]
