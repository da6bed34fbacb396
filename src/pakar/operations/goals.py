"""Goal drafting: project goals with the subjects they integrate."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, List, Optional

from ..models.llm_client import LLMClient, Operation, ValidationResult, Validator
from ..prompts import JSON_RESPONSE_INSTRUCTION, join_names
from ..schema import ActivityFormat, ProjectGoal
from .base import invoke_operation

RESPONSE_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "id": {"type": "STRING"},
            "description": {"type": "STRING"},
            "subjects": {"type": "ARRAY", "items": {"type": "STRING"}},
        },
        "required": ["id", "description", "subjects"],
    },
}

_SUBJECT_RULES = {
    ActivityFormat.CROSS_DISCIPLINARY: """KONTEKS BENTUK: Kolaboratif Lintas Disiplin Ilmu.
SYARAT WAJIB 'subjects':
- WAJIB berisi minimal 2 nama MATA PELAJARAN MURNI.
- Contoh yang BENAR: ["Matematika", "IPA", "IPS", "Bahasa Indonesia", "Seni Budaya", "PJOK"].
- DILARANG mengisi dengan karakter atau sikap (jangan tulis "Mandiri" atau "Gotong Royong").""",
    ActivityFormat.SUBJECT_COLLABORATION: """KONTEKS BENTUK: Kolaborasi Mata Pelajaran.
SYARAT WAJIB 'subjects':
- Setiap tujuan diampu oleh TEPAT SATU mata pelajaran; isi 'subjects' dengan satu nama mata pelajaran saja.
- Mata pelajaran boleh berbeda antar tujuan.""",
    ActivityFormat.SEVEN_HABITS: """KONTEKS KHUSUS: Gerakan 7 KAIH.
SYARAT 'subjects':
- Isi dengan ["Pendidikan Karakter", "Budi Pekerti", "PAI", "PPKn"].""",
}

_DEFAULT_SUBJECT_RULE = """SYARAT 'subjects':
- Isi dengan mata pelajaran relevan atau ["Kokurikuler", "Pengembangan Diri"]."""


@dataclass(slots=True)
class GoalsRequest:
    """Input payload for the goal drafting operation."""

    theme: str
    dimensions: List[str] = field(default_factory=list)
    activity_format: ActivityFormat | str = ActivityFormat.OTHER
    phase: str = ""
    title: str = ""
    description: str = ""


def build_prompt(request: GoalsRequest) -> str:
    activity_format = ActivityFormat.parse(request.activity_format)
    rule = _SUBJECT_RULES.get(activity_format, _DEFAULT_SUBJECT_RULE)
    project_lines = []
    if request.title:
        project_lines.append(f'- Judul Projek: "{request.title}"')
    if request.description:
        project_lines.append(f'- Deskripsi Projek: "{request.description}"')
    if request.phase:
        project_lines.append(f"- Fase: {request.phase}")
    project_block = "\n".join(project_lines) or "-"
    dimensions = join_names(request.dimensions)
    return f"""Bertindaklah sebagai Konsultan Kurikulum Profesional.
Tugas: Rumuskan 3-4 "Tujuan Projek" yang spesifik untuk tema "{request.theme}".

DATA PROJEK:
{project_block}

DEFINISI PEDAGOGIS:
Tujuan Projek menggabungkan kompetensi ({dimensions}) dengan konten tema "{request.theme}".

FORMULA KALIMAT TUJUAN:
"Murid mampu [KATA KERJA] [KONTEN] melalui [METODE]."

PENTING TENTANG 'subjects' (Mata Pelajaran):
{rule}

Output JSON Array: [{{"id": "1", "description": "Murid mampu...", "subjects": ["Mapel A"]}}]
{JSON_RESPONSE_INSTRUCTION}"""


def validate_goals(data: Any) -> ValidationResult:
    if not isinstance(data, list) or not data:
        return ValidationResult.fail("Output harus berupa JSON Array tujuan projek yang tidak kosong.")
    return ValidationResult.ok()


def validate_single_subject_goals(data: Any) -> ValidationResult:
    """Every goal must name exactly one subject."""
    base = validate_goals(data)
    if not base.is_valid:
        return base
    for index, item in enumerate(data, start=1):
        count = _subject_count(item)
        if count != 1:
            return ValidationResult.fail(
                f"Tujuan ke-{index} memiliki {count} mata pelajaran pada 'subjects'; bentuk "
                f"{ActivityFormat.SUBJECT_COLLABORATION.value} mewajibkan tepat 1 mata pelajaran per tujuan."
            )
    return ValidationResult.ok()


def validate_cross_disciplinary_goals(data: Any) -> ValidationResult:
    """Every goal must integrate at least two subjects."""
    base = validate_goals(data)
    if not base.is_valid:
        return base
    for index, item in enumerate(data, start=1):
        count = _subject_count(item)
        if count < 2:
            return ValidationResult.fail(
                f"Tujuan ke-{index} hanya memiliki {count} mata pelajaran pada 'subjects'; bentuk "
                f"{ActivityFormat.CROSS_DISCIPLINARY.value} mewajibkan minimal 2 mata pelajaran."
            )
    return ValidationResult.ok()


def validator_for(activity_format: ActivityFormat | str) -> Validator:
    """Select the goal validator for the caller's activity format."""
    parsed = ActivityFormat.parse(activity_format)
    if parsed is ActivityFormat.SUBJECT_COLLABORATION:
        return validate_single_subject_goals
    if parsed is ActivityFormat.CROSS_DISCIPLINARY:
        return validate_cross_disciplinary_goals
    return validate_goals


def _subject_count(item: Any) -> int:
    if not isinstance(item, dict):
        return 0
    subjects = item.get("subjects")
    if not isinstance(subjects, list):
        return 0
    return len(subjects)


OPERATION: Operation[List[ProjectGoal]] = Operation(
    name="goals",
    validator=validate_goals,
    response_model=List[ProjectGoal],
    response_schema=RESPONSE_SCHEMA,
)


async def run(
    request: GoalsRequest,
    *,
    client: LLMClient,
    logs_root: Optional[Path] = None,
) -> List[ProjectGoal]:
    operation = replace(OPERATION, validator=validator_for(request.activity_format))
    goals = await invoke_operation(
        operation,
        build_prompt(request),
        request,
        client=client,
        logs_root=logs_root,
    )
    return [
        goal if goal.id else goal.model_copy(update={"id": str(index)})
        for index, goal in enumerate(goals, start=1)
    ]
