"""Document finalization: narrative sections, rubrics and per-activity steps.

This is the widest structure the model is asked for, so it runs on the
higher-capability model. The returned step lists are merged back into the
caller's activities by identifier; the caller's activity list is never
replaced wholesale.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..models.llm_client import LLMClient, Operation, ValidationResult
from ..prompts import JSON_RESPONSE_INSTRUCTION, join_names
from ..schema import Activity, ActivitySteps, FinalSections, ProjectGoal
from .base import invoke_operation

DEFAULT_FINALIZE_MODEL = "gemini-3-pro-preview"

_STRING = {"type": "STRING"}
_STRING_ARRAY = {"type": "ARRAY", "items": _STRING}

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "activityLocations": _STRING_ARRAY,
        "pedagogicalStrategy": _STRING,
        "learningEnvironment": _STRING,
        "partnerships": _STRING,
        "digitalTools": _STRING,
        "assessmentPlan": _STRING,
        "assessmentRubrics": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "dimensionName": _STRING,
                    "rubrics": {
                        "type": "ARRAY",
                        "items": {
                            "type": "OBJECT",
                            "properties": {
                                "aspect": _STRING,
                                "score1": _STRING,
                                "score2": _STRING,
                                "score3": _STRING,
                                "score4": _STRING,
                            },
                        },
                    },
                },
            },
        },
        "activities": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {"id": _STRING, "steps": _STRING_ARRAY},
                "required": ["id", "steps"],
            },
        },
    },
    "required": ["assessmentRubrics", "activities"],
}


@dataclass(slots=True)
class FinalizeRequest:
    """Input payload for the finalization operation."""

    title: str
    theme: str
    dimensions: List[str] = field(default_factory=list)
    goals: List[ProjectGoal] = field(default_factory=list)
    activities: List[Activity] = field(default_factory=list)


def build_prompt(request: FinalizeRequest) -> str:
    dimensions = join_names(request.dimensions)
    goals = "; ".join(goal.description for goal in request.goals) or "-"
    activities = "\n".join(
        f'- id "{activity.id}": {activity.name} ({activity.jp} JP) - {activity.description}'
        for activity in request.activities
    ) or "-"
    return f"""Berdasarkan data projek berikut, buatlah narasi lengkap dokumen kokurikuler.

DATA PROJEK:
Judul: {request.title}
Tema: {request.theme}
Dimensi: {dimensions}
Tujuan: {goals}
Daftar Aktivitas:
{activities}

TUGAS 1: LOKASI KEGIATAN (activityLocations)
Tentukan daftar tempat spesifik pelaksanaan projek, misal ["Ruang Kelas", "Halaman Sekolah", "Taman Kota"].

TUGAS 2: NARASI AKADEMIK
Tulis konten naratif untuk pedagogicalStrategy (metode), learningEnvironment (setting lingkungan),
partnerships (kemitraan), digitalTools (alat bantu digital), dan assessmentPlan (rencana asesmen ringkas).

TUGAS 3: RUBRIK ASESMEN (assessmentRubrics, WAJIB DETAIL)
Buat rubrik untuk setiap dimensi: {dimensions}.
Setiap dimensi berisi aspek penilaian dengan deskripsi 4 skala: score1 (Kurang), score2 (Cukup), score3 (Baik), score4 (Sangat Baik).

TUGAS 4: LANGKAH AKTIVITAS (activities)
Untuk SETIAP aktivitas di atas, tulis 3-6 langkah pelaksanaan konkret.
Gunakan "id" aktivitas yang sama persis: [{{"id": "...", "steps": ["...", "..."]}}].

Output: satu JSON Object lengkap.
{JSON_RESPONSE_INSTRUCTION}"""


def validate_final_sections(data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return ValidationResult.fail("Output harus berupa satu JSON Object.")
    rubrics = data.get("assessmentRubrics")
    if rubrics is None:
        return ValidationResult.fail("Field 'assessmentRubrics' tidak ada; wajib berisi rubrik per dimensi.")
    if not isinstance(rubrics, list) or not rubrics:
        return ValidationResult.fail("Field 'assessmentRubrics' kosong; isi minimal satu rubrik dimensi.")
    activities = data.get("activities")
    if activities is None:
        return ValidationResult.fail("Field 'activities' tidak ada; wajib berisi langkah setiap aktivitas.")
    if not isinstance(activities, list) or not activities:
        return ValidationResult.fail("Field 'activities' kosong; tulis langkah untuk setiap aktivitas.")
    return ValidationResult.ok()


def merge_activity_steps(activities: Sequence[Activity], returned: Sequence[ActivitySteps]) -> List[Activity]:
    """Return copies of ``activities`` carrying the returned step lists.

    Steps are matched on ``id``; an activity without an identifier match takes
    the entry at the same position unless that entry belongs to another
    activity. Unmatched activities keep their existing steps.
    """
    by_id: Dict[str, ActivitySteps] = {}
    for entry in returned:
        if entry.id and entry.id not in by_id:
            by_id[entry.id] = entry
    known_ids = {activity.id for activity in activities if activity.id}

    merged: List[Activity] = []
    for index, activity in enumerate(activities):
        match = by_id.get(activity.id) if activity.id else None
        if match is None and index < len(returned):
            candidate = returned[index]
            if not candidate.id or candidate.id not in known_ids:
                match = candidate
        if match is None:
            merged.append(activity.model_copy())
        else:
            merged.append(activity.model_copy(update={"steps": list(match.steps)}))
    return merged


OPERATION: Operation[FinalSections] = Operation(
    name="finalize",
    validator=validate_final_sections,
    response_model=FinalSections,
    model=DEFAULT_FINALIZE_MODEL,
    response_schema=RESPONSE_SCHEMA,
)


async def run(
    request: FinalizeRequest,
    *,
    client: LLMClient,
    model: Optional[str] = None,
    logs_root: Optional[Path] = None,
) -> FinalSections:
    operation = replace(OPERATION, model=model) if model else OPERATION
    return await invoke_operation(
        operation,
        build_prompt(request),
        request,
        client=client,
        logs_root=logs_root,
    )
