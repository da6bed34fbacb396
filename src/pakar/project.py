"""Project document state, prerequisite checks and JSON persistence."""

from __future__ import annotations

import json
import time
import uuid
from datetime import date
from pathlib import Path
from typing import List

from pydantic import Field, ValidationError

from .schema import (
    Activity,
    ActivityFormat,
    AssessmentDimension,
    CreativeIdea,
    ProjectGoal,
    RecordModel,
    ThemeOption,
)

DEFAULT_TITLE = "MODUL PROJEK"


class PrerequisiteError(ValueError):
    """Raised when a wizard step is triggered before its inputs exist."""


class AnalysisItem(RecordModel):
    """Multi-select answers plus an optional free-text entry."""

    selected: List[str] = Field(default_factory=list)
    custom: str = ""

    def render(self) -> str:
        parts = [value for value in self.selected if value.strip()]
        if self.custom.strip():
            parts.append(f"(Lainnya: {self.custom.strip()})")
        return ", ".join(parts) if parts else "-"


class CurriculumContext(RecordModel):
    goals: AnalysisItem = Field(default_factory=AnalysisItem)
    gaps: AnalysisItem = Field(default_factory=AnalysisItem)
    values: AnalysisItem = Field(default_factory=AnalysisItem)


class StudentContext(RecordModel):
    interests: AnalysisItem = Field(default_factory=AnalysisItem)
    talents: AnalysisItem = Field(default_factory=AnalysisItem)
    needs: AnalysisItem = Field(default_factory=AnalysisItem)


class ResourceContext(RecordModel):
    assets: AnalysisItem = Field(default_factory=AnalysisItem)
    people: AnalysisItem = Field(default_factory=AnalysisItem)
    finance: AnalysisItem = Field(default_factory=AnalysisItem)
    partners: AnalysisItem = Field(default_factory=AnalysisItem)


class SocialContext(RecordModel):
    issues: AnalysisItem = Field(default_factory=AnalysisItem)
    values: AnalysisItem = Field(default_factory=AnalysisItem)
    socioeco: AnalysisItem = Field(default_factory=AnalysisItem)


class ContextAnalysisData(RecordModel):
    """Structured school reflection gathered in the analysis step."""

    curriculum: CurriculumContext = Field(default_factory=CurriculumContext)
    students: StudentContext = Field(default_factory=StudentContext)
    resources: ResourceContext = Field(default_factory=ResourceContext)
    social: SocialContext = Field(default_factory=SocialContext)


class ProjectState(RecordModel):
    """Everything the wizard collects and generates for one project document."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    last_updated: float = 0.0
    last_step: int = 0

    school_name: str = ""
    coordinator_name: str = ""
    coordinator_nip: str = ""
    principal_name: str = ""
    principal_nip: str = ""
    signature_place: str = ""
    signature_date: str = Field(default_factory=lambda: date.today().isoformat())

    phase: str = "Fase D"
    target_class: str = ""
    total_jp_annual: int = 360
    project_jp_allocation: int = 0

    title: str = DEFAULT_TITLE
    project_description: str = ""
    context_analysis: ContextAnalysisData = Field(default_factory=ContextAnalysisData)
    analysis_summary: str = ""

    recommended_dimensions: List[str] = Field(default_factory=list)
    selected_dimensions: List[str] = Field(default_factory=list)

    theme_options: List[ThemeOption] = Field(default_factory=list)
    selected_theme: str = ""
    selected_theme_reason: str = ""

    activity_format: str = ActivityFormat.SUBJECT_COLLABORATION.value
    creative_ideas: List[CreativeIdea] = Field(default_factory=list)
    integrated_subjects: str = ""

    project_goals: List[ProjectGoal] = Field(default_factory=list)
    activities: List[Activity] = Field(default_factory=list)

    activity_locations: List[str] = Field(default_factory=list)
    pedagogical_strategy: str = ""
    learning_environment: str = ""
    partnerships: str = ""
    digital_tools: str = ""
    assessment_plan: str = ""
    assessment_rubrics: List[AssessmentDimension] = Field(default_factory=list)


def format_context_analysis(data: ContextAnalysisData) -> str:
    """Render the four-section reflection text handed to the analysis operation."""
    c, s, r, o = data.curriculum, data.students, data.resources, data.social
    return (
        f"[1. Kurikulum] Potensi: {c.goals.render()}, Gap: {c.gaps.render()}, Nilai: {c.values.render()} "
        f"[2. Murid] Minat: {s.interests.render()}, Bakat: {s.talents.render()}, Kebutuhan: {s.needs.render()} "
        f"[3. Sumber Daya] Fisik: {r.assets.render()}, SDM: {r.people.render()}, "
        f"Keuangan: {r.finance.render()}, Mitra: {r.partners.render()} "
        f"[4. Sosial] Isu: {o.issues.render()}, Nilai: {o.values.render()}, Eko: {o.socioeco.render()}"
    )


def check_prerequisites(project: ProjectState, action: str) -> None:
    """Raise ``PrerequisiteError`` when ``action`` cannot run on ``project`` yet."""
    if action == "analyze" and not project.school_name.strip():
        raise PrerequisiteError("Harap isi Nama Sekolah di tahap Identitas terlebih dahulu.")
    if action in {"dimensions", "themes"} and not project.analysis_summary.strip():
        raise PrerequisiteError("Anda belum melakukan Analisis Konteks.")
    if action == "ideas":
        if not project.selected_theme.strip():
            raise PrerequisiteError("Pilih Tema terlebih dahulu.")
        if not project.activity_format.strip():
            raise PrerequisiteError("Pilih Bentuk Kegiatan terlebih dahulu.")
    if action == "goals" and not project.selected_theme.strip():
        raise PrerequisiteError("Tema Projek belum dipilih.")
    if action == "activities":
        if not project.project_goals:
            raise PrerequisiteError("Tujuan Projek belum dirumuskan.")
        if project.project_jp_allocation <= 0:
            raise PrerequisiteError("Alokasi JP Projek belum diisi.")
    if action == "finalize" and not project.activities:
        raise PrerequisiteError("Alur Aktivitas belum disusun.")


def touch(project: ProjectState) -> ProjectState:
    return project.model_copy(update={"last_updated": time.time()})


def load_project(path: Path) -> ProjectState:
    """Load a project document from JSON."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise ValueError(f"Project file {path} is not valid JSON: {error}") from error
    try:
        return ProjectState.model_validate(payload)
    except ValidationError as error:
        raise ValueError(f"Project file {path} does not match the project schema: {error}") from error


def save_project(project: ProjectState, path: Path) -> None:
    """Write ``project`` as camelCase JSON, replacing the file atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")
    temp_path.write_text(project.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    temp_path.replace(path)


__all__ = [
    "AnalysisItem",
    "ContextAnalysisData",
    "DEFAULT_TITLE",
    "PrerequisiteError",
    "ProjectState",
    "check_prerequisites",
    "format_context_analysis",
    "load_project",
    "save_project",
    "touch",
]
