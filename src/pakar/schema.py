"""Typed records exchanged with the model and stored in a project document."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Dimension(str, Enum):
    """Graduate profile dimensions ("Dimensi Profil Lulusan")."""

    FAITH = "Keimanan dan Ketakwaan kepada Tuhan YME"
    GLOBAL_CITIZEN = "Kewargaan (Global/Lokal)"
    CRITICAL_THINKING = "Penalaran Kritis"
    CREATIVITY = "Kreativitas"
    COLLABORATION = "Kolaborasi"
    INDEPENDENCE = "Kemandirian"
    HEALTH = "Kesehatan"
    COMMUNICATION = "Komunikasi"


class ActivityFormat(str, Enum):
    """How the project activities are organised ("Bentuk Kegiatan")."""

    CROSS_DISCIPLINARY = "Kolaboratif Lintas Disiplin Ilmu"
    SUBJECT_COLLABORATION = "Kolaborasi Mata Pelajaran"
    SEVEN_HABITS = "Gerakan 7 KAIH"
    OTHER = "Cara Lainnya"

    @classmethod
    def parse(cls, value: "ActivityFormat | str | None") -> "ActivityFormat":
        if isinstance(value, ActivityFormat):
            return value
        text = (value or "").strip()
        for member in cls:
            if member.value.lower() == text.lower() or member.name.lower() == text.lower():
                return member
        return cls.OTHER


THEME_REFERENCES: List[str] = [
    "Generasi sehat dan bugar",
    "Peduli dan berbagi",
    "Aku cinta Indonesia",
    "Hidup hemat dan produktif",
    "Berkarya untuk sesama dan bangsa",
    "Gaya hidup berkelanjutan",
    "Kearifan Lokal",
    "Bhinneka Tunggal Ika",
    "Berekayasa dan Berteknologi untuk Membangun NKRI",
    "Kewirausahaan",
]


class ThemeOption(RecordModel):
    name: str
    reason: str


class CreativeIdea(RecordModel):
    """Catchy project idea, e.g. ``GELAS: Gerakan Lawan Sampah``."""

    title: str
    description: str = ""


class ProjectGoal(RecordModel):
    id: str = ""
    description: str
    subjects: List[str] = Field(default_factory=list)


class Activity(RecordModel):
    """One activity of the plan; ``jp`` is the allocated lesson hours."""

    id: str = ""
    name: str
    type: str = ""
    jp: int
    description: str = ""
    steps: Optional[List[str]] = None


class RubricItem(RecordModel):
    """Assessment aspect described on a four-level scale (Kurang .. Sangat Baik)."""

    aspect: str
    score1: str = ""
    score2: str = ""
    score3: str = ""
    score4: str = ""


class AssessmentDimension(RecordModel):
    dimension_name: str
    rubrics: List[RubricItem] = Field(default_factory=list)


class ActivitySteps(RecordModel):
    id: str = ""
    steps: List[str] = Field(default_factory=list)


class FinalSections(RecordModel):
    """Narrative sections, rubrics and per-activity steps produced at finalization."""

    activity_locations: List[str] = Field(default_factory=list)
    pedagogical_strategy: str = ""
    learning_environment: str = ""
    partnerships: str = ""
    digital_tools: str = ""
    assessment_plan: str = ""
    assessment_rubrics: List[AssessmentDimension] = Field(default_factory=list)
    activities: List[ActivitySteps] = Field(default_factory=list)


__all__ = [
    "Activity",
    "ActivityFormat",
    "ActivitySteps",
    "AssessmentDimension",
    "CreativeIdea",
    "Dimension",
    "FinalSections",
    "ProjectGoal",
    "RecordModel",
    "RubricItem",
    "THEME_REFERENCES",
    "ThemeOption",
]
