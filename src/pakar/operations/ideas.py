"""Creative idea generation: catchy acronym-style project ideas."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from ..models.llm_client import LLMClient, Operation, ValidationResult
from ..prompts import JSON_RESPONSE_INSTRUCTION
from ..schema import ActivityFormat, CreativeIdea
from .base import invoke_operation

IDEA_TEMPERATURE = 0.9
MAX_ANALYSIS_CHARS = 1500
DEFAULT_CONTEXT = "Sekolah Menengah"

RESPONSE_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "title": {"type": "STRING"},
            "description": {"type": "STRING"},
        },
        "required": ["title", "description"],
    },
}


@dataclass(slots=True)
class IdeasRequest:
    """Input payload for the creative idea operation."""

    theme: str
    activity_format: ActivityFormat | str
    analysis: str = ""


def build_prompt(request: IdeasRequest) -> str:
    context = request.analysis.strip()[:MAX_ANALYSIS_CHARS] if request.analysis else DEFAULT_CONTEXT
    activity_format = ActivityFormat.parse(request.activity_format).value
    return f"""Peran: Konsultan Kreatif Projek Kokurikuler.

INPUT DATA:
- Tema Besar: "{request.theme}"
- Bentuk Kegiatan: "{activity_format}"
- Konteks Sekolah: "{context or DEFAULT_CONTEXT}"

TUGAS:
Berikan 3 opsi Ide Projek yang spesifik, kreatif, dan mudah diingat.

KETENTUAN OUTPUT JSON:
1. title: Gunakan AKRONIM atau singkatan unik. Format: "AKRONIM: Kepanjangan" (misal "SABER: Sapu Bersih", "GELAS: Gerakan Lawan Sampah").
2. description: 1 paragraf narasi (3-4 kalimat) yang menjelaskan inti kegiatan projek secara menarik. Deskripsi ini dipakai sebagai "Deskripsi Singkat" di modul.

Output JSON format: [{{"title": "...", "description": "..."}}]
{JSON_RESPONSE_INSTRUCTION}"""


def validate_ideas(data: Any) -> ValidationResult:
    if not isinstance(data, list) or not data:
        return ValidationResult.fail("Output harus berupa JSON Array ide projek yang tidak kosong.")
    return ValidationResult.ok()


OPERATION: Operation[List[CreativeIdea]] = Operation(
    name="ideas",
    validator=validate_ideas,
    response_model=List[CreativeIdea],
    temperature=IDEA_TEMPERATURE,
    response_schema=RESPONSE_SCHEMA,
)


async def run(
    request: IdeasRequest,
    *,
    client: LLMClient,
    logs_root: Optional[Path] = None,
) -> List[CreativeIdea]:
    return await invoke_operation(
        OPERATION,
        build_prompt(request),
        request,
        client=client,
        logs_root=logs_root,
    )
