"""Theme recommendation: rank reference themes against the analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from ..models.llm_client import LLMClient, Operation, ValidationResult
from ..prompts import JSON_RESPONSE_INSTRUCTION, join_names, render_theme_references
from ..schema import ThemeOption
from .base import invoke_operation

RESPONSE_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "name": {"type": "STRING"},
            "reason": {"type": "STRING"},
        },
        "required": ["name", "reason"],
    },
}


@dataclass(slots=True)
class ThemesRequest:
    """Input payload for the theme recommendation operation."""

    analysis: str
    dimensions: List[str] = field(default_factory=list)


def build_prompt(request: ThemesRequest) -> str:
    return f"""Berdasarkan analisis konteks: "{request.analysis.strip()}"
dan dimensi terpilih: "{join_names(request.dimensions)}".

Tugas: Pilih dan urutkan 3 Tema Kokurikuler yang paling relevan dari daftar referensi di bawah ini.

DAFTAR REFERENSI TEMA:
{render_theme_references()}

Output JSON format: [{{"name": "Nama Tema (sesuai daftar)", "reason": "Alasan singkat mengapa tema ini cocok dengan analisis"}}]
{JSON_RESPONSE_INSTRUCTION}"""


def validate_themes(data: Any) -> ValidationResult:
    if not isinstance(data, list) or not data:
        return ValidationResult.fail("Output harus berupa JSON Array tema yang tidak kosong.")
    for index, item in enumerate(data, start=1):
        if not isinstance(item, dict):
            return ValidationResult.fail(f"Tema ke-{index} harus berupa objek dengan 'name' dan 'reason'.")
        for key in ("name", "reason"):
            value = item.get(key)
            if not isinstance(value, str) or not value.strip():
                return ValidationResult.fail(f"Tema ke-{index} tidak memiliki field '{key}' yang terisi.")
    return ValidationResult.ok()


OPERATION: Operation[List[ThemeOption]] = Operation(
    name="themes",
    validator=validate_themes,
    response_model=List[ThemeOption],
    response_schema=RESPONSE_SCHEMA,
)


async def run(
    request: ThemesRequest,
    *,
    client: LLMClient,
    logs_root: Optional[Path] = None,
) -> List[ThemeOption]:
    return await invoke_operation(
        OPERATION,
        build_prompt(request),
        request,
        client=client,
        logs_root=logs_root,
    )
