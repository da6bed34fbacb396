"""Dimension recommendation: pick the graduate profile dimensions to strengthen."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from ..models.llm_client import LLMClient, Operation, ValidationResult
from ..prompts import JSON_RESPONSE_INSTRUCTION, render_dimension_options
from ..schema import Dimension
from .base import invoke_operation

RESPONSE_SCHEMA = {"type": "ARRAY", "items": {"type": "STRING"}}


@dataclass(slots=True)
class DimensionsRequest:
    """Input payload for the dimension recommendation operation."""

    analysis: str
    count: int = 3


def build_prompt(request: DimensionsRequest) -> str:
    return f"""Berdasarkan analisis konteks sekolah ini: "{request.analysis.strip()}"

Pilih {request.count} "Dimensi Profil Lulusan" yang paling relevan untuk dikuatkan.
Pilihan tersedia:
{render_dimension_options()}

Output: JSON Array berisi string nama dimensi persis seperti pada daftar.
{JSON_RESPONSE_INSTRUCTION}"""


def validate_dimensions(data: Any) -> ValidationResult:
    if not isinstance(data, list):
        return ValidationResult.fail("Output harus berupa JSON Array nama dimensi.")
    if not data:
        return ValidationResult.fail("Daftar dimensi kosong; pilih minimal satu dimensi dari daftar.")
    return ValidationResult.ok()


def normalise_dimensions(values: List[str]) -> List[str]:
    """Map case-insensitive matches onto canonical names and drop duplicates."""
    canonical = {member.value.lower(): member.value for member in Dimension}
    result: List[str] = []
    for value in values:
        text = value.strip()
        name = canonical.get(text.lower(), text)
        if name and name not in result:
            result.append(name)
    return result


OPERATION: Operation[List[str]] = Operation(
    name="dimensions",
    validator=validate_dimensions,
    response_model=List[str],
    response_schema=RESPONSE_SCHEMA,
)


async def run(
    request: DimensionsRequest,
    *,
    client: LLMClient,
    logs_root: Optional[Path] = None,
) -> List[str]:
    names = await invoke_operation(
        OPERATION,
        build_prompt(request),
        request,
        client=client,
        logs_root=logs_root,
    )
    return normalise_dimensions(names)
