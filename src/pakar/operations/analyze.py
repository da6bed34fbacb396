"""Context analysis: turn the school reflection into a strategic narrative."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..models.llm_client import LLMClient, Operation, ResponseShape, ValidationResult
from .base import invoke_operation

MIN_ANALYSIS_LENGTH = 50
NO_DATA_MESSAGE = "Tidak ada data."


@dataclass(slots=True)
class AnalyzeRequest:
    """Input payload for the context analysis operation."""

    reflection: str


def build_prompt(request: AnalyzeRequest) -> str:
    return f"""Data Refleksi Sekolah:
{request.reflection.strip()}

Tugas: Lakukan analisis mendalam untuk menyusun "Insight Strategis" sebagai fondasi modul projek.

Gunakan METODE BERIKUT secara berurutan:
1. Identifikasi Ide Inti (Core Idea Extraction) dari data mentah.
2. Pengelompokan Tematik (Thematic Clustering) antara potensi murid, sumber daya, dan isu sosial.
3. Generalisasi Informasi (Abstraction) menjadi gambaran utuh kondisi sekolah.
4. Eliminasi Redundansi (hapus pengulangan poin).
5. Sintesis menjadi Rekomendasi (hubungkan kondisi nyata dengan kebutuhan pengembangan karakter).

ATURAN FORMAT OUTPUT (STRICT):
- Tulis dalam 2-3 paragraf naratif yang mengalir.
- DILARANG menggunakan simbol asterisk (*), bullet points, atau penomoran.
- DILARANG menggunakan format bold/italic markdown.
- Jangan menyalin ulang data mentah, tapi jelaskan artinya bagi pembelajaran.
- Gunakan bahasa profesional, empatik, dan solutif."""


def validate_analysis(data: Any) -> ValidationResult:
    if not isinstance(data, str):
        return ValidationResult.fail("Analisis harus berupa teks naratif.")
    length = len(data.strip())
    if length < MIN_ANALYSIS_LENGTH:
        return ValidationResult.fail(
            f"Analisis terlalu pendek ({length} karakter); tulis 2-3 paragraf naratif "
            f"minimal {MIN_ANALYSIS_LENGTH} karakter."
        )
    return ValidationResult.ok()


OPERATION: Operation[str] = Operation(
    name="analyze",
    validator=validate_analysis,
    response_model=str,
    response_shape=ResponseShape.TEXT,
)


async def run(request: AnalyzeRequest, *, client: LLMClient, logs_root: Optional[Path] = None) -> str:
    """Produce the analysis summary; an empty reflection short-circuits without a call."""
    if not request.reflection or not request.reflection.strip():
        return NO_DATA_MESSAGE
    return await invoke_operation(
        OPERATION,
        build_prompt(request),
        request,
        client=client,
        logs_root=logs_root,
    )
