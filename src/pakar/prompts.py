"""Prompt templates and helpers shared across the generation operations."""

from __future__ import annotations

from typing import Iterable, Sequence

from .schema import THEME_REFERENCES, Dimension

SYSTEM_INSTRUCTION = (
    "Anda adalah Ahli Kokurikuler (Kurikulum Nasional).\n"
    "Tugas Anda membantu guru menyusun dokumen Kokurikuler.\n"
    'Gunakan istilah "Kokurikuler" dan "Dimensi Profil Lulusan".\n'
    "Bahasa Indonesia formal dan pedagogis."
)

JSON_RESPONSE_INSTRUCTION = (
    "Kembalikan HANYA JSON yang valid sesuai format di atas. "
    "Jangan sertakan markdown, penjelasan, atau teks lain di luar JSON."
)


def render_bullets(items: Iterable[str], *, numbered: bool = False) -> str:
    """Format ``items`` as a dash or numbered list, skipping blanks."""
    lines = []
    for index, item in enumerate((value.strip() for value in items if value and value.strip()), start=1):
        prefix = f"{index}." if numbered else "-"
        lines.append(f"{prefix} {item}")
    return "\n".join(lines)


def render_dimension_options() -> str:
    return render_bullets(member.value for member in Dimension)


def render_theme_references() -> str:
    return render_bullets(THEME_REFERENCES, numbered=True)


def join_names(values: Sequence[str]) -> str:
    """Join dimension or subject names for inline use in a prompt."""
    cleaned = [str(getattr(value, "value", value)).strip() for value in values]
    return ", ".join(value for value in cleaned if value) or "-"


__all__ = [
    "JSON_RESPONSE_INSTRUCTION",
    "SYSTEM_INSTRUCTION",
    "join_names",
    "render_bullets",
    "render_dimension_options",
    "render_theme_references",
]
