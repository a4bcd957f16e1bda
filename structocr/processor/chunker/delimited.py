# chunker/delimited.py
"""
Vistas de texto sobre una secuencia de chunks.

- Formato delimitado (exportar/importar y edición manual):

      <<<< FILE_START: contrato.pdf >>>>
      --- CHUNK 0 ---
      contenido...

      --- CHUNK 1 ---
      contenido...

- Vista limpia (lectura): contenidos unidos por línea en blanco,
  con una cabecera FILE_START por archivo.
"""
import dataclasses
import re

from ..models import Chunk, Milestone, field_for_milestone

FILE_START_TEMPLATE = "<<<< FILE_START: {name} >>>>"
CHUNK_TEMPLATE      = "--- CHUNK {id} ---"

_EDIT_BLOCK_RE = re.compile(
    r"^--- CHUNK (\d+) ---[ \t]*(?:\n|\Z)(.*?)(?=^--- CHUNK \d+ ---|^<<<< FILE_START: |\Z)",
    re.MULTILINE | re.DOTALL,
)


def render_delimited(chunks: list[Chunk], milestone: Milestone) -> str:
    """Renderiza el campo del hito con marcadores de chunk y de archivo."""
    field = field_for_milestone(milestone)
    blocks: list[str] = []
    current_file: str | None = None

    for chunk in chunks:
        prefix = ""
        if chunk.file_name != current_file:
            current_file = chunk.file_name
            prefix = FILE_START_TEMPLATE.format(name=current_file) + "\n"
        content = getattr(chunk, field) or ""
        blocks.append(f"{prefix}{CHUNK_TEMPLATE.format(id=chunk.id)}\n{content}")

    return "\n\n".join(blocks)


def render_clean(chunks: list[Chunk], milestone: Milestone) -> str:
    field = field_for_milestone(milestone)
    return _render_by_file(chunks, lambda c: getattr(c, field) or "")


def render_translated(chunks: list[Chunk]) -> str:
    return _render_by_file(chunks, lambda c: c.translated_text or "")


def apply_delimited_edit(
    chunks: list[Chunk],
    edited_text: str,
    milestone: Milestone,
) -> list[Chunk]:
    """
    Aplica una edición en formato delimitado sobre el campo del hito.
    Ids desconocidos se ignoran. Si el texto no tiene ningún bloque,
    devuelve los chunks sin cambios.
    """
    field = field_for_milestone(milestone)
    edits = {
        int(m.group(1)): m.group(2).strip()
        for m in _EDIT_BLOCK_RE.finditer(edited_text or "")
    }
    if not edits:
        return list(chunks)

    return [
        dataclasses.replace(c, **{field: edits[c.id]}) if c.id in edits else c
        for c in chunks
    ]


def _render_by_file(chunks: list[Chunk], content_of) -> str:
    parts: list[str] = []
    current_file: str | None = None

    for chunk in chunks:
        content = content_of(chunk)
        if chunk.file_name != current_file:
            current_file = chunk.file_name
            header = FILE_START_TEMPLATE.format(name=current_file)
            parts.append(f"{header}\n\n{content}")
        else:
            parts.append(content)

    return "\n\n".join(parts)
