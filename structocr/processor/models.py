from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional


class ChunkStatus(Enum):
    PENDING    = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED  = "COMPLETED"
    FAILED     = "FAILED"
    SKIPPED    = "SKIPPED"


class Milestone(IntEnum):
    """Hitos del pipeline, en orden. Cada uno corresponde a un campo de texto del Chunk."""
    RAW   = 0
    CLEAN = 1
    MACRO = 2
    MICRO = 3
    FINAL = 4


# Campo de texto del Chunk que materializa cada hito
MILESTONE_FIELDS: dict[Milestone, str] = {
    Milestone.RAW:   "raw_text",
    Milestone.CLEAN: "cleaned_text",
    Milestone.MACRO: "macro_text",
    Milestone.MICRO: "micro_text",
    Milestone.FINAL: "final_text",
}

# Texto de relleno para campos anteriores a una importación directa
BACKFILL_PLACEHOLDER = "[SKIPPED - DIRECT IMPORT]"
PLACEHOLDER_PREFIX   = "[SKIPPED"


@dataclass
class RawDocument:
    """Lo que sale de cualquier Parser: el texto por páginas de un archivo."""
    file_name: str
    source_path: str
    text: str
    page_count: Optional[int] = None


@dataclass
class Chunk:
    """Unidad de trabajo del pipeline. Un campo de texto por etapa."""
    id: int
    file_name: str
    raw_text: str
    cleaned_text: str = ""
    macro_text: str = ""     # titulares etiquetados
    micro_text: str = ""     # cuerpo etiquetado
    final_text: str = ""     # jerarquía auditada
    translated_text: Optional[str] = None
    status: ChunkStatus = ChunkStatus.PENDING
    last_headline_level: Optional[int] = None

    def text_for(self, milestone: Milestone) -> str:
        return getattr(self, MILESTONE_FIELDS[milestone]) or ""


def field_for_milestone(milestone: Milestone) -> str:
    return MILESTONE_FIELDS[milestone]


def is_placeholder(text: str) -> bool:
    """True si el texto es un relleno de importación y no contenido real."""
    return PLACEHOLDER_PREFIX in text
