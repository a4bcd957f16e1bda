# structocr/pipeline_state.py
"""
Estado del pipeline como valor inmutable.

Solo el orquestador lo reemplaza, siempre a través de las funciones de
transición de este módulo. Cualquier observador (CLI, storage) lo lee
sin poder modificarlo.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional

from structocr.processor.models import Chunk, ChunkStatus, Milestone


class Stage(Enum):
    IDLE              = "IDLE"
    EXTRACTING        = "EXTRACTING"
    CLEANING          = "CLEANING"
    STRUCTURING_MACRO = "STRUCTURING_MACRO"
    STRUCTURING_MICRO = "STRUCTURING_MICRO"
    PATCHING          = "PATCHING"
    REPAIRING         = "REPAIRING"
    TRANSLATING       = "TRANSLATING"
    AUDITING          = "AUDITING"
    ERROR             = "ERROR"


# Etapas desde las que se puede arrancar una ejecución nueva.
# ERROR admite el reintento manual de la misma etapa.
_STARTABLE = (Stage.IDLE, Stage.ERROR)


class PipelineBusyError(Exception):
    """Ya hay una ejecución en curso."""
    pass


class NoChunksError(Exception):
    """La etapa necesita chunks y la sesión no tiene ninguno."""
    pass


@dataclass(frozen=True)
class PipelineState:
    stage:           Stage = Stage.IDLE
    progress:        int = 0                  # 0-100, relativo a la etapa
    error:           Optional[str] = None
    auto_run_target: Optional[Milestone] = None
    chunks:          tuple[Chunk, ...] = field(default_factory=tuple)
    language:        str = "auto"
    audit_report:    Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.stage not in _STARTABLE


# ------------------------------------------------------------------
# Transiciones
# ------------------------------------------------------------------

def begin_run(state: PipelineState, stage: Stage) -> PipelineState:
    if state.is_running:
        raise PipelineBusyError(
            f"Ya hay una ejecución en curso ({state.stage.value}). "
            f"Espera a que termine o cancélala."
        )
    return replace(state, stage=stage, progress=0, error=None)


def finish_run(state: PipelineState) -> PipelineState:
    return replace(state, stage=Stage.IDLE, progress=100)


def fail_run(state: PipelineState, message: str) -> PipelineState:
    """Error a nivel de ejecución: nunca se avanza automáticamente tras él."""
    return replace(state, stage=Stage.ERROR, error=message, auto_run_target=None)


def cancel_run(state: PipelineState) -> PipelineState:
    """Vuelve a IDLE. Los chunks a medias quedan PENDING para poder reanudar."""
    chunks = tuple(
        replace(c, status=ChunkStatus.PENDING) if c.status == ChunkStatus.PROCESSING else c
        for c in state.chunks
    )
    return replace(state, stage=Stage.IDLE, chunks=chunks)


def update_chunk(state: PipelineState, chunk: Chunk) -> PipelineState:
    chunks = tuple(chunk if c.id == chunk.id else c for c in state.chunks)
    return replace(state, chunks=chunks)


def set_progress(state: PipelineState, progress: int) -> PipelineState:
    return replace(state, progress=max(0, min(100, progress)))


def replace_chunks(state: PipelineState, chunks: Iterable[Chunk]) -> PipelineState:
    return replace(state, chunks=tuple(chunks), audit_report=None)


def request_auto_run(state: PipelineState, target: Milestone) -> PipelineState:
    return replace(state, auto_run_target=target)


def clear_auto_run(state: PipelineState) -> PipelineState:
    return replace(state, auto_run_target=None)


def set_language(state: PipelineState, language: str) -> PipelineState:
    return replace(state, language=language)


def set_audit_report(state: PipelineState, report: Optional[str]) -> PipelineState:
    return replace(state, audit_report=report)


# ------------------------------------------------------------------
# Consultas
# ------------------------------------------------------------------

def has_milestone(state: PipelineState, milestone: Milestone) -> bool:
    """
    RAW se cumple si existe algún chunk; el resto, si algún chunk tiene
    texto en el campo del hito (los rellenos de importación cuentan).
    """
    if not state.chunks:
        return False
    if milestone == Milestone.RAW:
        return True
    return any(c.text_for(milestone) for c in state.chunks)


def count_by_status(state: PipelineState) -> dict[ChunkStatus, int]:
    counts = {status: 0 for status in ChunkStatus}
    for chunk in state.chunks:
        counts[chunk.status] += 1
    return counts


# ------------------------------------------------------------------
# Serialización
# ------------------------------------------------------------------

_TEXT_FIELDS = ("raw_text", "cleaned_text", "macro_text", "micro_text", "final_text")


def chunk_to_dict(chunk: Chunk) -> dict:
    data = {
        "id":                  chunk.id,
        "file_name":           chunk.file_name,
        "translated_text":     chunk.translated_text,
        "status":              chunk.status.value,
        "last_headline_level": chunk.last_headline_level,
    }
    data.update({name: getattr(chunk, name) for name in _TEXT_FIELDS})
    return data


def chunk_from_dict(data: dict) -> Chunk:
    return Chunk(
        id                  = int(data["id"]),
        file_name           = data["file_name"],
        translated_text     = data.get("translated_text"),
        status              = ChunkStatus(data.get("status", ChunkStatus.PENDING.value)),
        last_headline_level = data.get("last_headline_level"),
        **{name: data.get(name) or "" for name in _TEXT_FIELDS},
    )


def to_dict(state: PipelineState) -> dict:
    return {
        "stage":           state.stage.value,
        "progress":        state.progress,
        "error":           state.error,
        "auto_run_target": state.auto_run_target.name if state.auto_run_target is not None else None,
        "language":        state.language,
        "audit_report":    state.audit_report,
        "chunks":          [chunk_to_dict(c) for c in state.chunks],
    }


def from_dict(data: dict) -> PipelineState:
    target = data.get("auto_run_target")
    return PipelineState(
        stage           = Stage(data.get("stage", Stage.IDLE.value)),
        progress        = int(data.get("progress", 0)),
        error           = data.get("error"),
        auto_run_target = Milestone[target] if target else None,
        chunks          = tuple(chunk_from_dict(c) for c in data.get("chunks", [])),
        language        = data.get("language") or "auto",
        audit_report    = data.get("audit_report"),
    )