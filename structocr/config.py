# structocr/config.py
"""
Configuración del pipeline: sección `pipeline:` de ~/.structocr/config.yaml.

Todas las claves son opcionales. Si el archivo no existe se usan los
defaults: los comandos que no llaman a modelos (detect-lang, export, status)
funcionan sin config.
"""
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

from structocr.processor.chunker.models import CHUNK_PRESETS
from structocr.router.config_loader import read_config, resolve_config_path

logger = logging.getLogger(__name__)

CLEANING_MODES = ("deterministic", "ai")

DEFAULT_ANNEX_MARKERS: tuple[str, ...] = (
    "ANNEX", "APPENDIX", "SCHEDULE", "ATTACHMENT", "ANNEXE", "APÊNDICE",
)

DEFAULT_OUTPUT_DIR = Path.home() / ".structocr" / "output"


@dataclass
class PipelineConfig:
    target_chunk_size: int = CHUNK_PRESETS["standard"]
    cleaning_mode:     str = "deterministic"
    include_annexes:   bool = False
    language:          str = "auto"
    model:             Optional[str] = None   # adaptador preferido; None → prioridad
    annex_markers:     tuple[str, ...] = field(default_factory=lambda: DEFAULT_ANNEX_MARKERS)
    settle_seconds:    float = 0.5            # espera antes de cada etapa en auto-run
    context_chars:     int = 1500             # cola de salida pasada al chunk siguiente

    def __post_init__(self):
        if self.cleaning_mode not in CLEANING_MODES:
            raise ValueError(
                f"cleaning_mode inválido: '{self.cleaning_mode}'. "
                f"Opciones: {', '.join(CLEANING_MODES)}"
            )
        if self.target_chunk_size < 1:
            raise ValueError("target_chunk_size debe ser >= 1")
        self.annex_markers = tuple(self.annex_markers)


def load_pipeline_config(config_path: Optional[str] = None) -> PipelineConfig:
    """Lee la sección `pipeline:`. Claves desconocidas se ignoran con un warning."""
    path = resolve_config_path(config_path)
    if not path.exists():
        logger.debug("Sin config en %s, usando defaults del pipeline", path)
        return PipelineConfig()

    section = read_config(str(path)).get("pipeline") or {}
    known = {f.name for f in fields(PipelineConfig)}

    unknown = set(section) - known
    if unknown:
        logger.warning("Claves desconocidas en pipeline: %s", ", ".join(sorted(unknown)))

    return PipelineConfig(**{k: v for k, v in section.items() if k in known})


def resolve_output_dir(output_dir: Optional[str] = None) -> Path:
    return Path(output_dir or os.environ.get("STRUCTOCR_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR)
