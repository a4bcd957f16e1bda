# structocr/exporter.py
import logging
import re
from collections import Counter
from pathlib import Path
from typing import Iterable, Optional

from structocr.config import DEFAULT_OUTPUT_DIR
from structocr.processor.chunker.delimited import render_delimited, render_translated
from structocr.processor.models import Chunk, Milestone

logger = logging.getLogger(__name__)

MILESTONE_SUFFIXES: dict[Milestone, str] = {
    Milestone.RAW:   "Raw",
    Milestone.CLEAN: "Step 2 - Clean",
    Milestone.MACRO: "Step 3 - Macro",
    Milestone.MICRO: "Step 4 - Micro",
    Milestone.FINAL: "Step 5 - Final",
}

# Restos de exportaciones anteriores en el nombre del archivo fuente
_PROCESSED_PREFIX_RE = re.compile(r"^(processed_[A-Z]+_)+")
_STEP_SUFFIX_RE      = re.compile(r" - Step \d.*$", re.IGNORECASE)
_RAW_SUFFIX_RE       = re.compile(r" - Raw$", re.IGNORECASE)


class Exporter:
    """
    Responsabilidad única: escribir a disco el texto de un hito.

    No sabe nada de modelos ni del orquestador.
    Recibe chunks y produce archivos UTF-8, uno por archivo fuente.
    """

    def __init__(self, output_dir: Path | None = None):
        self._output_dir = output_dir or DEFAULT_OUTPUT_DIR

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def write(self, chunks: Iterable[Chunk], milestone: Milestone) -> list[Path]:
        """Un archivo por archivo fuente, en el orden en que aparecen."""
        by_file = _group_by_file(chunks, lambda c: c.text_for(milestone))
        if not by_file:
            raise ValueError("No hay chunks que exportar")

        names = unique_export_names(by_file, MILESTONE_SUFFIXES[milestone])
        self._output_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for file_name, parts in by_file.items():
            path = self._output_dir / names[file_name]
            path.write_text("\n\n".join(parts) + "\n", encoding="utf-8")
            logger.info("Output escrito en: %s", path)
            paths.append(path)
        return paths

    def write_delimited(self, chunks: list[Chunk], milestone: Milestone, name: str) -> Path:
        """Un único archivo con marcadores de chunk, reimportable con `import`."""
        if not chunks:
            raise ValueError("No hay chunks que exportar")
        self._output_dir.mkdir(parents=True, exist_ok=True)
        path = self._output_dir / f"{name} - {MILESTONE_SUFFIXES[milestone]} - Chunks.txt"
        path.write_text(render_delimited(chunks, milestone) + "\n", encoding="utf-8")
        logger.info("Output delimitado escrito en: %s", path)
        return path

    def write_translation(self, chunks: list[Chunk], name: str) -> Path:
        if not any(c.translated_text for c in chunks):
            raise ValueError("Ningún chunk tiene traducción")
        self._output_dir.mkdir(parents=True, exist_ok=True)
        path = self._output_dir / f"{name} - Translation.txt"
        path.write_text(render_translated(chunks) + "\n", encoding="utf-8")
        logger.info("Traducción escrita en: %s", path)
        return path


def export_file_name(source_name: str, suffix: str, tag: Optional[str] = None) -> str:
    """'processed_CLEAN_ley.pdf' + 'Step 3 - Macro' → 'ley - Step 3 - Macro.txt'"""
    stem = Path(source_name).stem
    stem = _PROCESSED_PREFIX_RE.sub("", stem)
    stem = _STEP_SUFFIX_RE.sub("", stem)
    stem = _RAW_SUFFIX_RE.sub("", stem).strip()
    if tag:
        stem = f"{stem} ({tag})"
    return f"{stem} - {suffix}.txt"


def unique_export_names(sources: Iterable[str], suffix: str) -> dict[str, str]:
    """
    Nombre de salida por archivo fuente, sin colisiones.
    'ley.pdf' y 'ley.txt' → 'ley (pdf) - ...' y 'ley (txt) - ...';
    si aun así chocan se numeran: 'ley (2) - ...'.
    """
    sources = list(sources)
    base = {s: export_file_name(s, suffix) for s in sources}
    repeated = Counter(base.values())

    names: dict[str, str] = {}
    used: set[str] = set()
    for source in sources:
        name = base[source]
        if repeated[name] > 1:
            name = export_file_name(source, suffix, tag=Path(source).suffix.lstrip("."))

        n = 2
        while name in used:
            name = export_file_name(source, suffix, tag=str(n))
            n += 1

        if name != base[source]:
            logger.warning("Nombre de salida repetido para %s; se usa %s", source, name)
        used.add(name)
        names[source] = name
    return names


def _group_by_file(chunks: Iterable[Chunk], content_of) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for chunk in chunks:
        grouped.setdefault(chunk.file_name, []).append(content_of(chunk))
    return grouped
