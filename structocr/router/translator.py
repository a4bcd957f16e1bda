# router/translator.py
"""
Traducción de verificación.

El texto se parte en lotes de líneas de hasta 1800 caracteres, cada lote se
traduce por separado con el Router, y al final se reparan las etiquetas que
el modelo haya deformado ({{ level 1 }} → {{level1}}).
"""
import logging
import re
from typing import Optional

from structocr.router.prompt_builder import build_translate_prompt
from structocr.router.router import Router

logger = logging.getLogger(__name__)

MAX_BATCH_CHARS = 1800

# (patrón deformado, forma canónica)
_TAG_REPAIRS: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"\{\{\s*level\s*(\d+)\s*\}\}", re.IGNORECASE),               r"{{level\1}}"),
    (re.compile(r"\{\{\s*-\s*level\s*(\d+)\s*\}\}", re.IGNORECASE),           r"{{-level\1}}"),
    (re.compile(r"\{\{\s*text\s*[-_]?\s*level\s*\}\}", re.IGNORECASE),        "{{text_level}}"),
    (re.compile(r"\{\{\s*-\s*text\s*[-_]?\s*level\s*\}\}", re.IGNORECASE),    "{{-text_level}}"),
    (re.compile(r"\{\{\s*footnote\s*number\s*(\d+)\s*\}\}", re.IGNORECASE),     r"{{footnotenumber\1}}"),
    (re.compile(r"\{\{\s*-\s*footnote\s*number\s*(\d+)\s*\}\}", re.IGNORECASE), r"{{-footnotenumber\1}}"),
    (re.compile(r"\{\{\s*footnote\s*(\d+)\s*\}\}", re.IGNORECASE),            r"{{footnote\1}}"),
    (re.compile(r"\{\{\s*-\s*footnote\s*(\d+)\s*\}\}", re.IGNORECASE),        r"{{-footnote\1}}"),
)


def repair_tags(text: str) -> str:
    """Normaliza etiquetas con espacios o mayúsculas a su forma canónica."""
    for pattern, replacement in _TAG_REPAIRS:
        text = pattern.sub(replacement, text)
    return text


def split_batches(text: str, max_chars: int = MAX_BATCH_CHARS) -> list[str]:
    """
    Agrupa líneas completas en lotes de hasta max_chars.
    Una línea más larga que max_chars forma su propio lote.
    """
    batches: list[str] = []
    current = ""
    for line in text.split("\n"):
        candidate = f"{current}\n{line}" if current else line
        if current and len(candidate) > max_chars:
            batches.append(current)
            current = line
        else:
            current = candidate
    if current:
        batches.append(current)
    return batches


class Translator:

    def __init__(self, router: Router, model: Optional[str] = None, target_lang: str = "English"):
        self._router      = router
        self._model       = model
        self._instruction = build_translate_prompt(target_lang)

    def translate(self, text: str) -> str:
        """
        Traduce el texto completo. Cualquier error del Router se propaga:
        el orquestador decide qué estado darle al chunk.
        """
        if not text.strip():
            return ""

        batches = split_batches(text)
        logger.debug("Traduciendo %d lotes", len(batches))

        translated = [
            self._router.transform(batch, self._instruction, model=self._model).text
            for batch in batches
        ]
        return repair_tags("\n".join(translated))
