# processor/layout_restorer.py
"""
Restauración determinista del layout (sin IA).

Reglas regex/máquina de estados en lugar de interpretación:
0% de pérdida de contenido fuera de lo que se clasifica como ruido.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

# ^ sangría opcional, (número), (separador: espacios, punto, paréntesis)?, (resto)
_LINE_NUMBER_RE = re.compile(r"^\s*(\d+)([\s.)]+)?(.*)$")

# Salto entre páginas del extractor: "--- PAGE 1 END ---\n\n--- PAGE 2 START ---"
_PAGE_BREAK_RE = re.compile(r"[ \t]*\n*--- PAGE \d+ END ---\s*--- PAGE \d+ START ---[ \t]*\n*")
_PAGE_MARKER_RE = re.compile(r"^[ \t]*--- PAGE \d+ (?:START|END) ---[ \t]*(?:\n|\Z)", re.MULTILINE)

# Número de página aislado o "Page N" ocupando toda la línea
_PAGE_NOISE_RE = re.compile(r"^\s*(?:page\s*)?(\d+)\s*$", re.IGNORECASE)

# Palabra partida con guion al final de línea: "communi-\ncation"
_HYPHENATION_RE = re.compile(r"([a-zA-ZÀ-ÿ])-[ \t]*\n[ \t]*([a-zA-ZÀ-ÿ])")

# Línea en blanco = párrafo. Nunca se toca.
_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_PARAGRAPH_PLACEHOLDER = "\x00PARA\x00"

# Línea que no termina en . ! ? : seguida de una línea que empieza en minúscula.
# Los dígitos quedan fuera a propósito: "ARTICLE 1" + "1. Definitions" no se une.
_WRAPPED_LINE_RE = re.compile(
    r"(?<=[^.!?:\s\x00])[ \t]*\n[ \t]*(?=[a-zß-öø-ÿ])"
)


@dataclass
class LineNumberCandidate:
    """Línea que empieza por un número: candidata a número marginal."""
    number: int
    separator: str
    rest: str


@dataclass(frozen=True)
class LineNumberGuard:
    """Excepción nombrada: si protects() es True la línea se conserva intacta."""
    name: str
    protects: Callable[[LineNumberCandidate, int], bool]


def _is_list_marker(c: LineNumberCandidate, expected: int) -> bool:
    # "1. Definitions", "2) Scope"
    return "." in c.separator or ")" in c.separator


def _is_year(c: LineNumberCandidate, expected: int) -> bool:
    return 1900 <= c.number <= 2099


def _is_single_space(c: LineNumberCandidate, expected: int) -> bool:
    # "1 For the purposes..." puede ser línea 1 o nota al pie 1. Ante la duda, se conserva.
    return c.separator == " "


def _is_glued(c: LineNumberCandidate, expected: int) -> bool:
    # "3rd", "1st": el número es parte de la palabra
    return not c.separator and bool(c.rest)


def _is_out_of_sequence(c: LineNumberCandidate, expected: int) -> bool:
    # Debe ser el esperado o un reinicio a 1 (página nueva)
    return c.number != expected and c.number != 1


LINE_NUMBER_GUARDS: tuple[LineNumberGuard, ...] = (
    LineNumberGuard("list_marker", _is_list_marker),
    LineNumberGuard("year", _is_year),
    LineNumberGuard("single_space", _is_single_space),
    LineNumberGuard("glued", _is_glued),
    LineNumberGuard("sequence", _is_out_of_sequence),
)


class LayoutRestorer:
    """
    Limpieza determinista en pasadas independientes y ordenadas:

    0. Retira los marcadores de página del extractor
    1. Quita números de línea marginales secuenciales (1, 2, 3...)
    2. Elimina ruido de página ("12", "Page 12" aislados)
    3. Repara guiones de partición de palabras
    4. Une líneas partidas por el ancho de página, protegiendo párrafos

    No normaliza espacios múltiples: conservan el layout de tablas.
    """

    def __init__(self, guards: tuple[LineNumberGuard, ...] = LINE_NUMBER_GUARDS):
        self._guards = guards

    def restore(self, text: str) -> str:
        if not text:
            return ""

        processed = self.strip_page_markers(text)
        processed = self.strip_line_numbers(processed)
        processed = self.remove_noise_lines(processed)
        processed = self.fix_hyphenation(processed)
        processed = self.merge_wrapped_lines(processed)
        return processed.strip()

    # ------------------------------------------------------------------
    # Pasada 0: marcadores de página
    # ------------------------------------------------------------------

    @staticmethod
    def strip_page_markers(text: str) -> str:
        # Un salto de página es un salto de línea: la frase puede continuar
        joined = _PAGE_BREAK_RE.sub("\n", text)
        return _PAGE_MARKER_RE.sub("", joined)

    # ------------------------------------------------------------------
    # Pasada 1: números de línea
    # ------------------------------------------------------------------

    def strip_line_numbers(self, text: str) -> str:
        result: list[str] = []
        expected = 1
        removed = 0

        for line in text.split("\n"):
            candidate = _parse_candidate(line)
            if candidate is None or self.protecting_guard(candidate, expected):
                # Contenido: no asumimos todavía una secuencia válida
                result.append(line)
                continue

            # El resto puede empezar por otro número removible: "1  1  texto"
            while candidate is not None and not self.protecting_guard(candidate, expected):
                expected = 2 if candidate.number == 1 else expected + 1
                removed += 1
                rest = candidate.rest.strip()
                candidate = _parse_candidate(rest)
            if rest:
                result.append(rest)

        if removed:
            logger.debug("Números de línea eliminados: %d", removed)
        return "\n".join(result)

    def protecting_guard(self, candidate: LineNumberCandidate, expected: int) -> str | None:
        """Nombre de la primera regla que protege la línea, o None si es removible."""
        for guard in self._guards:
            if guard.protects(candidate, expected):
                return guard.name
        return None

    # ------------------------------------------------------------------
    # Pasada 2: ruido de página
    # ------------------------------------------------------------------

    @staticmethod
    def remove_noise_lines(text: str) -> str:
        lines = text.split("\n")
        if len(lines) < 3:
            return text

        kept = [lines[0]]
        for line in lines[1:-1]:
            match = _PAGE_NOISE_RE.match(line)
            if match and not _is_bare_year(line, match):
                continue
            kept.append(line)
        kept.append(lines[-1])
        return "\n".join(kept)

    # ------------------------------------------------------------------
    # Pasadas 3 y 4: guiones y líneas partidas
    # ------------------------------------------------------------------

    @staticmethod
    def fix_hyphenation(text: str) -> str:
        return _HYPHENATION_RE.sub(r"\1\2", text)

    @staticmethod
    def merge_wrapped_lines(text: str) -> str:
        protected = _PARAGRAPH_RE.sub(_PARAGRAPH_PLACEHOLDER, text)
        merged    = _WRAPPED_LINE_RE.sub(" ", protected)
        return merged.replace(_PARAGRAPH_PLACEHOLDER, "\n\n")


def restore_layout(text: str) -> str:
    """Shortcut: LayoutRestorer().restore(text)"""
    return LayoutRestorer().restore(text)


def _parse_candidate(line: str) -> LineNumberCandidate | None:
    match = _LINE_NUMBER_RE.match(line)
    if not match:
        return None
    return LineNumberCandidate(
        number=int(match.group(1)),
        separator=match.group(2) or "",
        rest=match.group(3) or "",
    )


def _is_bare_year(line: str, match: re.Match) -> bool:
    """Un año solo en su línea no es un número de página; "Page 1996" sí."""
    bare = line.strip().isdigit()
    return bare and 1900 <= int(match.group(1)) <= 2099
