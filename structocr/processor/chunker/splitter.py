# chunker/splitter.py
import re

from .models import ChunkConfig
from ..models import Chunk, ChunkStatus, Milestone, field_for_milestone

# Marcadores del formato delimitado (ver delimited.py)
_MARKER_RE = re.compile(
    r"^(?:<<<< FILE_START: (?P<file>.*?) >>>>|--- CHUNK (?P<id>\d+) ---)[ \t]*$",
    re.MULTILINE,
)


class ChunkSplitter:
    """
    Responsabilidad unica: partir el texto de un documento en chunks
    alineados a párrafos, y reconstruir chunks desde el formato delimitado.

    Nunca corta un parrafo por dentro. Un parrafo mas grande que
    target_size forma su propio chunk (sobredimensionado): se prefiere
    exactitud sobre compacidad.
    """

    def __init__(self, config: ChunkConfig | None = None):
        self._config = config or ChunkConfig()
        self._paragraph_re = re.compile(self._config.paragraph_pattern)

    @property
    def target_size(self) -> int:
        return self._config.target_size

    def split(
        self,
        text: str,
        target_size: int | None = None,
        file_name: str = "document.txt",
        start_id: int = 0,
    ) -> list[Chunk]:
        size = self._config.target_size if target_size is None else target_size
        if size < 1:
            raise ValueError(f"target_size debe ser >= 1 (recibido: {size})")

        paragraphs = [p.strip() for p in self._paragraph_re.split(text or "")]
        joiner = self._config.joiner

        chunks: list[Chunk] = []
        current_parts: list[str] = []
        # Longitud del buffer contando el separador que sigue a cada parrafo
        current_size = 0
        chunk_id = start_id

        for para in paragraphs:
            if not para:
                continue

            if current_size + len(para) > size and current_parts:
                # Añadir este párrafo sobrepasaría el límite: cerrar chunk actual
                chunks.append(_new_chunk(chunk_id, file_name, joiner.join(current_parts)))
                chunk_id += 1
                current_parts = []
                current_size = 0

            current_parts.append(para)
            current_size += len(para) + len(joiner)

        if current_parts:
            chunks.append(_new_chunk(chunk_id, file_name, joiner.join(current_parts)))

        return chunks

    def parse_from_delimited_text(
        self,
        text: str,
        default_file_name: str = "imported.txt",
        field: str = "raw_text",
    ) -> list[Chunk]:
        """
        Inversa de render_delimited: cada bloque "--- CHUNK <id> ---"
        hasta el siguiente marcador (o fin de texto) es un chunk.
        Los marcadores FILE_START fijan el file_name de los bloques siguientes
        y nunca forman parte del contenido.

        Lanza ValueError si un id aparece dos veces.
        """
        chunks: list[Chunk] = []
        seen: set[int] = set()
        current_file = default_file_name
        markers = list(_MARKER_RE.finditer(text or ""))

        for i, match in enumerate(markers):
            if match.group("file") is not None:
                current_file = match.group("file").strip() or default_file_name
                continue

            chunk_id = int(match.group("id"))
            if chunk_id in seen:
                raise ValueError(f"Texto delimitado inválido: el chunk {chunk_id} está duplicado")
            seen.add(chunk_id)

            end = markers[i + 1].start() if i + 1 < len(markers) else len(text)
            content = text[match.end():end].strip()

            chunk = _new_chunk(chunk_id, current_file, "")
            setattr(chunk, field, content)
            chunks.append(chunk)

        # Los bloques pueden venir desordenados; el id declarado manda
        return sorted(chunks, key=lambda c: c.id)

    def parse_for_milestone(
        self,
        text: str,
        milestone: Milestone,
        default_file_name: str = "imported.txt",
    ) -> list[Chunk]:
        return self.parse_from_delimited_text(
            text, default_file_name, field=field_for_milestone(milestone)
        )


def _new_chunk(chunk_id: int, file_name: str, raw_text: str) -> Chunk:
    return Chunk(
        id=chunk_id,
        file_name=file_name,
        raw_text=raw_text,
        status=ChunkStatus.PENDING,
    )
