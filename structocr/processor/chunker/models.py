from dataclasses import dataclass


@dataclass
class ChunkConfig:
    """Configuración del splitter. Tamaños en caracteres, no en tokens."""
    target_size: int = 50_000

    # Separador de párrafos: línea en blanco (con o sin espacios)
    paragraph_pattern: str = r"\n\s*\n"
    # Separador al reunir párrafos dentro de un chunk
    joiner: str = "\n\n"


CHUNK_PRESETS: dict[str, int] = {
    "small":    12_000,
    "standard": 50_000,
    "large":    100_000,
}
