# storage/models.py
from dataclasses import dataclass
from typing import Optional


@dataclass
class StoredSession:
    """Resumen de una sesión guardada, sin sus chunks."""
    name:        str
    stage:       str
    language:    str
    progress:    int
    chunk_count: int
    updated_at:  str
    error:       Optional[str] = None
