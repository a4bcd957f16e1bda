import os
from structocr.processor.models import RawDocument
from .base import BaseParser

_SUPPORTED_EXTENSIONS = {'.txt', '.md'}


class TxtParser(BaseParser):
    """
    Parser para archivos .txt y .md.

    El texto plano no tiene páginas: se devuelve tal cual, sin marcadores
    de página. El troceado en chunks es responsabilidad del ChunkSplitter.
    """

    def can_handle(self, file_path: str) -> bool:
        _, ext = os.path.splitext(file_path)
        return ext.lower() in _SUPPORTED_EXTENSIONS

    def parse(self, file_path: str) -> RawDocument:
        return RawDocument(
            file_name=os.path.basename(file_path),
            source_path=file_path,
            text=self._read_file(file_path),
        )

    def _read_file(self, file_path: str) -> str:
        """Lee el archivo intentando UTF-8 primero, latin-1 como fallback."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return f.read()
        except UnicodeDecodeError:
            with open(file_path, 'r', encoding='latin-1') as f:
                return f.read()
