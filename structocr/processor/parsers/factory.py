import os
from structocr.processor.models import RawDocument
from .base import BaseParser
from .txt_parser import TxtParser
from .pdf_parser import PdfParser


class UnsupportedFormatError(Exception):
    """Se lanza cuando ningún parser registrado puede manejar el archivo."""
    pass


class ParserFactory:
    """
    Registro central de parsers (colaborador de extracción).

    Uso básico:
        doc = ParserFactory.parse_file("/ruta/al/contrato.pdf")

    Uso con parser registrado externamente:
        factory = ParserFactory()
        factory.register(MiParserOCR())
        doc = factory.parse("/ruta/al/escaneo.pdf")

    Los parsers se evalúan en orden de registro.
    El primero que responda True a can_handle() gana.
    """

    def __init__(self):
        self._parsers: list[BaseParser] = [
            PdfParser(),
            TxtParser(),   # va último porque .txt es el fallback más permisivo
        ]

    def register(self, parser: BaseParser) -> None:
        """Registra un parser adicional al inicio de la lista (mayor prioridad)."""
        self._parsers.insert(0, parser)

    def parse(self, file_path: str) -> RawDocument:
        """
        Detecta el parser correcto para el archivo y devuelve un RawDocument.

        Raises:
            FileNotFoundError: si el archivo no existe.
            UnsupportedFormatError: si ningún parser puede manejarlo.
        """
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"Archivo no encontrado: {file_path}")

        for parser in self._parsers:
            if parser.can_handle(file_path):
                return parser.parse(file_path)

        ext = os.path.splitext(file_path)[1].lower()
        raise UnsupportedFormatError(
            f"Formato '{ext}' no soportado. "
            f"Formatos disponibles: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    @classmethod
    def parse_file(cls, file_path: str) -> RawDocument:
        """Shortcut: ParserFactory.parse_file('contrato.pdf')"""
        return cls().parse(file_path)


SUPPORTED_EXTENSIONS: tuple[str, ...] = (".md", ".pdf", ".txt")
