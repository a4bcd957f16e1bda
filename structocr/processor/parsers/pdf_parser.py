# structocr/processor/parsers/pdf_parser.py
import os
from structocr.processor.models import RawDocument
from .base import BaseParser

PAGE_START = "--- PAGE {n} START ---"
PAGE_END   = "--- PAGE {n} END ---"


class PdfParser(BaseParser):
    """
    Parser para archivos .pdf (extracción rápida de la capa de texto).

    Extrae el texto de cada página usando PyMuPDF (fitz) y lo envuelve
    en marcadores de página, que la etapa Clean se encarga de retirar:

        --- PAGE 1 START ---
        ...
        --- PAGE 1 END ---

    Requiere: pip install pymupdf
    """

    def can_handle(self, file_path: str) -> bool:
        return file_path.lower().endswith(".pdf")

    def parse(self, file_path: str) -> RawDocument:
        try:
            import fitz  # pymupdf
        except ImportError:
            raise ImportError(
                "El soporte PDF requiere pymupdf. Instálalo con: pip install pymupdf"
            )

        doc = fitz.open(file_path)
        try:
            pages = [page.get_text("text") for page in doc]
        finally:
            doc.close()

        return RawDocument(
            file_name   = os.path.basename(file_path),
            source_path = file_path,
            text        = format_pages(pages),
            page_count  = len(pages),
        )


def format_pages(pages: list[str]) -> str:
    """Une las páginas con sus marcadores, numeradas desde 1."""
    parts = [
        f"{PAGE_START.format(n=i)}\n{text.rstrip()}\n{PAGE_END.format(n=i)}"
        for i, text in enumerate(pages, start=1)
    ]
    return "\n\n".join(parts)
