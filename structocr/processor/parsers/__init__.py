from structocr.processor.parsers.factory import ParserFactory, UnsupportedFormatError, SUPPORTED_EXTENSIONS
from structocr.processor.parsers.base import BaseParser

__all__ = ["ParserFactory", "UnsupportedFormatError", "SUPPORTED_EXTENSIONS", "BaseParser"]
