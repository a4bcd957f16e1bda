from abc import ABC, abstractmethod
from structocr.processor.models import RawDocument


class BaseParser(ABC):
    @abstractmethod
    def can_handle(self, file_path: str) -> bool:
        """Devuelve True si el parser puede manejar el archivo"""
        raise NotImplementedError

    @abstractmethod
    def parse(self, file_path: str) -> RawDocument:
        """Extrae el texto del archivo y devuelve un RawDocument"""
        raise NotImplementedError
