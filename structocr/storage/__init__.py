from structocr.storage.repository import Repository
from structocr.storage.models import StoredSession

__all__ = ["Repository", "StoredSession"]
