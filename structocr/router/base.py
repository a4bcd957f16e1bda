# router/base.py
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from structocr.router.models import ModelConfig, ModelResponse

if TYPE_CHECKING:
    from structocr.storage.repository import Repository

# Segundos que un adaptador queda fuera de juego tras un error de red/quota
COOLDOWN_SECONDS = 300


class BaseModel(ABC):
    """
    Contrato que deben cumplir todos los adaptadores.
    El Orchestrator y el Router solo hablan con esta interfaz.
    Nunca importan claude.py ni gemini.py directamente.
    """

    @abstractmethod
    def transform(self, text: str, instruction: str) -> ModelResponse:
        """
        Envía el texto al modelo con la instrucción de la etapa como
        system prompt y devuelve el texto transformado.
        SÍ puede lanzar: TimeoutError, RateLimitError, APIError.
        El Router los captura y hace failover.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """
        Consulta quota del día en storage antes de hacer cualquier
        llamada de red. Si superó el límite → False sin latencia.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Identificador del modelo. Debe coincidir con quota_usage.model."""
        ...


class QuotaTrackedModel(BaseModel):
    """Cooldown tras errores retryables + quota diaria de tokens en storage."""

    def __init__(self, config: ModelConfig, repo: "Repository"):
        self._config = config
        self._repo   = repo

    @property
    def name(self) -> str:
        return self._config.name

    def is_available(self) -> bool:
        # Primero: ¿está en cooldown temporal por error de red?
        if self._config._unavailable_until is not None:
            if time.time() < self._config._unavailable_until:
                return False
            self._config._unavailable_until = None  # cooldown expirado

        # Segundo: ¿tiene quota disponible hoy?
        used = self._repo.get_token_usage_today(self.name)
        return used < self._config.daily_token_limit

    def _start_cooldown(self) -> None:
        self._config._unavailable_until = time.time() + COOLDOWN_SECONDS
