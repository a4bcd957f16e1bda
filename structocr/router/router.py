# router/router.py
import logging

import anthropic
import google.api_core.exceptions as google_ex

from structocr.router.base import BaseModel
from structocr.router.models import ModelResponse

logger = logging.getLogger(__name__)


class AllModelsExhaustedError(Exception):
    """Se lanza cuando ningún modelo tiene quota disponible."""
    pass


class Router:
    """
    Colaborador de transformación de texto: decide qué modelo usar en cada llamada.
    El Orchestrator llama a Router.transform() — nunca a un adaptador directamente.

    Responsabilidades:
    - Seleccionar el modelo disponible de mayor prioridad
      (o el pedido explícitamente, si está disponible)
    - Hacer failover si el modelo falla por error de red o rate limit
    - Propagar errores de contenido (no son de disponibilidad)

    Para el Orchestrator cada llamada es un único intento lógico:
    el failover queda oculto aquí.
    """

    def __init__(self, models: list[BaseModel]):
        # La lista ya viene ordenada por prioridad desde el config.
        # Vacía es válida para etapas deterministas: transform() lanzará AllModelsExhaustedError
        if not models:
            logger.debug("Router sin modelos configurados")
        self._models = models

    def transform(
        self,
        text:        str,
        instruction: str,
        model:       str | None = None,
    ) -> ModelResponse:
        """
        Transforma el texto con el mejor modelo disponible.
        Si falla por rate limit o red, hace failover automático.
        Lanza AllModelsExhaustedError si ninguno está disponible.
        """
        last_error: Exception | None = None

        for candidate in self._ordered(model):
            if not candidate.is_available():
                logger.info("Modelo %s no disponible (quota), saltando", candidate.name)
                continue

            try:
                logger.debug("Intentando transformación con %s", candidate.name)
                response = candidate.transform(text, instruction)
                logger.info(
                    "Chunk transformado con %s | tokens: %d+%d",
                    candidate.name,
                    response.tokens_input,
                    response.tokens_output,
                )
                return response

            except Exception as e:
                # Distinguimos entre errores retryables (red, quota)
                # y errores de contenido (el chunk tiene un problema)
                if _is_content_error(e):
                    logger.error(
                        "Error de contenido en %s — no se hace failover: %s",
                        candidate.name, e,
                    )
                    raise

                logger.warning(
                    "Modelo %s falló con error retryable: %s. Pasando al siguiente.",
                    candidate.name, e,
                )
                last_error = e
                continue

        raise AllModelsExhaustedError(
            f"Ningún modelo disponible. Último error: {last_error}"
        )

    def available_models(self) -> list[str]:
        """Útil para logging y para el CLI."""
        return [m.name for m in self._models if m.is_available()]

    def _ordered(self, preferred: str | None) -> list[BaseModel]:
        """El modelo pedido va primero; el resto conserva su prioridad."""
        if not preferred:
            return list(self._models)
        first = [m for m in self._models if m.name == preferred]
        if not first:
            logger.warning("Modelo '%s' no configurado, se usa la prioridad por defecto", preferred)
        return first + [m for m in self._models if m.name != preferred]


def _is_content_error(e: Exception) -> bool:
    """
    Determina si el error es del contenido del chunk (no de disponibilidad).
    Estos errores no activan failover — son el mismo error en cualquier modelo.
    """
    content_errors = (
        anthropic.BadRequestError,
        google_ex.InvalidArgument,
        ValueError,
    )
    return isinstance(e, content_errors)
