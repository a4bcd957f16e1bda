# router/claude.py
import logging

import anthropic

from structocr.router.base import QuotaTrackedModel
from structocr.router.models import ModelConfig, ModelResponse
from structocr.router.response_parser import clean_model_output

logger = logging.getLogger(__name__)

_DEFAULT_MODEL_ID   = "claude-haiku-4-5-20251001"
_DEFAULT_MAX_TOKENS = 16_000

# Errores que activan failover hacia otro modelo
_RETRYABLE_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)


class ClaudeAdapter(QuotaTrackedModel):

    def __init__(self, config: ModelConfig, repo):
        super().__init__(config, repo)
        self._client = anthropic.Anthropic(
            api_key = config.api_key,
            timeout = config.timeout_seconds,
        )

    def transform(self, text: str, instruction: str) -> ModelResponse:
        try:
            response = self._client.messages.create(
                model       = self._config.model_id or _DEFAULT_MODEL_ID,
                max_tokens  = self._config.max_output_tokens or _DEFAULT_MAX_TOKENS,
                temperature = self._config.temperature,
                system      = instruction,
                messages    = [{"role": "user", "content": text}],
            )
        except _RETRYABLE_ERRORS as e:
            logger.warning("Claude error retryable: %s", e)
            # Cooldown antes de intentar Claude de nuevo
            self._start_cooldown()
            raise   # El Router captura esto y hace failover

        except anthropic.BadRequestError as e:
            # El chunk en sí tiene problemas (ej: contenido bloqueado)
            # No es un error de disponibilidad, es un error de contenido
            logger.error("Claude BadRequest en chunk: %s", e)
            raise

        raw_text      = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        tokens_input  = response.usage.input_tokens
        tokens_output = response.usage.output_tokens

        # Reportar tokens reales al storage
        self._repo.add_token_usage(self.name, tokens_input + tokens_output)

        return ModelResponse(
            text          = clean_model_output(raw_text, self.name),
            model_used    = self.name,
            tokens_input  = tokens_input,
            tokens_output = tokens_output,
        )
