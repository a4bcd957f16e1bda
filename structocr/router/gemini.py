# router/gemini.py
import logging

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import HarmBlockThreshold, HarmCategory

from structocr.router.base import QuotaTrackedModel
from structocr.router.models import ModelConfig, ModelResponse
from structocr.router.response_parser import clean_model_output

logger = logging.getLogger(__name__)

_DEFAULT_MODEL_ID = "gemini-2.0-flash"

_RETRYABLE_ERRORS = (
    google_exceptions.ResourceExhausted,   # 429
    google_exceptions.DeadlineExceeded,    # timeout
    google_exceptions.ServiceUnavailable,
    google_exceptions.InternalServerError,
)

# Documentos legales/médicos disparan falsos positivos en los filtros
_SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HATE_SPEECH:       HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HARASSMENT:        HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}


class GeminiAdapter(QuotaTrackedModel):

    def __init__(self, config: ModelConfig, repo):
        super().__init__(config, repo)
        genai.configure(api_key=config.api_key)
        self._generation_config = genai.GenerationConfig(
            temperature       = config.temperature,
            max_output_tokens = config.max_output_tokens,   # None → límite del modelo
        )

    def transform(self, text: str, instruction: str) -> ModelResponse:
        # La instrucción cambia por etapa: un GenerativeModel por llamada
        model = genai.GenerativeModel(
            model_name         = self._config.model_id or _DEFAULT_MODEL_ID,
            system_instruction = instruction,
            generation_config  = self._generation_config,
            safety_settings    = _SAFETY_SETTINGS,
        )

        try:
            response = model.generate_content(
                text,
                request_options={"timeout": self._config.timeout_seconds},
            )
        except _RETRYABLE_ERRORS as e:
            logger.warning("Gemini error retryable: %s", e)
            self._start_cooldown()
            raise

        raw_text      = response.text or ""
        tokens_input  = response.usage_metadata.prompt_token_count
        tokens_output = response.usage_metadata.candidates_token_count

        self._repo.add_token_usage(self.name, tokens_input + tokens_output)

        return ModelResponse(
            text          = clean_model_output(raw_text, self.name),
            model_used    = self.name,
            tokens_input  = tokens_input,
            tokens_output = tokens_output,
        )
