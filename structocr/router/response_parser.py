# router/response_parser.py
import logging
import re

logger = logging.getLogger(__name__)

# Respuesta completa envuelta en ``` ... ``` (con o sin etiqueta de lenguaje)
_FENCED_RE = re.compile(
    r"\A\s*```[a-zA-Z]*[ \t]*\n(.*?)\n?```\s*\Z",
    re.DOTALL,
)


def clean_model_output(raw_text: str, model_name: str) -> str:
    """
    Normaliza la respuesta del modelo a texto plano.

    Los modelos a veces envuelven todo el documento en un bloque markdown
    aunque el prompt lo prohíba. Solo se retira el bloque si envuelve la
    respuesta entera: los ``` internos son contenido.

    Nunca lanza excepción.
    """
    text = (raw_text or "").strip()

    match = _FENCED_RE.match(text)
    if match:
        logger.warning(
            "%s envolvió la respuesta en markdown — considera reforzar el prompt",
            model_name,
        )
        return match.group(1).strip()

    if not text:
        logger.warning("%s devolvió una respuesta vacía", model_name)
    return text
