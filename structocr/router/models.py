# router/models.py
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ModelResponse:
    text:          str
    model_used:    str
    tokens_input:  int
    tokens_output: int


@dataclass
class ModelConfig:
    """
    Configuración de un modelo individual.
    Se carga desde ~/.structocr/config.yaml.
    """
    name:              str
    priority:          int
    daily_token_limit: int
    provider:          Optional[str] = None   # "gemini" | "claude"; None → se usa name
    model_id:          Optional[str] = None   # None → el default del adaptador
    api_key:           Optional[str] = None
    timeout_seconds:   int = 600              # los modelos con razonamiento tardan
    temperature:       float = 0.1
    max_output_tokens: Optional[int] = None   # None → límite propio del modelo

    # Control de cooldown temporal (no viene del YAML, es runtime)
    _unavailable_until: Optional[float] = field(
        default=None, compare=False, repr=False
    )
