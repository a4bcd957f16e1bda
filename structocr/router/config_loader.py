# router/config_loader.py
import os
from pathlib import Path
from typing import Optional

import yaml

from structocr.router.models import ModelConfig

DEFAULT_CONFIG_PATH = Path.home() / ".structocr" / "config.yaml"


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    return Path(config_path or os.environ.get("STRUCTOCR_CONFIG_PATH") or DEFAULT_CONFIG_PATH)


def read_config(config_path: Optional[str] = None) -> dict:
    """Lee el YAML completo. Lanza FileNotFoundError si no existe."""
    path = resolve_config_path(config_path)

    if not path.exists():
        raise FileNotFoundError(
            f"Config no encontrada en {path}. "
            f"Copia config.example.yaml a ~/.structocr/config.yaml"
        )

    with path.open(encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_model_configs(config_path: Optional[str] = None) -> list[ModelConfig]:
    """
    Carga la configuración de modelos desde YAML.
    Resuelve variables de entorno en los api_key (${VAR}).
    Devuelve la lista ordenada por prioridad ascendente.
    """
    raw = read_config(config_path)

    configs = []
    for entry in raw.get("models", []):
        configs.append(ModelConfig(
            name              = entry["name"],
            priority          = entry.get("priority", 99),
            daily_token_limit = entry.get("daily_token_limit", 1_000_000),
            provider          = entry.get("provider"),
            model_id          = entry.get("model_id"),
            api_key           = _resolve_env(entry.get("api_key")),
            timeout_seconds   = entry.get("timeout_seconds", 600),
            temperature       = entry.get("temperature", 0.1),
            max_output_tokens = entry.get("max_output_tokens"),
        ))

    return sorted(configs, key=lambda c: c.priority)


def _resolve_env(value: Optional[str]) -> Optional[str]:
    """Expande ${VAR_NAME} desde el entorno."""
    if not value or not value.startswith("${"):
        return value
    var_name = value.strip("${}").strip()
    return os.environ.get(var_name)
