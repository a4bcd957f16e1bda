from structocr.router.router import Router, AllModelsExhaustedError
from structocr.router.base import BaseModel
from structocr.router.models import ModelResponse, ModelConfig
from structocr.router.translator import Translator
from structocr.router.config_loader import load_model_configs

__all__ = [
    "Router",
    "AllModelsExhaustedError",
    "BaseModel",
    "ModelResponse",
    "ModelConfig",
    "Translator",
    "load_model_configs",
]
