# structocr/factory.py
from typing import Callable, Optional

from structocr.config import PipelineConfig, load_pipeline_config
from structocr.orchestrator import Orchestrator
from structocr.pipeline_state import PipelineState
from structocr.processor.chunker.models import ChunkConfig
from structocr.processor.chunker.splitter import ChunkSplitter
from structocr.processor.layout_restorer import LayoutRestorer
from structocr.processor.parsers.factory import ParserFactory
from structocr.router.claude import ClaudeAdapter
from structocr.router.config_loader import load_model_configs
from structocr.router.gemini import GeminiAdapter
from structocr.router.router import Router
from structocr.router.translator import Translator
from structocr.storage.repository import Repository

_ADAPTERS = {
    "claude": ClaudeAdapter,
    "gemini": GeminiAdapter,
}


def build_orchestrator(
    db_path:        Optional[str] = None,
    config_path:    Optional[str] = None,
    session:        str = "default",
    config:         Optional[PipelineConfig] = None,
    on_change:      Optional[Callable[[PipelineState], None]] = None,
    require_models: bool = True,
) -> Orchestrator:
    """
    Ensambla el Orchestrator con todas sus dependencias.
    Punto de entrada único para el CLI y los tests de integración.

    config: si se pasa, reemplaza la sección `pipeline:` del YAML
    (el CLI la usa para aplicar --chunk-size, --mode, etc.).
    require_models=False permite etapas deterministas (extracción, limpieza
    sin IA) sin config de modelos ni api_keys.
    """
    config = config or load_pipeline_config(config_path)
    repo   = Repository(db_path=db_path)
    router = Router(_build_models(repo, config_path, require_models))

    return Orchestrator(
        router         = router,
        parser_factory = ParserFactory(),
        splitter       = ChunkSplitter(ChunkConfig(target_size=config.target_chunk_size)),
        restorer       = LayoutRestorer(),
        translator     = Translator(router, model=config.model),
        repo           = repo,
        session        = session,
        config         = config,
        on_change      = on_change,
    )


def _build_models(repo: Repository, config_path: Optional[str], required: bool = True) -> list:
    """
    Carga el config y construye los adaptadores disponibles.
    Si un adaptador no tiene api_key configurada, lo omite con un aviso.
    """
    try:
        configs = load_model_configs(config_path)
    except FileNotFoundError:
        if required:
            raise
        return []

    models = []

    for config in configs:
        adapter_class = _ADAPTERS.get(config.provider or config.name)
        if not adapter_class:
            print(f"[structocr] ⚠ {config.name}: proveedor desconocido, omitiendo")
            continue
        if not config.api_key:
            print(f"[structocr] ⚠ {config.name}: sin api_key, omitiendo")
            continue
        models.append(adapter_class(config, repo))

    if not models and required:
        raise RuntimeError(
            "Ningún modelo configurado. "
            "Revisa ~/.structocr/config.yaml y tus variables de entorno."
        )

    return models
