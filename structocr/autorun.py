# structocr/autorun.py
import logging
from typing import Optional

from structocr.pipeline_state import PipelineState, Stage, has_milestone
from structocr.processor.models import Milestone

logger = logging.getLogger(__name__)


class AutoRunner:
    """
    Máquina de hitos hacia delante: RAW < CLEAN < MACRO < MICRO < FINAL.

    Se consulta cada vez que la etapa vuelve a IDLE. Devuelve el primer hito
    no satisfecho hasta el objetivo, o None si hay que parar. Nunca dispara
    dos veces el mismo hito: si una etapa corrió y no produjo nada, la
    ejecución se detiene en lugar de repetirse en bucle.
    """

    def __init__(self):
        self._triggered: set[Milestone] = set()
        self.stop_reason: Optional[str] = None

    def next_action(self, state: PipelineState, has_files: bool) -> Optional[Milestone]:
        target = state.auto_run_target
        if target is None:
            self.stop_reason = "sin objetivo"
            return None

        if state.stage != Stage.IDLE:
            self.stop_reason = f"etapa {state.stage.value}"
            return None

        for milestone in Milestone:
            if milestone > target:
                break
            if has_milestone(state, milestone):
                continue

            if milestone in self._triggered:
                self.stop_reason = f"{milestone.name} no produjo resultados"
                logger.warning("Auto-run detenido: %s", self.stop_reason)
                return None

            if milestone == Milestone.RAW and not has_files:
                self.stop_reason = "no hay archivos que extraer"
                return None

            self._triggered.add(milestone)
            return milestone

        self.stop_reason = f"objetivo {target.name} alcanzado"
        return None

    @property
    def triggered(self) -> frozenset[Milestone]:
        return frozenset(self._triggered)
