# structocr/orchestrator.py
import logging
import re
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Sequence

from structocr.autorun import AutoRunner
from structocr.config import PipelineConfig
from structocr.pipeline_state import (
    NoChunksError,
    PipelineBusyError,
    PipelineState,
    Stage,
    begin_run,
    cancel_run,
    clear_auto_run,
    fail_run,
    finish_run,
    replace_chunks,
    request_auto_run,
    set_audit_report,
    set_language,
    set_progress,
    update_chunk,
)
from structocr.processor.chunker.delimited import apply_delimited_edit, render_clean
from structocr.processor.chunker.models import ChunkConfig
from structocr.processor.chunker.splitter import ChunkSplitter
from structocr.processor.language_detector import UNKNOWN, detect_language
from structocr.processor.layout_restorer import LayoutRestorer
from structocr.processor.models import (
    BACKFILL_PLACEHOLDER,
    Chunk,
    ChunkStatus,
    Milestone,
    field_for_milestone,
    is_placeholder,
)
from structocr.processor.parsers.factory import ParserFactory
from structocr.router.prompt_builder import (
    build_audit_prompt,
    build_clean_prompt,
    build_macro_prompt,
    build_micro_prompt,
    build_patch_prompt,
    build_repair_prompt,
)
from structocr.router.router import AllModelsExhaustedError, Router
from structocr.router.translator import Translator

logger = logging.getLogger(__name__)

# Caracteres de la vista limpia que se envían a la auditoría
AUDIT_MAX_CHARS = 50_000

_HEADLINE_TAG_RE = re.compile(r"\{\{level(\d+)\}\}")


class CancellationToken:
    """Cancelación cooperativa: se comprueba entre chunks, nunca a mitad de llamada."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class TransformKind(Enum):
    CLEAN = "clean"
    MACRO = "macro"
    MICRO = "micro"
    PATCH = "patch"


@dataclass(frozen=True)
class StageDescriptor:
    stage:            Stage
    label:            str
    input_milestone:  Milestone
    output_milestone: Milestone
    kind:             TransformKind
    halts_on_failure: bool = False   # un fallo pasa la ejecución a ERROR

    @property
    def input_field(self) -> str:
        return field_for_milestone(self.input_milestone)

    @property
    def output_field(self) -> str:
        return field_for_milestone(self.output_milestone)


# Etapa de chunks por hito producido. Patch es la única que se detiene ante
# un fallo: una jerarquía rota no debe propagarse a los chunks siguientes.
STAGES: dict[Milestone, StageDescriptor] = {
    Milestone.CLEAN: StageDescriptor(
        Stage.CLEANING, "Limpieza", Milestone.RAW, Milestone.CLEAN, TransformKind.CLEAN,
    ),
    Milestone.MACRO: StageDescriptor(
        Stage.STRUCTURING_MACRO, "Macro", Milestone.CLEAN, Milestone.MACRO, TransformKind.MACRO,
    ),
    Milestone.MICRO: StageDescriptor(
        Stage.STRUCTURING_MICRO, "Micro", Milestone.MACRO, Milestone.MICRO, TransformKind.MICRO,
    ),
    Milestone.FINAL: StageDescriptor(
        Stage.PATCHING, "Patch", Milestone.MICRO, Milestone.FINAL, TransformKind.PATCH,
        halts_on_failure=True,
    ),
}


# ------------------------------------------------------------------
# Resultado de una ejecución, lo que el CLI consume
# ------------------------------------------------------------------

@dataclass
class StageRunResult:
    stage:     Stage
    total:     int = 0
    completed: int = 0
    failed:    int = 0
    skipped:   int = 0
    cancelled: bool = False
    error:     Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.cancelled and self.error is None


@dataclass
class _FileContext:
    """Contexto entre chunks del mismo archivo. Vive solo durante una etapa."""
    file_name:  Optional[str] = None
    prev_context: str = ""
    skip_annex: bool = False
    last_level: Optional[int] = None   # None → inicio de documento (solo Patch)


class Orchestrator:
    """
    Dirige el pipeline Extract → Clean → Macro → Micro → Patch.
    No tiene lógica de negocio propia — coordina módulos.

    Responsabilidades:
    - Ser el único dueño del PipelineState (lo reemplaza vía transiciones)
    - Recorrer los chunks en orden de id, propagando el contexto entre ellos
    - Aplicar la política de fallos por etapa
    - Persistir el estado tras cada cambio de chunk, si hay repositorio
    """

    def __init__(
        self,
        router:         Router,
        parser_factory: Optional[ParserFactory] = None,
        splitter:       Optional[ChunkSplitter] = None,
        restorer:       Optional[LayoutRestorer] = None,
        translator:     Optional[Translator] = None,
        repo=None,
        session:        str = "default",
        config:         Optional[PipelineConfig] = None,
        on_change:      Optional[Callable[[PipelineState], None]] = None,
        sleep:          Callable[[float], None] = time.sleep,
    ):
        self._config         = config or PipelineConfig()
        self._router         = router
        self._parser_factory = parser_factory or ParserFactory()
        self._splitter       = splitter or ChunkSplitter(
            ChunkConfig(target_size=self._config.target_chunk_size)
        )
        self._restorer       = restorer or LayoutRestorer()
        self._translator     = translator or Translator(router, model=self._config.model)
        self._repo           = repo
        self._session        = session
        self._on_change      = on_change
        self._sleep          = sleep
        self._files: list[str] = []
        self._annex_re       = _compile_annex_pattern(self._config.annex_markers)
        self._state          = self._load_initial_state()

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def files(self) -> list[str]:
        return list(self._files)

    @property
    def config(self) -> PipelineConfig:
        return self._config

    # ------------------------------------------------------------------
    # Carga de archivos / reset
    # ------------------------------------------------------------------

    def load_files(self, files: Sequence[str]) -> None:
        """Una subida nueva descarta todos los chunks de la sesión."""
        self._assert_idle()
        self._files = [str(f) for f in files]
        self._set_state(replace(
            replace_chunks(self._state, []),
            stage=Stage.IDLE, progress=0, error=None,
        ))

    def reset(self) -> None:
        self._assert_idle()
        self._files = []
        self._set_state(PipelineState(language=self._config.language))

    def set_language(self, language: str) -> None:
        self._set_state(set_language(self._state, language))

    # ------------------------------------------------------------------
    # Paso 1: extracción
    # ------------------------------------------------------------------

    def run_extraction(
        self,
        files: Optional[Sequence[str]] = None,
        token: Optional[CancellationToken] = None,
    ) -> StageRunResult:
        if files is not None:
            self.load_files(files)
        if not self._files:
            raise ValueError("No hay archivos que extraer")

        token  = token or CancellationToken()
        result = StageRunResult(stage=Stage.EXTRACTING)
        self._set_state(replace_chunks(begin_run(self._state, Stage.EXTRACTING), []))

        all_chunks: list[Chunk] = []
        total_files = len(self._files)

        try:
            for i, path in enumerate(self._files):
                if token.cancelled:
                    return self._cancelled(result)

                doc = self._parser_factory.parse(path)
                new_chunks = self._splitter.split(
                    doc.text,
                    target_size = self._config.target_chunk_size,
                    file_name   = doc.file_name,
                    start_id    = len(all_chunks),
                )
                all_chunks.extend(new_chunks)
                self._log(f"{doc.file_name}: {len(new_chunks)} chunks")

                state = replace_chunks(self._state, all_chunks)
                if i == 0 and state.language == "auto":
                    detected = detect_language(doc.text)
                    if detected != UNKNOWN:
                        self._log(f"Idioma detectado: {detected}")
                        state = set_language(state, detected)
                self._set_state(set_progress(state, int((i + 1) / total_files * 100)))

        except KeyboardInterrupt:
            self._set_state(cancel_run(self._state))
            raise

        except Exception as e:
            logger.error("Extracción fallida: %s", e)
            return self._failed(result, f"Extracción fallida: {e}")

        result.total = result.completed = len(all_chunks)
        self._set_state(finish_run(self._state))
        self._log(f"Extracción completada: {len(all_chunks)} chunks de {total_files} archivos")
        return result

    # ------------------------------------------------------------------
    # Pasos 2-5: etapas por chunk
    # ------------------------------------------------------------------

    def run_stage(
        self,
        milestone: Milestone,
        token:     Optional[CancellationToken] = None,
    ) -> StageRunResult:
        """
        Recorre todos los chunks en orden de id aplicando la etapa que
        produce `milestone` (CLEAN, MACRO, MICRO o FINAL).
        """
        if milestone not in STAGES:
            raise ValueError(f"{milestone.name} no es una etapa por chunks")
        descriptor = STAGES[milestone]
        self._assert_has_chunks()

        token  = token or CancellationToken()
        self._set_state(begin_run(self._state, descriptor.stage))

        ordered = sorted(self._state.chunks, key=lambda c: c.id)
        result  = StageRunResult(stage=descriptor.stage, total=len(ordered))
        ctx     = _FileContext()
        self._log(f"{descriptor.label}: {len(ordered)} chunks")

        try:
            for position, chunk in enumerate(ordered, start=1):
                if token.cancelled:
                    return self._cancelled(result)

                # ── Frontera de archivo: el contexto no cruza documentos ──
                if chunk.file_name != ctx.file_name:
                    ctx = _FileContext(file_name=chunk.file_name)

                if ctx.skip_annex:
                    self._update_chunk(replace(
                        chunk, status=ChunkStatus.SKIPPED, **{descriptor.output_field: ""}
                    ))
                    result.skipped += 1
                    self._report_progress(position, len(ordered))
                    continue

                chunk = replace(chunk, status=ChunkStatus.PROCESSING)
                self._update_chunk(chunk)

                source = getattr(chunk, descriptor.input_field) or chunk.raw_text
                if not source.strip() or is_placeholder(source):
                    self._update_chunk(replace(chunk, status=ChunkStatus.SKIPPED))
                    result.skipped += 1
                    self._report_progress(position, len(ordered))
                    continue

                try:
                    output, model_used = self._transform(descriptor, source, ctx)

                except AllModelsExhaustedError as e:
                    # Sin quota el resto fallaría igual: se pausa y el chunk queda PENDING
                    logger.error("Todos los modelos agotados: %s", e)
                    self._update_chunk(replace(chunk, status=ChunkStatus.PENDING))
                    return self._failed(
                        result,
                        f"Sin modelos disponibles en chunk {chunk.id}. {e}",
                    )

                except Exception as e:
                    logger.warning("Error en chunk %d (%s): %s", chunk.id, descriptor.label, e)
                    self._update_chunk(replace(chunk, status=ChunkStatus.FAILED))
                    result.failed += 1

                    if descriptor.halts_on_failure:
                        return self._failed(
                            result,
                            f"{descriptor.label} detenido en chunk {chunk.id}: "
                            f"{type(e).__name__}: {e}",
                        )

                    print(
                        f"[structocr] ⚠ Chunk {position}/{len(ordered)} fallido"
                        f" ({type(e).__name__}) — continuando"
                    )
                    self._report_progress(position, len(ordered))
                    continue

                updates = {descriptor.output_field: output, "status": ChunkStatus.COMPLETED}
                ctx.prev_context = output[-self._config.context_chars:]

                if (
                    descriptor.kind == TransformKind.MACRO
                    and not self._config.include_annexes
                    and self._annex_re.search(output)
                ):
                    ctx.skip_annex = True
                    self._log(f"Anexo detectado en {chunk.file_name} (chunk {chunk.id}): se omite el resto")

                if descriptor.kind == TransformKind.PATCH:
                    level = last_headline_level(output)
                    if level is not None:
                        ctx.last_level = level
                    updates["last_headline_level"] = ctx.last_level

                self._update_chunk(replace(chunk, **updates))
                result.completed += 1
                self._report_progress(position, len(ordered), model_used)

        except KeyboardInterrupt:
            self._set_state(cancel_run(self._state))
            raise

        self._set_state(finish_run(self._state))
        self._log(
            f"{descriptor.label} completado: {result.completed} ok, "
            f"{result.failed} fallidos, {result.skipped} omitidos"
        )
        return result

    def _transform(
        self,
        descriptor: StageDescriptor,
        source:     str,
        ctx:        _FileContext,
    ) -> tuple[str, str]:
        """Devuelve (texto transformado, modelo usado)."""
        language = self._state.language

        if descriptor.kind == TransformKind.CLEAN:
            if self._config.cleaning_mode == "deterministic":
                return self._restorer.restore(source), "deterministic"
            instruction = build_clean_prompt(language)
        elif descriptor.kind == TransformKind.MACRO:
            instruction = build_macro_prompt(is_start=ctx.prev_context == "", language=language)
        elif descriptor.kind == TransformKind.MICRO:
            instruction = build_micro_prompt(ctx.prev_context, language)
        else:
            instruction = build_patch_prompt(ctx.prev_context, ctx.last_level)

        response = self._router.transform(source, instruction, model=self._config.model)
        return response.text, response.model_used

    # ------------------------------------------------------------------
    # Pasadas auxiliares: reparación, traducción, auditoría
    # ------------------------------------------------------------------

    def run_repair(
        self,
        milestone: Milestone,
        token:     Optional[CancellationToken] = None,
    ) -> StageRunResult:
        """Reescribe el campo del hito con el prompt de reparación. Sobrescribe ese campo."""
        instruction = build_repair_prompt(milestone)

        def repair(chunk: Chunk, text: str) -> Chunk:
            response = self._router.transform(text, instruction, model=self._config.model)
            return replace(chunk, **{field_for_milestone(milestone): response.text})

        return self._run_side_pass(Stage.REPAIRING, "Reparación", milestone, repair, token)

    def run_translation(
        self,
        milestone: Milestone,
        token:     Optional[CancellationToken] = None,
    ) -> StageRunResult:
        """Rellena translated_text. Un fallo deja intacto el texto del chunk."""

        def translate(chunk: Chunk, text: str) -> Chunk:
            return replace(chunk, translated_text=self._translator.translate(text))

        return self._run_side_pass(Stage.TRANSLATING, "Traducción", milestone, translate, token)

    def run_audit(self, milestone: Milestone) -> Optional[str]:
        """
        Informe de calidad sobre la vista limpia del hito (primeros 50 000
        caracteres). Un fallo deja la etapa en IDLE con el mensaje de error.
        """
        self._assert_has_chunks()
        self._set_state(begin_run(self._state, Stage.AUDITING))

        text = render_clean(sorted(self._state.chunks, key=lambda c: c.id), milestone)
        text = text[:AUDIT_MAX_CHARS]

        try:
            response = self._router.transform(
                text, build_audit_prompt(milestone), model=self._config.model
            )
        except KeyboardInterrupt:
            self._set_state(cancel_run(self._state))
            raise
        except Exception as e:
            logger.warning("Auditoría fallida: %s", e)
            self._set_state(replace(self._state, stage=Stage.IDLE, error=f"Auditoría fallida: {e}"))
            return None

        self._set_state(finish_run(set_audit_report(self._state, response.text)))
        self._log(f"Auditoría completada con {response.model_used}")
        return response.text

    def _run_side_pass(
        self,
        stage:     Stage,
        label:     str,
        milestone: Milestone,
        apply:     Callable[[Chunk, str], Chunk],
        token:     Optional[CancellationToken],
    ) -> StageRunResult:
        if milestone == Milestone.RAW:
            raise ValueError("El texto bruto no admite esta operación")
        self._assert_has_chunks()

        token  = token or CancellationToken()
        self._set_state(begin_run(self._state, stage))
        ordered = sorted(self._state.chunks, key=lambda c: c.id)
        result  = StageRunResult(stage=stage, total=len(ordered))

        try:
            for position, chunk in enumerate(ordered, start=1):
                if token.cancelled:
                    return self._cancelled(result)

                text = chunk.text_for(milestone)
                if not text.strip() or is_placeholder(text):
                    self._update_chunk(replace(chunk, status=ChunkStatus.SKIPPED))
                    result.skipped += 1
                    continue

                chunk = replace(chunk, status=ChunkStatus.PROCESSING)
                self._update_chunk(chunk)

                try:
                    done = apply(chunk, text)
                except AllModelsExhaustedError as e:
                    logger.error("Todos los modelos agotados: %s", e)
                    self._update_chunk(replace(chunk, status=ChunkStatus.PENDING))
                    return self._failed(result, f"Sin modelos disponibles en chunk {chunk.id}. {e}")
                except Exception as e:
                    logger.warning("Error en chunk %d (%s): %s", chunk.id, label, e)
                    self._update_chunk(replace(chunk, status=ChunkStatus.FAILED))
                    result.failed += 1
                    continue

                self._update_chunk(replace(done, status=ChunkStatus.COMPLETED))
                result.completed += 1
                self._report_progress(position, len(ordered))

        except KeyboardInterrupt:
            self._set_state(cancel_run(self._state))
            raise

        self._set_state(finish_run(self._state))
        self._log(f"{label} completada: {result.completed} ok, {result.failed} fallidos")
        return result

    # ------------------------------------------------------------------
    # Importación y edición
    # ------------------------------------------------------------------

    def import_document(
        self,
        text:        str,
        target:      Milestone,
        file_name:   str = "imported.txt",
    ) -> list[Chunk]:
        """
        Importa texto como entrada de la etapa que produce `target`.
        Descarta los chunks actuales. Los campos anteriores a la entrada se
        rellenan con el marcador de importación directa; los posteriores quedan vacíos.
        """
        if target not in STAGES:
            raise ValueError(f"No se puede importar hacia {target.name}")
        self._assert_idle()

        if "--- CHUNK" in text:
            parsed = self._splitter.parse_from_delimited_text(text, file_name)
        else:
            parsed = self._splitter.split(
                text, self._config.target_chunk_size, file_name, start_id=0
            )

        input_milestone = STAGES[target].input_milestone
        imported = []
        for chunk in parsed:
            fields = {}
            for milestone in Milestone:
                if milestone < input_milestone:
                    fields[field_for_milestone(milestone)] = BACKFILL_PLACEHOLDER
                elif milestone == input_milestone:
                    fields[field_for_milestone(milestone)] = chunk.raw_text
                else:
                    fields[field_for_milestone(milestone)] = ""
            imported.append(replace(
                chunk, status=ChunkStatus.PENDING, translated_text=None,
                last_headline_level=None, **fields,
            ))

        self._files = []
        self._set_state(replace(
            replace_chunks(self._state, imported),
            stage=Stage.IDLE, progress=0, error=None,
        ))
        self._log(f"Importados {len(imported)} chunks como entrada de {STAGES[target].label}")
        return imported

    def apply_edit(self, edited_text: str, milestone: Milestone) -> int:
        """Aplica una edición en formato delimitado. Devuelve los chunks modificados."""
        self._assert_idle()
        before = {c.id: c for c in self._state.chunks}
        edited = apply_delimited_edit(list(self._state.chunks), edited_text, milestone)
        changed = sum(1 for c in edited if c != before[c.id])
        self._set_state(replace(self._state, chunks=tuple(edited)))
        return changed

    # ------------------------------------------------------------------
    # Auto-run
    # ------------------------------------------------------------------

    def run_to(
        self,
        target: Milestone,
        files:  Optional[Sequence[str]] = None,
        token:  Optional[CancellationToken] = None,
    ) -> list[StageRunResult]:
        """
        Avanza etapa a etapa hasta satisfacer `target`. Se detiene ante un
        error o una cancelación. auto_run_target siempre queda limpio al salir.
        """
        if files:
            self.load_files(files)
        self._assert_idle()

        token   = token or CancellationToken()
        runner  = AutoRunner()
        results: list[StageRunResult] = []

        state = self._state
        if state.stage == Stage.ERROR:
            # Reintento tras un fallo o quota agotada: se retoma desde el primer hito pendiente
            self._log(f"Reanudando tras error: {state.error}")
            state = replace(state, stage=Stage.IDLE, error=None)
        self._set_state(request_auto_run(state, target))

        try:
            while not token.cancelled:
                action = runner.next_action(self._state, has_files=bool(self._files))
                if action is None:
                    self._log(f"Auto-run detenido: {runner.stop_reason}")
                    break

                self._sleep(self._config.settle_seconds)
                if action == Milestone.RAW:
                    result = self.run_extraction(token=token)
                else:
                    result = self.run_stage(action, token)
                results.append(result)

                if not result.ok:
                    break
        finally:
            self._set_state(clear_auto_run(self._state))

        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_initial_state(self) -> PipelineState:
        if self._repo is None:
            return PipelineState(language=self._config.language)

        stored = self._repo.load_state(self._session)
        if stored is None:
            return PipelineState(language=self._config.language)

        if stored.stage not in (Stage.IDLE, Stage.ERROR):
            # El proceso anterior murió a mitad de etapa
            logger.warning("Sesión '%s' estaba en %s; se reanuda", self._session, stored.stage.value)
            stored = cancel_run(stored)
        return clear_auto_run(stored)

    def _set_state(self, state: PipelineState) -> None:
        """Guarda el estado completo. Para cambios de un chunk usar _update_chunk."""
        self._state = state
        if self._repo is not None:
            self._repo.save_state(self._session, state)
        self._notify()

    def _update_chunk(self, chunk: Chunk) -> None:
        self._state = update_chunk(self._state, chunk)
        if self._repo is not None:
            self._repo.save_chunk(self._session, chunk)
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self._state)

    def _report_progress(self, position: int, total: int, model_used: Optional[str] = None) -> None:
        percent = int(position / total * 100)
        self._state = set_progress(self._state, percent)
        if self._repo is not None:
            self._repo.save_session(self._session, self._state)
        self._notify()
        label = self._state.stage.value.lower()
        suffix = f" — modelo: {model_used}" if model_used else ""
        print(f"[structocr] {label}... {position}/{total} ({percent}%){suffix}")

    def _cancelled(self, result: StageRunResult) -> StageRunResult:
        self._set_state(cancel_run(self._state))
        self._log("Ejecución cancelada. El progreso se conserva.")
        result.cancelled = True
        return result

    def _failed(self, result: StageRunResult, message: str) -> StageRunResult:
        self._set_state(fail_run(self._state, message))
        self._log(f"⚠ {message}")
        result.error = message
        return result

    def _assert_idle(self) -> None:
        if self._state.is_running:
            raise PipelineBusyError(
                f"Ya hay una ejecución en curso ({self._state.stage.value})."
            )

    def _assert_has_chunks(self) -> None:
        if not self._state.chunks:
            raise NoChunksError("No hay chunks. Ejecuta primero la extracción o importa un documento.")

    @staticmethod
    def _log(message: str) -> None:
        print(f"[structocr] {message}")


# ------------------------------------------------------------------
# Funciones de módulo
# ------------------------------------------------------------------

def last_headline_level(text: str) -> Optional[int]:
    """Profundidad de la última etiqueta {{levelN}} del texto, o None si no hay."""
    matches = _HEADLINE_TAG_RE.findall(text)
    return int(matches[-1]) if matches else None


def _compile_annex_pattern(markers: Sequence[str]) -> re.Pattern:
    if not markers:
        return re.compile(r"(?!)")
    words = "|".join(re.escape(m) for m in markers)
    return re.compile(rf"\{{\{{level\d+\}}\}}\s*({words})", re.IGNORECASE)
