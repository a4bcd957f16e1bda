# structocr/cli.py
import dataclasses
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from structocr.config import load_pipeline_config, resolve_output_dir
from structocr.exporter import Exporter
from structocr.factory import build_orchestrator
from structocr.pipeline_state import NoChunksError, PipelineBusyError, count_by_status
from structocr.processor.chunker.models import CHUNK_PRESETS
from structocr.processor.language_detector import detect_language, score_languages
from structocr.processor.models import Milestone
from structocr.processor.parsers.factory import (
    SUPPORTED_EXTENSIONS,
    ParserFactory,
    UnsupportedFormatError,
)
from structocr.storage.repository import Repository


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()

# Nombre de hito en la línea de comandos → Milestone
_MILESTONES = {
    "raw":   Milestone.RAW,
    "clean": Milestone.CLEAN,
    "macro": Milestone.MACRO,
    "micro": Milestone.MICRO,
    "final": Milestone.FINAL,
}

# Etapa destino de una importación → hito que produce esa etapa
_IMPORT_TARGETS = {
    "clean": Milestone.CLEAN,
    "macro": Milestone.MACRO,
    "micro": Milestone.MICRO,
    "patch": Milestone.FINAL,
}

_PROCESSED_STAGES = ["clean", "macro", "micro", "final"]

_session_option = click.option(
    "--session", "-s",
    default      = "default",
    show_default = True,
    help         = "Nombre de la sesión guardada",
)

_config_option = click.option(
    "--config", "config_path",
    default = None,
    type    = click.Path(dir_okay=False),
    help    = "Ruta al config.yaml (por defecto ~/.structocr/config.yaml)",
)


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="structocr")
@click.option("--verbose", "-v", is_flag=True, help="Muestra los logs de depuración")
def main(verbose: bool):
    """
    structocr — estructuración semántica de documentos largos.

    Extrae, limpia y etiqueta documentos por etapas
    (Extract → Clean → Macro → Micro → Patch) con IA.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


# ------------------------------------------------------------------
# structocr extract
# ------------------------------------------------------------------

@main.command()
@click.argument("files", nargs=-1, required=True, type=click.Path())
@_session_option
@_config_option
@click.option(
    "--chunk-size",
    default      = None,
    type         = click.Choice(sorted(CHUNK_PRESETS), case_sensitive=False),
    help         = "Tamaño de los chunks: small (12k), standard (50k), large (100k caracteres)",
)
@click.option(
    "--lang",
    default = None,
    metavar = "LANG",
    help    = "Idioma del documento (ej: en, vi, pt). 'auto' para detectarlo.",
)
def extract(files, session, config_path, chunk_size, lang):
    """Extrae el texto de los archivos y lo parte en chunks."""

    # ── Validaciones de entrada ───────────────────────────────────
    for path in files:
        _validate_file(path)
    if lang is not None:
        _validate_lang(lang, "--lang")

    overrides = {}
    if chunk_size:
        overrides["target_chunk_size"] = CHUNK_PRESETS[chunk_size.lower()]
    if lang:
        overrides["language"] = lang.lower()

    orchestrator = _build(session, config_path, require_models=False, **overrides)
    if lang:
        orchestrator.set_language(lang.lower())

    result = _execute(lambda: orchestrator.run_extraction(files))
    _print_summary(result)
    _exit_on_run_error(result)


# ------------------------------------------------------------------
# structocr clean | macro | micro | patch
# ------------------------------------------------------------------

@main.command()
@_session_option
@_config_option
@click.option(
    "--mode",
    default = None,
    type    = click.Choice(["deterministic", "ai"], case_sensitive=False),
    help    = "deterministic: reglas sin IA (por defecto). ai: limpieza con modelo.",
)
def clean(session, config_path, mode):
    """Paso 2: restaura el layout (números de línea, guiones, líneas partidas)."""
    overrides = {"cleaning_mode": mode.lower()} if mode else {}
    _run_stage(Milestone.CLEAN, session, config_path, **overrides)


@main.command()
@_session_option
@_config_option
@click.option("--include-annexes", is_flag=True, help="No omitir anexos/apéndices")
def macro(session, config_path, include_annexes):
    """Paso 3: etiqueta titulares ({{levelN}}) y notas al pie."""
    overrides = {"include_annexes": True} if include_annexes else {}
    _run_stage(Milestone.MACRO, session, config_path, **overrides)


@main.command()
@_session_option
@_config_option
def micro(session, config_path):
    """Paso 4: envuelve el cuerpo en {{text_level}}."""
    _run_stage(Milestone.MICRO, session, config_path)


@main.command()
@_session_option
@_config_option
def patch(session, config_path):
    """Paso 5: corrige la jerarquía entre chunks. Se detiene ante el primer fallo."""
    _run_stage(Milestone.FINAL, session, config_path)


def _run_stage(milestone: Milestone, session: str, config_path, **overrides) -> None:
    deterministic = (
        milestone == Milestone.CLEAN
        and _effective_config(config_path, **overrides).cleaning_mode == "deterministic"
    )
    orchestrator = _build(session, config_path, require_models=not deterministic, **overrides)
    result = _execute(lambda: orchestrator.run_stage(milestone))
    _print_summary(result)
    _exit_on_run_error(result)


# ------------------------------------------------------------------
# structocr run --to
# ------------------------------------------------------------------

@main.command()
@click.argument("files", nargs=-1, type=click.Path())
@click.option(
    "--to", "target",
    required = True,
    type     = click.Choice(_PROCESSED_STAGES, case_sensitive=False),
    help     = "Último hito a alcanzar",
)
@_session_option
@_config_option
@click.option(
    "--mode",
    default = None,
    type    = click.Choice(["deterministic", "ai"], case_sensitive=False),
    help    = "Modo de limpieza",
)
def run(files, target, session, config_path, mode):
    """
    Ejecuta todas las etapas necesarias hasta --to.
    Con FILES empieza desde cero; sin FILES continúa la sesión guardada.
    """
    for path in files:
        _validate_file(path)

    milestone = _MILESTONES[target.lower()]
    overrides = {"cleaning_mode": mode.lower()} if mode else {}
    deterministic = (
        milestone == Milestone.CLEAN
        and _effective_config(config_path, **overrides).cleaning_mode == "deterministic"
    )
    orchestrator = _build(session, config_path, require_models=not deterministic, **overrides)

    results = _execute(lambda: orchestrator.run_to(milestone, files=list(files) or None))

    if not results:
        click.echo("[structocr] Nada que ejecutar.")
        return
    for result in results:
        _print_summary(result)
    _exit_on_run_error(results[-1])


# ------------------------------------------------------------------
# Pasadas auxiliares
# ------------------------------------------------------------------

@main.command()
@click.option("--stage", required=True, type=click.Choice(_PROCESSED_STAGES, case_sensitive=False))
@_session_option
@_config_option
def repair(stage, session, config_path):
    """Repara el texto de una etapa (erratas OCR o sintaxis de etiquetas)."""
    orchestrator = _build(session, config_path)
    result = _execute(lambda: orchestrator.run_repair(_MILESTONES[stage.lower()]))
    _print_summary(result)
    _exit_on_run_error(result)


@main.command()
@click.option("--stage", required=True, type=click.Choice(_PROCESSED_STAGES, case_sensitive=False))
@_session_option
@_config_option
def translate(stage, session, config_path):
    """Traduce el texto de una etapa al inglés para verificarlo."""
    orchestrator = _build(session, config_path)
    result = _execute(lambda: orchestrator.run_translation(_MILESTONES[stage.lower()]))
    _print_summary(result)
    _exit_on_run_error(result)


@main.command()
@click.option("--stage", required=True, type=click.Choice(_PROCESSED_STAGES, case_sensitive=False))
@_session_option
@_config_option
def audit(stage, session, config_path):
    """Informe de calidad de una etapa."""
    orchestrator = _build(session, config_path)
    report = _execute(lambda: orchestrator.run_audit(_MILESTONES[stage.lower()]))

    if report is None:
        _error(orchestrator.state.error or "Auditoría fallida")
        sys.exit(2)

    click.echo("")
    click.echo(report)


# ------------------------------------------------------------------
# Importación / edición / exportación
# ------------------------------------------------------------------

@main.command(name="import")
@click.argument("file", type=click.Path())
@click.option(
    "--into", "target",
    required = True,
    type     = click.Choice(sorted(_IMPORT_TARGETS), case_sensitive=False),
    help     = "Etapa que recibirá el texto como entrada",
)
@_session_option
@_config_option
def import_(file, target, session, config_path):
    """Importa un texto (plano o delimitado) como entrada de una etapa. Descarta los chunks actuales."""
    _validate_file(file, allowed=(".txt", ".md"))
    text = Path(file).read_text(encoding="utf-8")

    orchestrator = _build(session, config_path, require_models=False)
    chunks = _execute(lambda: orchestrator.import_document(
        text, _IMPORT_TARGETS[target.lower()], file_name=Path(file).name
    ))
    click.echo(f"[structocr] ✓ {len(chunks)} chunks importados. Siguiente: structocr {target.lower()}")


@main.command()
@click.argument("file", type=click.Path())
@click.option("--stage", required=True, type=click.Choice(list(_MILESTONES), case_sensitive=False))
@_session_option
@_config_option
def edit(file, stage, session, config_path):
    """Aplica un archivo delimitado editado a mano sobre los chunks de una etapa."""
    _validate_file(file, allowed=(".txt", ".md"))
    text = Path(file).read_text(encoding="utf-8")

    orchestrator = _build(session, config_path, require_models=False)
    changed = _execute(lambda: orchestrator.apply_edit(text, _MILESTONES[stage.lower()]))
    click.echo(f"[structocr] ✓ {changed} chunks modificados")


@main.command()
@click.option("--stage", required=True, type=click.Choice(list(_MILESTONES), case_sensitive=False))
@_session_option
@click.option("--delimited", is_flag=True, help="Un solo archivo con marcadores --- CHUNK n ---")
@click.option("--translated", is_flag=True, help="Exporta la traducción de verificación")
@click.option("--output-dir", default=None, type=click.Path(file_okay=False), help="Carpeta de salida")
def export(stage, session, delimited, translated, output_dir):
    """Escribe el texto de una etapa a disco."""
    state    = _load_session(session)
    chunks   = sorted(state.chunks, key=lambda c: c.id)
    exporter = Exporter(resolve_output_dir(output_dir))
    milestone = _MILESTONES[stage.lower()]

    try:
        if translated:
            paths = [exporter.write_translation(chunks, session)]
        elif delimited:
            paths = [exporter.write_delimited(chunks, milestone, session)]
        else:
            paths = exporter.write(chunks, milestone)
    except ValueError as e:
        _abort(str(e))

    for path in paths:
        click.echo(f"[structocr] Output: {path}")


# ------------------------------------------------------------------
# Consultas
# ------------------------------------------------------------------

@main.command()
@_session_option
@click.option("--all", "show_all", is_flag=True, help="Lista todas las sesiones guardadas")
def status(session, show_all):
    """Estado de la sesión: etapa, idioma y chunks por estado."""
    if show_all:
        repo = Repository()
        sessions = repo.list_sessions()
        repo.close()
        if not sessions:
            click.echo("[structocr] No hay sesiones guardadas.")
        for s in sessions:
            click.echo(f"[structocr] {s.name:<20} {s.stage:<18} {s.chunk_count:>5} chunks  {s.updated_at}")
        return

    state  = _load_session(session)
    counts = count_by_status(state)

    click.echo("─" * 50)
    click.echo(f"[structocr]   Sesión   : {session}")
    click.echo(f"[structocr]   Etapa    : {state.stage.value}")
    click.echo(f"[structocr]   Idioma   : {state.language}")
    click.echo(f"[structocr]   Chunks   : {len(state.chunks)}")
    for chunk_status, count in counts.items():
        if count:
            click.echo(f"[structocr]     {chunk_status.value:<11}: {count}")
    if state.error:
        click.echo(click.style(f"[structocr]   Error    : {state.error}", fg="red"))
    if state.audit_report:
        click.echo("[structocr]   Auditoría: disponible (structocr audit para regenerarla)")
    click.echo("─" * 50)


@main.command(name="detect-lang")
@click.argument("file", type=click.Path())
@click.option("--scores", is_flag=True, help="Muestra la puntuación de cada idioma")
def detect_lang(file, scores):
    """Detecta el idioma de un documento sin llamar a ningún modelo."""
    _validate_file(file)
    try:
        doc = ParserFactory.parse_file(file)
    except (UnsupportedFormatError, ImportError) as e:
        _abort(str(e))

    click.echo(detect_language(doc.text))
    if scores:
        ranked = sorted(score_languages(doc.text).items(), key=lambda kv: -kv[1])
        for lang, score in ranked:
            if score:
                click.echo(f"  {lang}: {score}")


# ------------------------------------------------------------------
# Ensamblado y ejecución
# ------------------------------------------------------------------

def _effective_config(config_path, **overrides):
    try:
        config = load_pipeline_config(config_path)
        return dataclasses.replace(config, **overrides)
    except ValueError as e:
        _abort(str(e))


def _build(session: str, config_path, require_models: bool = True, **overrides):
    config = _effective_config(config_path, **overrides)
    try:
        return build_orchestrator(
            config_path    = config_path,
            session        = session,
            config         = config,
            require_models = require_models,
        )
    except FileNotFoundError as e:
        _abort(str(e))
    except RuntimeError as e:
        _abort(str(e))


def _execute(action):
    """Ejecuta una operación del orquestador traduciendo sus errores a códigos de salida."""
    try:
        return action()

    except (PipelineBusyError, NoChunksError) as e:
        _abort(str(e))

    except (FileNotFoundError, UnsupportedFormatError, ValueError) as e:
        _abort(str(e))

    except KeyboardInterrupt:
        click.echo(
            "\n[structocr] Proceso interrumpido. "
            "El progreso está guardado: vuelve a ejecutar el comando para continuar."
        )
        sys.exit(0)

    except Exception as e:
        _error(f"Error inesperado: {type(e).__name__}: {e}")
        sys.exit(1)


def _load_session(session: str):
    repo = Repository()
    state = repo.load_state(session)
    repo.close()
    if state is None:
        _abort(f"La sesión '{session}' no existe. Empieza con: structocr extract ARCHIVOS")
    return state


# ------------------------------------------------------------------
# Helpers de validación
# ------------------------------------------------------------------

def _validate_file(path: str, allowed: tuple[str, ...] = SUPPORTED_EXTENSIONS) -> None:
    """Verifica existencia y formato del archivo."""
    p = Path(path)

    if not p.exists():
        _abort(f"Archivo no encontrado: {path}")

    if not p.is_file():
        _abort(f"La ruta no es un archivo: {path}")

    if p.suffix.lower() not in allowed:
        supported = ", ".join(sorted(allowed))
        _abort(
            f"Formato no soportado: '{p.suffix}'\n"
            f"Formatos disponibles: {supported}"
        )


def _validate_lang(code: str, option: str) -> None:
    """Valida que el código de idioma sea razonable."""
    code = code.strip()

    if not code:
        _abort(f"{option} no puede estar vacío.")

    if not code.replace("-", "").isalpha():
        _abort(
            f"{option} contiene caracteres inválidos: '{code}'\n"
            f"Ejemplos válidos: en, vi, pt, auto"
        )

    if len(code) > 10:
        _abort(f"{option}: código de idioma demasiado largo: '{code}'")


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

def _print_summary(result) -> None:
    """Imprime el resumen de una etapa."""
    click.echo("")
    click.echo("─" * 50)
    if result.error:
        click.echo(click.style(f"[structocr] ✗ {result.stage.value} con error", fg="red"))
    elif result.cancelled:
        click.echo(f"[structocr] ⚠ {result.stage.value} cancelado")
    else:
        click.echo(f"[structocr] ✓ {result.stage.value} completado")
    click.echo(f"[structocr]   Total chunks : {result.total}")
    click.echo(f"[structocr]   Completados  : {result.completed}")

    if result.failed:
        click.echo(
            click.style(
                f"[structocr]   Fallidos     : {result.failed} (ver structocr status)",
                fg="yellow",
            )
        )
    if result.skipped:
        click.echo(f"[structocr]   Omitidos     : {result.skipped}")
    click.echo("─" * 50)


def _exit_on_run_error(result) -> None:
    """Un error a nivel de ejecución sale con código 2 y el mensaje."""
    if result.error:
        _error(result.error)
        sys.exit(2)


def _abort(message: str) -> None:
    """Error de validación — culpa del usuario."""
    click.echo(click.style(f"[structocr] Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _error(message: str) -> None:
    """Error de sistema — no es culpa del usuario."""
    click.echo(click.style(f"[structocr] {message}", fg="red"), err=True)
