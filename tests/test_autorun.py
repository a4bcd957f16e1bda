# tests/test_autorun.py
from structocr.autorun import AutoRunner
from structocr.pipeline_state import PipelineState, Stage
from structocr.processor.models import Chunk, Milestone


def make_state(target=Milestone.FINAL, stage=Stage.IDLE, **fields) -> PipelineState:
    chunks = (Chunk(id=0, file_name="a.txt", raw_text="raw", **fields),)
    return PipelineState(stage=stage, auto_run_target=target, chunks=chunks)


def test_sin_objetivo_no_hace_nada():
    runner = AutoRunner()
    assert runner.next_action(make_state(target=None), has_files=True) is None
    assert runner.stop_reason == "sin objetivo"


def test_sin_chunks_empieza_por_extraccion():
    state = PipelineState(auto_run_target=Milestone.FINAL)
    assert AutoRunner().next_action(state, has_files=True) == Milestone.RAW


def test_sin_chunks_ni_archivos_se_detiene():
    state = PipelineState(auto_run_target=Milestone.FINAL)
    runner = AutoRunner()

    assert runner.next_action(state, has_files=False) is None
    assert "archivos" in runner.stop_reason


def test_devuelve_el_primer_hito_no_cumplido():
    state = make_state(cleaned_text="limpio")
    assert AutoRunner().next_action(state, has_files=False) == Milestone.MACRO


def test_no_avanza_mas_alla_del_objetivo():
    state = make_state(target=Milestone.CLEAN, cleaned_text="limpio")
    runner = AutoRunner()

    assert runner.next_action(state, has_files=False) is None
    assert runner.stop_reason == "objetivo CLEAN alcanzado"


def test_solo_actua_en_idle():
    state = make_state(stage=Stage.CLEANING)
    assert AutoRunner().next_action(state, has_files=True) is None


def test_nunca_dispara_dos_veces_el_mismo_hito():
    """Si Clean corrió y no produjo nada, se para en lugar de repetir en bucle."""
    state = make_state()
    runner = AutoRunner()

    assert runner.next_action(state, has_files=False) == Milestone.CLEAN
    assert runner.next_action(state, has_files=False) is None
    assert "CLEAN" in runner.stop_reason
    assert runner.triggered == frozenset({Milestone.CLEAN})


def test_secuencia_completa():
    runner = AutoRunner()
    fields = {}
    seen = []
    for milestone, field in [
        (Milestone.CLEAN, "cleaned_text"),
        (Milestone.MACRO, "macro_text"),
        (Milestone.MICRO, "micro_text"),
        (Milestone.FINAL, "final_text"),
    ]:
        seen.append(runner.next_action(make_state(**fields), has_files=False))
        fields[field] = "x"

    assert seen == [Milestone.CLEAN, Milestone.MACRO, Milestone.MICRO, Milestone.FINAL]
    assert runner.next_action(make_state(**fields), has_files=False) is None
