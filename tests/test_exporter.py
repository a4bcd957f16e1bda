# tests/test_exporter.py
import pytest

from structocr.config import DEFAULT_OUTPUT_DIR
from structocr.exporter import Exporter, export_file_name, unique_export_names
from structocr.processor.models import Chunk, Milestone


def make_chunks() -> list[Chunk]:
    return [
        Chunk(id=0, file_name="ley.pdf", raw_text="r0", cleaned_text="Uno"),
        Chunk(id=1, file_name="ley.pdf", raw_text="r1", cleaned_text="Dos"),
        Chunk(id=2, file_name="anexo.txt", raw_text="r2", cleaned_text="Tres",
              translated_text="Three"),
    ]


@pytest.fixture
def exporter(tmp_path):
    return Exporter(output_dir=tmp_path / "out")


def test_un_archivo_por_archivo_fuente(exporter):
    paths = exporter.write(make_chunks(), Milestone.CLEAN)

    assert [p.name for p in paths] == ["ley - Step 2 - Clean.txt", "anexo - Step 2 - Clean.txt"]
    assert paths[0].read_text(encoding="utf-8") == "Uno\n\nDos\n"
    assert paths[1].read_text(encoding="utf-8") == "Tres\n"


def test_fuentes_con_el_mismo_nombre_base_no_se_pisan(exporter):
    chunks = [
        Chunk(id=0, file_name="ley.pdf", raw_text="r0", cleaned_text="Del PDF"),
        Chunk(id=1, file_name="ley.txt", raw_text="r1", cleaned_text="Del TXT"),
    ]

    paths = exporter.write(chunks, Milestone.CLEAN)

    assert [p.name for p in paths] == [
        "ley (pdf) - Step 2 - Clean.txt",
        "ley (txt) - Step 2 - Clean.txt",
    ]
    assert paths[0].read_text(encoding="utf-8") == "Del PDF\n"
    assert paths[1].read_text(encoding="utf-8") == "Del TXT\n"


def test_nombres_iguales_con_la_misma_extension_se_numeran():
    names = unique_export_names(["ley.pdf", "processed_CLEAN_ley.pdf", "anexo.pdf"], "Raw")

    assert names == {
        "ley.pdf":                 "ley (pdf) - Raw.txt",
        "processed_CLEAN_ley.pdf": "ley (2) - Raw.txt",
        "anexo.pdf":               "anexo - Raw.txt",
    }


def test_sin_output_dir_usa_el_directorio_por_defecto():
    assert Exporter().output_dir == DEFAULT_OUTPUT_DIR


def test_sin_chunks_lanza_error(exporter):
    with pytest.raises(ValueError):
        exporter.write([], Milestone.RAW)


def test_exportacion_delimitada(exporter):
    path = exporter.write_delimited(make_chunks(), Milestone.CLEAN, "ley")

    text = path.read_text(encoding="utf-8")
    assert path.name == "ley - Step 2 - Clean - Chunks.txt"
    assert "<<<< FILE_START: ley.pdf >>>>" in text
    assert "--- CHUNK 2 ---\nTres" in text


def test_exportacion_de_traduccion(exporter):
    path = exporter.write_translation(make_chunks(), "ley")

    assert path.name == "ley - Translation.txt"
    assert "Three" in path.read_text(encoding="utf-8")


def test_traduccion_vacia_lanza_error(exporter):
    chunks = [Chunk(id=0, file_name="a", raw_text="x")]
    with pytest.raises(ValueError):
        exporter.write_translation(chunks, "a")


@pytest.mark.parametrize("source,expected", [
    ("ley.pdf", "ley - Step 3 - Macro.txt"),
    ("processed_CLEAN_ley.pdf", "ley - Step 3 - Macro.txt"),
    ("processed_CLEAN_processed_MACRO_ley.txt", "ley - Step 3 - Macro.txt"),
    ("ley - Step 2 - Clean.txt", "ley - Step 3 - Macro.txt"),
    ("ley - Raw.txt", "ley - Step 3 - Macro.txt"),
])
def test_export_file_name(source, expected):
    assert export_file_name(source, "Step 3 - Macro") == expected
