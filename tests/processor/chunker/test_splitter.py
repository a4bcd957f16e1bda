import pytest

from structocr.processor.chunker.models import ChunkConfig
from structocr.processor.chunker.splitter import ChunkSplitter
from structocr.processor.models import ChunkStatus, Milestone

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def splitter():
    return ChunkSplitter(ChunkConfig(target_size=100))


def para(letter: str, size: int = 40) -> str:
    return letter * size


# ---------------------------------------------------------------------------
# split
# ---------------------------------------------------------------------------


def test_texto_corto_produce_un_chunk(splitter):
    chunks = splitter.split("Hola mundo.\n\nSegundo párrafo.")

    assert len(chunks) == 1
    assert chunks[0].raw_text == "Hola mundo.\n\nSegundo párrafo."
    assert chunks[0].status == ChunkStatus.PENDING
    assert chunks[0].cleaned_text == ""


def test_agrupa_parrafos_hasta_el_limite(splitter):
    """Tres párrafos de 40 con límite 100: dos entran, el tercero abre chunk nuevo."""
    text = "\n\n".join([para("a"), para("b"), para("c")])

    chunks = splitter.split(text)

    assert len(chunks) == 2
    assert chunks[0].raw_text == para("a") + "\n\n" + para("b")
    assert chunks[1].raw_text == para("c")


def test_nunca_corta_un_parrafo(splitter):
    """Un párrafo mayor que el límite forma su propio chunk sobredimensionado."""
    big = para("x", 250)
    text = "\n\n".join([para("a"), big, para("b")])

    chunks = splitter.split(text)

    assert [c.raw_text for c in chunks] == [para("a"), big, para("b")]


def test_ids_consecutivos_desde_start_id(splitter):
    text = "\n\n".join(para(ch) for ch in "abcd")

    chunks = splitter.split(text, start_id=7)

    assert [c.id for c in chunks] == [7, 8, 9, 10]


def test_file_name_se_propaga(splitter):
    chunks = splitter.split("Texto", file_name="contrato.pdf")
    assert chunks[0].file_name == "contrato.pdf"


def test_lineas_en_blanco_con_espacios_separan_parrafos(splitter):
    chunks = splitter.split("uno\n   \ndos", target_size=4)
    assert [c.raw_text for c in chunks] == ["uno", "dos"]


def test_texto_vacio_no_produce_chunks(splitter):
    assert splitter.split("") == []
    assert splitter.split("\n\n   \n\n") == []


def test_target_size_invalido_lanza_error(splitter):
    with pytest.raises(ValueError):
        splitter.split("Texto", target_size=0)


def test_concatenacion_conserva_todos_los_parrafos(splitter):
    paragraphs = [para(ch, 30) for ch in "abcdefgh"]

    chunks = splitter.split("\n\n".join(paragraphs))

    rebuilt = "\n\n".join(c.raw_text for c in chunks)
    assert rebuilt == "\n\n".join(paragraphs)


# ---------------------------------------------------------------------------
# parse_from_delimited_text
# ---------------------------------------------------------------------------


def test_parsea_bloques_delimitados(splitter):
    text = "--- CHUNK 0 ---\nPrimero\n\n--- CHUNK 1 ---\nSegundo\n"

    chunks = splitter.parse_from_delimited_text(text)

    assert [(c.id, c.raw_text) for c in chunks] == [(0, "Primero"), (1, "Segundo")]
    assert all(c.file_name == "imported.txt" for c in chunks)


def test_file_start_fija_el_nombre_y_no_es_contenido(splitter):
    text = (
        "<<<< FILE_START: a.pdf >>>>\n--- CHUNK 0 ---\nUno\n\n"
        "<<<< FILE_START: b.pdf >>>>\n--- CHUNK 1 ---\nDos"
    )

    chunks = splitter.parse_from_delimited_text(text)

    assert [c.file_name for c in chunks] == ["a.pdf", "b.pdf"]
    assert chunks[0].raw_text == "Uno"
    assert "FILE_START" not in chunks[0].raw_text


def test_bloques_desordenados_se_ordenan_por_id(splitter):
    text = "--- CHUNK 5 ---\nCinco\n--- CHUNK 2 ---\nDos"

    chunks = splitter.parse_from_delimited_text(text)

    assert [c.id for c in chunks] == [2, 5]


def test_id_duplicado_lanza_error(splitter):
    text = "--- CHUNK 0 ---\na\n\n--- CHUNK 0 ---\nb"

    with pytest.raises(ValueError, match="chunk 0 está duplicado"):
        splitter.parse_from_delimited_text(text)


def test_texto_sin_marcadores_no_produce_chunks(splitter):
    assert splitter.parse_from_delimited_text("Texto libre sin bloques") == []


def test_parse_for_milestone_rellena_el_campo_del_hito(splitter):
    chunks = splitter.parse_for_milestone("--- CHUNK 0 ---\n{{level1}}Título", Milestone.MACRO)

    assert chunks[0].macro_text == "{{level1}}Título"
    assert chunks[0].raw_text == ""


@pytest.mark.parametrize("size", [1, 35, 64, 100, 500])
def test_ningun_chunk_supera_el_limite_salvo_parrafos_gigantes(size):
    paragraphs = [para(ch, n) for ch, n in zip("abcdefghij", (10, 30, 5, 64, 12, 40, 1, 99, 20, 33))]
    splitter = ChunkSplitter()

    chunks = splitter.split("\n\n".join(paragraphs), target_size=size)

    for chunk in chunks:
        assert len(chunk.raw_text) <= size or chunk.raw_text in paragraphs
    assert "\n\n".join(c.raw_text for c in chunks) == "\n\n".join(paragraphs)
