import pytest

from structocr.processor.layout_restorer import (
    LayoutRestorer,
    LineNumberCandidate,
    restore_layout,
)


@pytest.fixture
def restorer():
    return LayoutRestorer()


# ---------------------------------------------------------------------------
# Pasada 0 — marcadores de página
# ---------------------------------------------------------------------------


class TestMarcadoresDePagina:

    def test_salto_de_pagina_se_convierte_en_salto_de_linea(self, restorer):
        text = "fin de\n--- PAGE 1 END ---\n\n--- PAGE 2 START ---\nfrase"
        assert restorer.strip_page_markers(text) == "fin de\nfrase"

    def test_frase_partida_entre_paginas_se_une(self, restorer):
        text = (
            "--- PAGE 1 START ---\nThe Minister shall\n--- PAGE 1 END ---\n\n"
            "--- PAGE 2 START ---\npublish the notice.\n--- PAGE 2 END ---"
        )
        assert restorer.restore(text) == "The Minister shall publish the notice."

    def test_texto_sin_marcadores_no_cambia(self, restorer):
        assert restorer.strip_page_markers("Texto normal\n\nOtro") == "Texto normal\n\nOtro"


# ---------------------------------------------------------------------------
# Pasada 1 — números de línea y sus excepciones
# ---------------------------------------------------------------------------


class TestNumerosDeLinea:

    def test_quita_numeros_marginales_secuenciales(self, restorer):
        text = "1   The Minister\n2   shall publish\n3   the notice."
        assert restorer.strip_line_numbers(text) == "The Minister\nshall publish\nthe notice."

    def test_reinicio_a_uno_se_acepta(self, restorer):
        text = "1   Alpha\n2   Beta\n1   Gamma"
        assert restorer.strip_line_numbers(text) == "Alpha\nBeta\nGamma"

    def test_marcador_de_lista_se_conserva(self, restorer):
        text = "1. Definitions\n2) Scope"
        assert restorer.strip_line_numbers(text) == text

    def test_anio_se_conserva(self, restorer):
        text = "2019   Annual report"
        assert restorer.strip_line_numbers(text) == text

    def test_espacio_simple_se_conserva(self, restorer):
        """'1 For the purposes' puede ser nota al pie: ante la duda, se conserva."""
        text = "1 For the purposes of this Act"
        assert restorer.strip_line_numbers(text) == text

    def test_numero_pegado_a_palabra_se_conserva(self, restorer):
        assert restorer.strip_line_numbers("3rd Floor") == "3rd Floor"

    def test_fuera_de_secuencia_se_conserva(self, restorer):
        text = "1   Alpha\n5   Beta"
        assert restorer.strip_line_numbers(text) == "Alpha\n5   Beta"

    def test_numeros_sueltos_en_secuencia_se_eliminan(self, restorer):
        text = "Texto\n1\n2\n3\nMás texto"
        assert restorer.strip_line_numbers(text) == "Texto\nMás texto"

    def test_numero_repetido_al_inicio_del_resto_se_elimina(self, restorer):
        assert restorer.strip_line_numbers("1  1  z") == "z"

    def test_resto_fuera_de_secuencia_se_conserva(self, restorer):
        assert restorer.strip_line_numbers("1  9  unidades") == "9  unidades"

    def test_linea_solo_con_numero_se_elimina(self, restorer):
        text = "1\nTexto"
        assert restorer.strip_line_numbers(text) == "Texto"

    @pytest.mark.parametrize("candidate,expected,guard", [
        (LineNumberCandidate(1, ". ", "Definitions"), 1, "list_marker"),
        (LineNumberCandidate(2019, "   ", "Report"), 1, "year"),
        (LineNumberCandidate(1, " ", "For"), 1, "single_space"),
        (LineNumberCandidate(3, "", "rd Floor"), 3, "glued"),
        (LineNumberCandidate(7, "   ", "Texto"), 2, "sequence"),
        (LineNumberCandidate(2, "   ", "Texto"), 2, None),
    ])
    def test_guard_que_protege(self, restorer, candidate, expected, guard):
        assert restorer.protecting_guard(candidate, expected) == guard


# ---------------------------------------------------------------------------
# Pasada 2 — ruido de página
# ---------------------------------------------------------------------------


class TestRuidoDePagina:

    def test_numero_de_pagina_aislado_se_elimina(self, restorer):
        assert restorer.remove_noise_lines("Texto\n12\nMás texto") == "Texto\nMás texto"

    def test_page_n_se_elimina(self, restorer):
        assert restorer.remove_noise_lines("Texto\nPage 12\nMás texto") == "Texto\nMás texto"

    def test_anio_aislado_se_conserva(self, restorer):
        text = "Texto\n1996\nMás texto"
        assert restorer.remove_noise_lines(text) == text

    def test_primera_y_ultima_linea_no_se_tocan(self, restorer):
        text = "12\nTexto\n13"
        assert restorer.remove_noise_lines(text) == text


# ---------------------------------------------------------------------------
# Pasadas 3 y 4 — guiones y líneas partidas
# ---------------------------------------------------------------------------


class TestGuionesYLineas:

    def test_repara_palabra_partida(self, restorer):
        assert restorer.fix_hyphenation("communi-\ncation") == "communication"

    def test_guion_normal_no_cambia(self, restorer):
        assert restorer.fix_hyphenation("well-known") == "well-known"

    def test_guion_antes_de_parrafo_no_se_une(self, restorer):
        text = "communi-\n\ncation"
        assert restorer.fix_hyphenation(text) == text

    def test_une_linea_partida_por_ancho(self, restorer):
        text = "The Minister shall\npublish the notice."
        assert restorer.merge_wrapped_lines(text) == "The Minister shall publish the notice."

    def test_titulo_seguido_de_lista_numerada_no_se_une(self, restorer):
        text = "ARTICLE 1\n1. Definitions"
        assert restorer.merge_wrapped_lines(text) == text

    def test_fin_de_frase_no_se_une(self, restorer):
        text = "End of sentence.\nnext line"
        assert restorer.merge_wrapped_lines(text) == text

    def test_parrafos_se_protegen(self, restorer):
        text = "Párrafo uno\n\nsegundo párrafo"
        assert restorer.merge_wrapped_lines(text) == text

    def test_linea_siguiente_en_mayuscula_no_se_une(self, restorer):
        text = "Title\nThe body"
        assert restorer.merge_wrapped_lines(text) == text


# ---------------------------------------------------------------------------
# restore completo
# ---------------------------------------------------------------------------


class TestRestore:

    def test_todas_las_pasadas_en_orden(self, restorer):
        text = "1   The Minister shall\n2   publish the communi-\n3   cation today."
        assert restorer.restore(text) == "The Minister shall publish the communication today."

    def test_texto_vacio(self, restorer):
        assert restorer.restore("") == ""

    def test_protege_titulos_y_listas(self, restorer):
        text = "The Minister shall\npublish the notice.\n\nARTICLE 1\n1. Definitions"
        assert restorer.restore(text) == (
            "The Minister shall publish the notice.\n\nARTICLE 1\n1. Definitions"
        )

    @pytest.mark.parametrize("text", [
        "The Minister shall\npublish the notice.\n\nARTICLE 1\n1. Definitions",
        "1  1  z",
        "1  First line\n2  second line\n3  Third line",
        "--- PAGE 1 START ---\nThe communi-\ncation is\n12\nbinding.\n--- PAGE 1 END ---",
        "Texto\n1\n2\n3\nMás texto",
        "2024\nPage 3\nResolution 15 of\nthe Council",
        "a\n \n\n\nb",
    ])
    def test_es_idempotente(self, restorer, text):
        once = restorer.restore(text)
        assert restorer.restore(once) == once

    def test_shortcut_equivale_a_la_clase(self):
        text = "The Minister shall\npublish the notice."
        assert restore_layout(text) == LayoutRestorer().restore(text)
