# tests/router/test_translator.py
import pytest
from unittest.mock import MagicMock

from structocr.router.models import ModelResponse
from structocr.router.router import AllModelsExhaustedError
from structocr.router.translator import Translator, repair_tags, split_batches


def make_mock_router(transform=None):
    router = MagicMock()
    router.transform.side_effect = transform or (
        lambda text, instruction, model=None: ModelResponse(
            text=text.upper(), model_used="gemini", tokens_input=1, tokens_output=1,
        )
    )
    return router


class TestRepairTags:

    @pytest.mark.parametrize("broken, fixed", [
        ("{{ level 1 }}",          "{{level1}}"),
        ("{{Level2}}",             "{{level2}}"),
        ("{{ - level 3 }}",        "{{-level3}}"),
        ("{{ text level }}",       "{{text_level}}"),
        ("{{Text-Level}}",         "{{text_level}}"),
        ("{{ -text_level }}",      "{{-text_level}}"),
        ("{{ footnote number 4 }}", "{{footnotenumber4}}"),
        ("{{-FOOTNOTENUMBER4}}",   "{{-footnotenumber4}}"),
        ("{{ footnote 7 }}",       "{{footnote7}}"),
        ("{{ - footnote 7 }}",     "{{-footnote7}}"),
    ])
    def test_etiqueta_deformada_se_normaliza(self, broken, fixed):
        assert repair_tags(broken) == fixed

    def test_etiquetas_correctas_no_cambian(self):
        text = "{{level1}}Título{{-level1}}\n{{text_level}}{{level2}}Cuerpo{{-level2}}{{-text_level}}"
        assert repair_tags(text) == text


class TestSplitBatches:

    def test_texto_corto_es_un_solo_lote(self):
        assert split_batches("uno\ndos") == ["uno\ndos"]

    def test_respeta_el_limite_sin_cortar_lineas(self):
        lines = [f"linea {i:03d} " + "x" * 40 for i in range(100)]
        batches = split_batches("\n".join(lines), max_chars=500)

        assert all(len(b) <= 500 for b in batches)
        assert "\n".join(batches) == "\n".join(lines)

    def test_linea_mas_larga_que_el_limite_va_sola(self):
        long_line = "y" * 50
        batches = split_batches(f"a\n{long_line}\nb", max_chars=10)
        assert batches == ["a", long_line, "b"]


class TestTranslator:

    def test_traduce_por_lotes_y_une(self):
        router = make_mock_router()
        translator = Translator(router)
        text = "\n".join(["linea " + "z" * 100] * 40)

        result = translator.translate(text)

        assert router.transform.call_count > 1
        assert result == text.upper()

    def test_repara_etiquetas_del_resultado(self):
        router = make_mock_router(lambda text, instruction, model=None: ModelResponse(
            text="{{ level 1 }}Chapter{{ -level 1 }}", model_used="gemini",
            tokens_input=1, tokens_output=1,
        ))
        result = Translator(router).translate("{{level1}}Capítulo{{-level1}}")
        assert result == "{{level1}}Chapter{{-level1}}"

    def test_pasa_el_modelo_preferido(self):
        router = make_mock_router()
        Translator(router, model="claude").translate("hola")
        assert router.transform.call_args.kwargs["model"] == "claude"

    def test_texto_vacio_no_llama_al_router(self):
        router = make_mock_router()
        assert Translator(router).translate("  \n ") == ""
        router.transform.assert_not_called()

    def test_errores_se_propagan(self):
        router = make_mock_router()
        router.transform.side_effect = AllModelsExhaustedError("sin quota")
        with pytest.raises(AllModelsExhaustedError):
            Translator(router).translate("hola")
