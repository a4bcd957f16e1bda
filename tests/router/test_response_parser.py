from structocr.router.response_parser import clean_model_output


class TestCleanModelOutput:

    def test_texto_plano_se_devuelve_igual(self):
        raw = "{{level1}}CHAPTER 1{{-level1}}\n{{text_level}}Body{{-text_level}}"
        assert clean_model_output(raw, "test_model") == raw

    def test_bloque_markdown_que_envuelve_todo_se_retira(self):
        raw = "```\n{{level1}}CHAPTER 1{{-level1}}\n```"
        assert clean_model_output(raw, "test_model") == "{{level1}}CHAPTER 1{{-level1}}"

    def test_bloque_markdown_con_lenguaje(self):
        raw = "```text\nContenido limpio\n```"
        assert clean_model_output(raw, "test_model") == "Contenido limpio"

    def test_bloque_interno_es_contenido(self):
        raw = "Antes\n```\ncodigo\n```\nDespués"
        assert clean_model_output(raw, "test_model") == raw

    def test_espacios_exteriores_se_recortan(self):
        assert clean_model_output("  \n texto \n\n", "test_model") == "texto"

    def test_respuesta_vacia_no_lanza_excepcion(self):
        assert clean_model_output("", "test_model") == ""
        assert clean_model_output(None, "test_model") == ""
