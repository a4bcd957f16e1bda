# tests/router/test_claude_adapter.py
import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock

import anthropic

from structocr.router.claude import ClaudeAdapter
from structocr.router.models import ModelConfig
from structocr.storage.repository import Repository


@pytest.fixture
def repo():
    r = Repository(db_path=":memory:")
    yield r
    r.close()


def make_adapter(repo, daily_token_limit=1_000) -> ClaudeAdapter:
    config = ModelConfig(
        name              = "claude",
        priority          = 1,
        daily_token_limit = daily_token_limit,
        api_key           = "sk-test",
    )
    adapter = ClaudeAdapter(config, repo)
    adapter._client = MagicMock()
    return adapter


def make_api_response(text: str, tokens_in: int = 10, tokens_out: int = 5):
    return SimpleNamespace(
        content = [SimpleNamespace(type="text", text=text)],
        usage   = SimpleNamespace(input_tokens=tokens_in, output_tokens=tokens_out),
    )


def test_transform_envia_la_instruccion_como_system(repo):
    adapter = make_adapter(repo)
    adapter._client.messages.create.return_value = make_api_response("{{level1}}A{{-level1}}")

    response = adapter.transform("A", "Tag the headlines")

    kwargs = adapter._client.messages.create.call_args.kwargs
    assert kwargs["system"] == "Tag the headlines"
    assert kwargs["messages"] == [{"role": "user", "content": "A"}]
    assert response.text == "{{level1}}A{{-level1}}"
    assert response.model_used == "claude"


def test_retira_bloque_markdown(repo):
    adapter = make_adapter(repo)
    adapter._client.messages.create.return_value = make_api_response("```text\nHola\n```")

    assert adapter.transform("x", "y").text == "Hola"


def test_registra_tokens_y_agota_quota(repo):
    adapter = make_adapter(repo, daily_token_limit=20)
    adapter._client.messages.create.return_value = make_api_response("ok", 15, 10)

    adapter.transform("x", "y")

    assert repo.get_token_usage_today("claude") == 25
    assert adapter.is_available() is False


def test_error_de_conexion_activa_cooldown(repo):
    adapter = make_adapter(repo)
    adapter._client.messages.create.side_effect = anthropic.APIConnectionError(request=MagicMock())

    with pytest.raises(anthropic.APIConnectionError):
        adapter.transform("x", "y")

    assert adapter.is_available() is False


def test_cooldown_expirado_vuelve_a_estar_disponible(repo):
    adapter = make_adapter(repo)
    adapter._config._unavailable_until = 0.0

    assert adapter.is_available() is True
    assert adapter._config._unavailable_until is None
