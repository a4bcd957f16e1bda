# tests/test_factory.py
import pytest

from structocr.config import PipelineConfig
from structocr.factory import _build_models, build_orchestrator
from structocr.router.claude import ClaudeAdapter
from structocr.router.gemini import GeminiAdapter
from structocr.storage.repository import Repository

CONFIG_YAML = """\
models:
  - name: claude
    priority: 2
    daily_token_limit: 500000
    api_key: ${STRUCTOCR_TEST_CLAUDE_KEY}
  - name: gemini-pro
    provider: gemini
    priority: 1
    daily_token_limit: 500000
    api_key: ${STRUCTOCR_TEST_GEMINI_KEY}
  - name: llama
    priority: 3
    daily_token_limit: 1000
    api_key: abc
"""


@pytest.fixture
def repo():
    r = Repository(db_path=":memory:")
    yield r
    r.close()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return str(path)


def test_construye_adaptadores_por_proveedor(repo, config_file, monkeypatch, capsys):
    monkeypatch.setenv("STRUCTOCR_TEST_CLAUDE_KEY", "sk-claude")
    monkeypatch.setenv("STRUCTOCR_TEST_GEMINI_KEY", "gm-key")

    models = _build_models(repo, config_file)

    assert [type(m) for m in models] == [GeminiAdapter, ClaudeAdapter]
    assert [m.name for m in models] == ["gemini-pro", "claude"]
    assert "llama: proveedor desconocido" in capsys.readouterr().out


def test_modelo_sin_api_key_se_omite(repo, config_file, monkeypatch, capsys):
    monkeypatch.delenv("STRUCTOCR_TEST_CLAUDE_KEY", raising=False)
    monkeypatch.setenv("STRUCTOCR_TEST_GEMINI_KEY", "gm-key")

    models = _build_models(repo, config_file)

    assert [m.name for m in models] == ["gemini-pro"]
    assert "claude: sin api_key" in capsys.readouterr().out


def test_sin_modelos_utilizables_lanza_error(repo, config_file, monkeypatch):
    monkeypatch.delenv("STRUCTOCR_TEST_CLAUDE_KEY", raising=False)
    monkeypatch.delenv("STRUCTOCR_TEST_GEMINI_KEY", raising=False)

    with pytest.raises(RuntimeError, match="Ningún modelo configurado"):
        _build_models(repo, config_file)


def test_sin_config_y_sin_modelos_requeridos(repo, tmp_path):
    assert _build_models(repo, str(tmp_path / "no.yaml"), required=False) == []


def test_sin_config_con_modelos_requeridos(repo, tmp_path):
    with pytest.raises(FileNotFoundError):
        _build_models(repo, str(tmp_path / "no.yaml"))


def test_build_orchestrator_sin_modelos(tmp_path):
    orch = build_orchestrator(
        db_path        = ":memory:",
        config_path    = str(tmp_path / "no.yaml"),
        session        = "ley",
        config         = PipelineConfig(target_chunk_size=100),
        require_models = False,
    )

    assert orch.config.target_chunk_size == 100
    assert orch.state.chunks == ()
