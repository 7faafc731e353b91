"""Tests for settings loading from YAML and the environment."""
from pathlib import Path

import pytest

from newsletter_rag.config import load_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    monkeypatch.delenv("NEWSLETTER_RAG_CONFIG", raising=False)
    # keep load_dotenv() away from any developer .env
    monkeypatch.chdir(tmp_path)


def test_defaults_without_config_file():
    settings = load_settings()
    assert settings.top_k == 4
    assert settings.embed_batch_size == 10
    assert settings.embed_max_chars == 2000
    assert settings.openrouter_model == "openrouter/auto"
    assert settings.gemini_api_key is None


def test_yaml_values_and_env_credentials(tmp_path, monkeypatch):
    cfg = tmp_path / "custom.yaml"
    cfg.write_text("top_k: 7\ncache_path: cache/e.json\ngemini_api_key: from-yaml\n", encoding="utf-8")
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")

    settings = load_settings(cfg)
    assert settings.top_k == 7
    assert settings.cache_path == Path("cache/e.json")
    assert settings.gemini_api_key == "from-env"
    assert settings.openrouter_api_key is None


def test_overrides_win(tmp_path):
    settings = load_settings(None, top_k=2)
    assert settings.top_k == 2


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "nope.yaml")


def test_credentials_not_in_repr(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "secret-value")
    assert "secret-value" not in repr(load_settings())
