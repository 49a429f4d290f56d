import tempfile
from pathlib import Path

import pytest

from chat_core.config.settings import Settings
from chat_core.providers.registry import build_openai_config, resolve_chat_model, resolve_image_model


def test_yaml_config_file(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        cfg = Path(d) / "chat.yaml"
        cfg.write_text("primary_model: gpt-4.1\ntitle_max_length: 12\n", encoding="utf-8")
        monkeypatch.setenv("CHAT_CONFIG_FILE", str(cfg))
        monkeypatch.delenv("PRIMARY_MODEL", raising=False)
        s = Settings()
        assert s.primary_model == "gpt-4.1"
        assert s.title_max_length == 12


def test_environment_overrides_yaml(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        cfg = Path(d) / "chat.yaml"
        cfg.write_text("economy_model: from-yaml\n", encoding="utf-8")
        monkeypatch.setenv("CHAT_CONFIG_FILE", str(cfg))
        monkeypatch.setenv("ECONOMY_MODEL", "from-env")
        assert Settings().economy_model == "from-env"


def test_short_api_key_rejected():
    with pytest.raises(ValueError):
        Settings(openai_api_key="short")


def test_registry_resolution():
    cfg = build_openai_config(Settings(primary_model="gpt-4o", economy_model="gpt-4o-mini"))
    assert resolve_chat_model(cfg, "primary").provider_model == "gpt-4o"
    assert resolve_chat_model(cfg, "economy").provider_model == "gpt-4o-mini"
    assert resolve_chat_model(cfg, "gpt-3.5-turbo").provider_model == "gpt-3.5-turbo"
    assert resolve_image_model(cfg, "dall-e-3").size == "1024x1024"
    with pytest.raises(KeyError):
        resolve_image_model(cfg, "midjourney")
