import json

import pytest

import ai_config
import config


@pytest.fixture
def kv_path(tmp_path, monkeypatch):
    path = tmp_path / "data" / "kv_store.json"
    monkeypatch.setattr(config, "KV_STORE_PATH", str(path))
    monkeypatch.setattr(config, "RUNTIME_CONFIG_URL", "")
    monkeypatch.setattr(ai_config, "_store", None)
    return path


def test_get_store_is_built_once(kv_path):
    store = ai_config.get_store()
    assert ai_config.get_store() is store
    assert store.kv_store.path == kv_path


def test_get_config_without_file_returns_defaults(kv_path):
    assert ai_config.get_config() == ai_config.get_default_config()
    assert not kv_path.exists()


async def test_save_then_read_back_through_file(kv_path):
    assert await ai_config.save_config({"apiKey": "k1"}) is True

    assert ai_config.get_config().api_key == "k1"
    # 运行时服务未配置时降级为本地配置
    assert (await ai_config.get_config_async()).api_key == "k1"

    stored = json.loads(kv_path.read_text(encoding="utf-8"))
    saved = json.loads(stored["ai-config"])
    expected = ai_config.get_default_config().model_copy(update={"api_key": "k1"})
    assert saved == expected.to_dict()


async def test_save_keeps_previous_fields_in_file(kv_path):
    assert await ai_config.save_config({"modelName": "glm-4-plus"})
    assert await ai_config.save_config({"maxTokens": 2048})
    cfg = ai_config.get_config()
    assert cfg.model_name == "glm-4-plus"
    assert cfg.max_tokens == 2048
