from types import SimpleNamespace

import pytest

import ai_client
from ai_config import build_default_config

CONFIG = build_default_config({}).model_copy(update={
    "api_key": "sk-test",
    "api_url": "https://dashscope.example.com/api/v1",
    "model_name": "qwen-plus",
    "stream": False,
})


def _message(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _response(content, status_code=200):
    return SimpleNamespace(status_code=status_code, code="", message="", output=_message(content))


@pytest.fixture
def calls(monkeypatch):
    recorded = []

    def fake_call(**kwargs):
        recorded.append(kwargs)
        if kwargs.get("stream"):
            return iter([_response("命格"), _response("清奇。 ")])
        return _response("  解读内容  ")

    monkeypatch.setattr(ai_client.Generation, "call", fake_call)
    return recorded


def test_interpret_non_stream(calls):
    text = ai_client.interpret("ziwei", "命宫紫微", CONFIG)
    assert text == "解读内容"
    kwargs = calls[0]
    assert kwargs["model"] == "qwen-plus"
    assert kwargs["api_key"] == "sk-test"
    assert kwargs["max_tokens"] == CONFIG.max_tokens
    assert kwargs["temperature"] == CONFIG.temperature
    assert kwargs["request_timeout"] == CONFIG.timeout / 1000
    assert "stream" not in kwargs
    user = kwargs["messages"][-1]["content"]
    assert "命宫紫微" in user
    assert "紫微斗数" in user
    assert kwargs["base_address"] == CONFIG.api_url


def test_interpret_stream_concatenates_chunks(calls):
    text = ai_client.interpret("bazi", "甲子", CONFIG.model_copy(update={"stream": True}))
    assert text == "命格清奇。"
    assert calls[0]["stream"] is True
    assert calls[0]["incremental_output"] is True


def test_unknown_type_uses_bazi_template(calls):
    ai_client.interpret("tarot", "内容", CONFIG)
    assert "八字" in calls[0]["messages"][-1]["content"]


def test_invalid_config_rejected(calls):
    with pytest.raises(ValueError):
        ai_client.interpret("bazi", "甲子", CONFIG.model_copy(update={"api_key": ""}))
    assert calls == []


def test_empty_content_rejected(calls):
    with pytest.raises(ValueError):
        ai_client.interpret("bazi", "   ", CONFIG)


def test_api_error_raises(monkeypatch):
    monkeypatch.setattr(ai_client.Generation, "call", lambda **kw: _response("", status_code=401))
    with pytest.raises(RuntimeError):
        ai_client.interpret("qimen", "局", CONFIG)


def test_empty_output_raises(monkeypatch):
    resp = SimpleNamespace(status_code=200, code="", message="", output=None)
    monkeypatch.setattr(ai_client.Generation, "call", lambda **kw: resp)
    with pytest.raises(RuntimeError):
        ai_client.interpret("qimen", "局", CONFIG)


def test_base_address_is_passed_per_call(calls):
    cfg = CONFIG.model_copy(update={"api_url": "https://other.example.com"})
    ai_client.interpret("bazi", "甲子", cfg)
    ai_client.interpret("bazi", "甲子", CONFIG)
    assert calls[0]["base_address"] == "https://other.example.com"
    assert calls[1]["base_address"] == CONFIG.api_url
