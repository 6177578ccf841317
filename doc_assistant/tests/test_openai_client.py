import json

import pytest

from conftest import SettingsStub, make_context, make_request, make_settings
from doc_assistant.domain.exceptions import HttpFailureError, MissingKeyError, StreamCancelledError
from doc_assistant.domain.models import Message
from doc_assistant.providers.openai_client import OpenAIClient
from doc_assistant.providers.registry import OPENAI_DEFAULT_MODEL


def _event(content=None, finish_reason=None) -> str:
    choice = {"index": 0, "delta": {}}
    if content is not None:
        choice["delta"]["content"] = content
    if finish_reason is not None:
        choice["finish_reason"] = finish_reason
    return "data: " + json.dumps({"choices": [choice]}) + "\n\n"


def test_openai_stream_hello_scenario(fake_http):
    fake_http.respond([
        'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n',
        'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n',
        "data: [DONE]\n\n",
    ])
    client = OpenAIClient(SettingsStub())
    assert list(client.stream(make_request("What is X?"))) == ["Hel", "lo"]


def test_openai_stream_concatenates_deltas_in_order(fake_http):
    pieces = ["The ", "quick ", "brown ", "fox"]
    # 事件被任意切分到不同的传输片段里
    raw = "".join(_event(p) for p in pieces) + "data: [DONE]\n\n"
    fake_http.respond([raw[i:i + 7] for i in range(0, len(raw), 7)])
    client = OpenAIClient(SettingsStub())
    assert "".join(client.stream(make_request())) == "The quick brown fox"


def test_openai_stream_ends_after_finish_reason(fake_http):
    fake_http.respond([_event("a"), _event("b", finish_reason="stop"), _event("never")])
    client = OpenAIClient(SettingsStub())
    assert list(client.stream(make_request())) == ["a", "b"]


def test_openai_stream_skips_malformed_event(fake_http):
    fake_http.respond([_event("a"), "data: {not json\n\n", _event("b"), "data: [DONE]\n\n"])
    client = OpenAIClient(SettingsStub())
    assert list(client.stream(make_request())) == ["a", "b"]


def test_openai_stream_ignores_non_data_events(fake_http):
    fake_http.respond([": keep-alive\n\n", _event("a"), "event: ping\n\n", _event(""), "data: [DONE]\n\n"])
    client = OpenAIClient(SettingsStub())
    assert list(client.stream(make_request())) == ["a"]


def test_openai_missing_key_fails_before_network(no_network):
    client = OpenAIClient(SettingsStub())
    with pytest.raises(MissingKeyError):
        client.stream(make_request(settings=make_settings(key="   ")))


def test_openai_http_failure(fake_http):
    fake_http.respond([], status_code=401, body=b'{"error": "invalid key"}')
    client = OpenAIClient(SettingsStub())
    with pytest.raises(HttpFailureError) as exc_info:
        list(client.stream(make_request()))
    assert exc_info.value.status == 401
    assert "invalid key" in exc_info.value.body


def test_openai_request_payload(fake_http):
    fake_http.respond(["data: [DONE]\n\n"])
    history = [
        Message(role="user", content="first", provider_id="openai"),
        Message(role="assistant", content="answer", provider_id="openai"),
        Message(role="system", content="note", provider_id="openai"),
    ]
    client = OpenAIClient(SettingsStub())
    list(client.stream(make_request("next?", history=history)))

    call = fake_http.last
    assert call["method"] == "POST"
    assert call["url"] == "https://api.openai.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-" + "a" * 24
    body = call["json"]
    assert body["model"] == OPENAI_DEFAULT_MODEL
    assert body["stream"] is True
    roles = [m["role"] for m in body["messages"]]
    assert roles == ["system", "user", "assistant", "system", "user"]
    assert body["messages"][-1]["content"] == "next?"
    system_prompt = body["messages"][0]["content"]
    assert "Document slug: guide/install" in system_prompt
    assert "Title: Install" in system_prompt
    assert "Headings: Setup | Usage" in system_prompt
    assert system_prompt.endswith("Document content:\nInstall with pip.")


def test_openai_payload_without_context(fake_http):
    fake_http.respond(["data: [DONE]\n\n"])
    client = OpenAIClient(SettingsStub())
    list(client.stream(make_request(settings=make_settings(send_context=False, model_id="gpt-4o"))))
    body = fake_http.last["json"]
    assert body["model"] == "gpt-4o"
    assert "Document content" not in body["messages"][0]["content"]


def test_openai_payload_context_missing_text(fake_http):
    fake_http.respond(["data: [DONE]\n\n"])
    client = OpenAIClient(SettingsStub())
    list(client.stream(make_request(context=make_context(text=None))))
    assert "Document slug" not in fake_http.last["json"]["messages"][0]["content"]


def test_openai_stream_checks_cancellation(fake_http):
    fake_http.respond([_event("a"), _event("b"), "data: [DONE]\n\n"])
    client = OpenAIClient(SettingsStub())
    request = make_request()
    stream = client.stream(request)
    assert next(stream) == "a"
    request.cancellation.cancel()
    with pytest.raises(StreamCancelledError):
        next(stream)


def test_openai_validate_key_shape():
    client = OpenAIClient(SettingsStub())
    assert client.validate_key_shape(" sk-" + "x" * 20 + " ")
    assert not client.validate_key_shape("sk-short")
    assert not client.validate_key_shape("AIza" + "x" * 30)
