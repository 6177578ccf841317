from typing import Any, Dict, Iterable, List, Optional, Union

import pytest

from doc_assistant.domain.models import (
    AssistantSettings,
    ContextError,
    DocumentContext,
    DocumentMeta,
    ProviderSettings,
    StreamRequest,
)


class SettingsStub:
    http_timeout = 1.0
    openai_base_url = "https://api.openai.com/v1"
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"
    gemini_temperature = 0.6


class FakeResponse:
    def __init__(self, chunks: Iterable[Union[str, bytes]], status_code: int = 200, body: bytes = b""):
        self.status_code = status_code
        self._chunks = list(chunks)
        self._body = body
        self.read_count = 0

    def iter_bytes(self):
        for chunk in self._chunks:
            self.read_count += 1
            yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk

    def read(self) -> bytes:
        return self._body


class StreamContext:
    def __init__(self, response):
        self._response = response

    def __enter__(self):
        return self._response

    def __exit__(self, *args):
        return False


class FakeHttp:
    """记录请求参数，并返回预置的流式响应。"""

    def __init__(self):
        self.response: Optional[FakeResponse] = None
        self.calls: List[Dict[str, Any]] = []

    def respond(self, chunks, status_code: int = 200, body: bytes = b"") -> FakeResponse:
        self.response = FakeResponse(chunks, status_code=status_code, body=body)
        return self.response

    @property
    def last(self) -> Dict[str, Any]:
        return self.calls[-1]


@pytest.fixture
def fake_http(monkeypatch):
    http = FakeHttp()

    class Client:
        def __init__(self, *a, **kw):
            self.kwargs = kw

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, *a, **kw):
            raise AssertionError("post should not be called in stream mode")

        def stream(self, method, url, **kw):
            http.calls.append({"method": method, "url": url, **kw})
            if http.response is None:
                raise AssertionError("no fake response configured")
            return StreamContext(http.response)

    monkeypatch.setattr("httpx.Client", Client)
    return http


@pytest.fixture
def no_network(monkeypatch):
    class Client:
        def __init__(self, *a, **kw):
            raise AssertionError("network should not be used")

    monkeypatch.setattr("httpx.Client", Client)


def make_settings(provider_id: str = "openai", key: str = "sk-" + "a" * 24, send_context: bool = True, model_id: str = ""):
    return AssistantSettings(
        provider_id=provider_id,
        providers={provider_id: ProviderSettings(api_key=key, model_id=model_id)},
        send_context=send_context,
    )


def make_context(text: Optional[str] = "Install with pip.", error: ContextError = ContextError.NONE):
    return DocumentContext(
        text=text,
        original_length=len(text or ""),
        trimmed_length=len(text or ""),
        limit=6000,
        meta=DocumentMeta(slug="guide/install", title="Install", headings=["Setup", "Usage"]),
        error=error,
    )


def make_request(input_text: str = "What is X?", history=None, settings=None, context=None) -> StreamRequest:
    return StreamRequest(
        input=input_text,
        history=list(history or []),
        context=context or make_context(),
        settings=settings or make_settings(),
    )
