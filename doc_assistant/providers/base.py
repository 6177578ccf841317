"""Provider 抽象接口。

会话控制器不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商实现一个适配器（如 OpenAIClient、GeminiClient）。
- 负责：模型/Key 解析、请求构造，以及把流式事件解析为文本增量。

这样接入更多厂商时，只需新增一个适配器并注册到 ProviderRegistry。
"""

import json
from typing import Any, Iterable, Iterator, Optional, Protocol

import httpx

from doc_assistant.domain.cancellation import CancellationToken
from doc_assistant.domain.exceptions import MalformedEventError
from doc_assistant.domain.models import AssistantSettings, ProviderDescriptor, StreamRequest


class ProviderAdapter(Protocol):
    """流式 Provider 适配器协议。

    实现者需要提供：
    - name / descriptor: Provider 标识与展示信息。
    - resolve_model / resolve_api_key / validate_key_shape: 读取用户配置。
    - stream(request): 发起一次流式请求，逐个产出文本增量。
    """

    name: str
    descriptor: ProviderDescriptor

    def resolve_model(self, settings: AssistantSettings) -> str:
        ...

    def resolve_api_key(self, settings: AssistantSettings) -> Optional[str]:
        ...

    def validate_key_shape(self, key: str) -> bool:
        ...

    def stream(self, request: StreamRequest) -> Iterator[str]:
        """执行一次流式对话调用，逐步产出文本增量。"""

        ...


def trimmed_api_key(settings: AssistantSettings, provider_id: str) -> Optional[str]:
    """读取并去除首尾空白，空字符串视为未配置。"""

    key = (settings.for_provider(provider_id).api_key or "").strip()
    return key or None


def configured_model(settings: AssistantSettings, provider_id: str, default: str) -> str:
    model = (settings.for_provider(provider_id).model_id or "").strip()
    return model or default


def parse_event_json(payload: str) -> Any:
    """解析单个事件的 JSON 负载，失败时抛出 MalformedEventError。"""

    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedEventError(payload=payload, reason=str(e))


def guarded_fragments(fragments: Iterable[bytes], token: CancellationToken) -> Iterator[bytes]:
    """在读取每个传输片段前后检查取消令牌。"""

    token.raise_if_cancelled()
    for fragment in fragments:
        token.raise_if_cancelled()
        yield fragment


def read_error_body(resp: httpx.Response) -> str:
    """读取错误响应体；读取本身失败时返回异常描述。"""

    try:
        return resp.read().decode("utf-8", errors="replace")
    except (httpx.HTTPError, httpx.StreamError) as e:
        return str(e)
