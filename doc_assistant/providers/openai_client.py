"""OpenAI Provider 适配器。

本模块负责：

1. 解析 OpenAI 的模型与 API Key 配置。
2. 将 StreamRequest 转换为 Chat Completions 的请求体（system 提示 + 历史 + 新输入）。
3. 以流式模式调用 HTTP 接口并处理网络/API 异常。
4. 把 `data: {...}` 事件解析为文本增量。

SSE 事件示例：
  data: {"choices":[{"delta":{"content":"Hel"}}]}
  data: {"choices":[{"delta":{"content":"lo"},"finish_reason":"stop"}]}
  data: [DONE]
"""

import re
import time
from typing import Any, Dict, Iterator, List, Optional, Tuple

import httpx

from doc_assistant.domain.exceptions import HttpFailureError, MalformedEventError, MissingKeyError, NetworkError
from doc_assistant.domain.models import AssistantSettings, Message, StreamRequest
from doc_assistant.infrastructure.logging.logger import logger
from doc_assistant.prompts import build_system_prompt
from doc_assistant.providers.base import (
    configured_model,
    guarded_fragments,
    parse_event_json,
    read_error_body,
    trimmed_api_key,
)
from doc_assistant.providers.registry import OPENAI_CONFIG
from doc_assistant.providers.sse import iter_events


_KEY_PATTERN = re.compile(r"^sk-\w{20,}")


class OpenAIClient:
    """OpenAI 提供方客户端实现。

    - name: Provider 名称（供日志/调试使用）。
    - stream: 对外统一调用入口，逐个 yield 文本增量。
    """

    name = OPENAI_CONFIG.name
    descriptor = OPENAI_CONFIG.descriptor

    def __init__(self, settings):
        # Settings 里包含 base_url、超时等进程级配置；API Key 来自用户偏好
        self._settings = settings

    def resolve_model(self, settings: AssistantSettings) -> str:
        return configured_model(settings, self.name, OPENAI_CONFIG.default_model)

    def resolve_api_key(self, settings: AssistantSettings) -> Optional[str]:
        return trimmed_api_key(settings, self.name)

    def validate_key_shape(self, key: str) -> bool:
        return bool(_KEY_PATTERN.match((key or "").strip()))

    def stream(self, request: StreamRequest) -> Iterator[str]:
        """执行一次流式对话调用。

        Key 缺失时在发起任何网络请求前同步抛出 MissingKeyError；
        其余错误在迭代过程中抛出。
        """

        api_key = self.resolve_api_key(request.settings)
        if not api_key:
            raise MissingKeyError(self.name)
        payload = self._build_payload(request)
        return self._iter_stream(api_key, payload, request)

    def _iter_stream(self, api_key: str, payload: Dict[str, Any], request: StreamRequest) -> Iterator[str]:
        base = getattr(self._settings, "openai_base_url", None) or OPENAI_CONFIG.base_url
        logger.info(
            "Starting provider stream",
            extra={"extra": {
                "provider": self.name,
                "model": payload["model"],
                "message_count": len(payload["messages"]),
            }},
        )
        started = time.time()
        try:
            # 已取消的请求不再发出
            request.cancellation.raise_if_cancelled()
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    f"{base}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                ) as resp:
                    if not 200 <= resp.status_code < 300:
                        body = read_error_body(resp)
                        logger.warning(
                            "Provider returned error status",
                            extra={"extra": {"provider": self.name, "status": resp.status_code}},
                        )
                        raise HttpFailureError(self.name, resp.status_code, body)
                    for event in iter_events(guarded_fragments(resp.iter_bytes(), request.cancellation)):
                        texts, done = self._parse_event(event)
                        for text in texts:
                            yield text
                        if done:
                            break
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时、读超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        logger.info(
            "Provider stream finished",
            extra={"extra": {"provider": self.name, "elapsed_seconds": round(time.time() - started, 2)}},
        )

    def _build_payload(self, request: StreamRequest) -> Dict[str, Any]:
        """将 StreamRequest 转成 Chat Completions 所需的请求 JSON。"""

        return {
            "model": self.resolve_model(request.settings),
            "stream": True,
            "messages": self._build_messages(request),
        }

    @staticmethod
    def _build_messages(request: StreamRequest) -> List[Dict[str, str]]:
        include_context = request.settings.send_context and bool(request.context.text)
        messages = [{"role": "system", "content": build_system_prompt(request.context, include_context)}]
        for message in request.history:
            messages.append(_message_to_payload(message))
        messages.append({"role": "user", "content": request.input})
        return messages

    def _parse_event(self, event: str) -> Tuple[List[str], bool]:
        """解析单个事件，返回 (文本增量列表, 是否结束)。"""

        part = event.strip()
        if not part.startswith("data:"):
            return [], False
        data = part[5:].lstrip()
        if data == "[DONE]":
            return [], True
        try:
            parsed = parse_event_json(data)
        except MalformedEventError as e:
            # 单个坏帧只跳过，不中断整个流
            logger.warning(
                "Skipped malformed stream event",
                extra={"extra": {"provider": self.name, "error": e.message}},
            )
            return [], False

        choice = _first_choice(parsed)
        texts: List[str] = []
        delta = choice.get("delta") if isinstance(choice.get("delta"), dict) else {}
        text = delta.get("content")
        if isinstance(text, str) and text:
            texts.append(text)
        return texts, bool(choice.get("finish_reason"))


def _first_choice(parsed: Any) -> Dict[str, Any]:
    if not isinstance(parsed, dict):
        return {}
    choices = parsed.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


def _message_to_payload(message: Message) -> Dict[str, str]:
    if message.role == "system":
        return {"role": "system", "content": message.content}
    role = "assistant" if message.role == "assistant" else "user"
    return {"role": role, "content": message.content}
