"""Gemini Provider 适配器。

接口与 OpenAI 不同：
- URL: {base_url}/models/{model}:streamGenerateContent?alt=sse&key=<api_key>
- 认证: API Key 放在 query 参数中。
- 请求体: contents（不含 system 角色） + systemInstruction + generationConfig。

流式事件的形态并不统一，本实现按以下顺序尝试提取文本（每个候选对象只取第一个命中的形态）：

1. candidates[0].content.parts[].text（常见形态，拼接全部 parts）
2. candidates[0].delta.text
3. candidates[0].delta.content.parts[].text

负载可能是单个 JSON 对象，也可能是对象数组；`data:` 前缀有时缺失，
因此存在时去掉，但不强制要求。逐行解析都没有得到文本时，再把整个事件
重新拼接后解析一次（兼容跨多行输出的 JSON 数组）。
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
from doc_assistant.providers.registry import GEMINI_CONFIG
from doc_assistant.providers.sse import iter_events


# SSE 的非 data 字段行与注释行，直接忽略
_SSE_FIELD_LINE = re.compile(r"^(:|event:|id:|retry:)")
_MIN_KEY_LENGTH = 20


class GeminiClient:
    """Gemini 提供方客户端实现。"""

    name = GEMINI_CONFIG.name
    descriptor = GEMINI_CONFIG.descriptor

    def __init__(self, settings):
        self._settings = settings

    def resolve_model(self, settings: AssistantSettings) -> str:
        return configured_model(settings, self.name, GEMINI_CONFIG.default_model)

    def resolve_api_key(self, settings: AssistantSettings) -> Optional[str]:
        return trimmed_api_key(settings, self.name)

    def validate_key_shape(self, key: str) -> bool:
        return len((key or "").strip()) >= _MIN_KEY_LENGTH

    def stream(self, request: StreamRequest) -> Iterator[str]:
        """执行一次流式对话调用，Key 缺失时同步抛出 MissingKeyError。"""

        api_key = self.resolve_api_key(request.settings)
        if not api_key:
            raise MissingKeyError(self.name)
        model = self.resolve_model(request.settings)
        payload = self._build_payload(request)
        return self._iter_stream(api_key, model, payload, request)

    def _iter_stream(
        self,
        api_key: str,
        model: str,
        payload: Dict[str, Any],
        request: StreamRequest,
    ) -> Iterator[str]:
        base = getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url
        logger.info(
            "Starting provider stream",
            extra={"extra": {
                "provider": self.name,
                "model": model,
                "message_count": len(payload["contents"]),
            }},
        )
        started = time.time()
        try:
            # 已取消的请求不再发出
            request.cancellation.raise_if_cancelled()
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    f"{base}/models/{model}:streamGenerateContent",
                    params={"alt": "sse", "key": api_key},
                    json=payload,
                    headers={"Content-Type": "application/json"},
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
            # 异常信息里可能带有完整 URL（含 key），只保留异常类型
            raise NetworkError(code="NETWORK_ERROR", message=type(e).__name__, provider=self.name)
        logger.info(
            "Provider stream finished",
            extra={"extra": {"provider": self.name, "elapsed_seconds": round(time.time() - started, 2)}},
        )

    def _build_payload(self, request: StreamRequest) -> Dict[str, Any]:
        include_context = request.settings.send_context and bool(request.context.text)
        system_prompt = build_system_prompt(request.context, include_context)
        return {
            "contents": self._build_contents(request.history, request.input),
            "systemInstruction": {"role": "system", "parts": [{"text": system_prompt}]},
            "generationConfig": {
                "temperature": getattr(self._settings, "gemini_temperature", 0.6),
            },
        }

    @staticmethod
    def _build_contents(history: List[Message], user_input: str) -> List[Dict[str, Any]]:
        """Gemini 没有 system 角色的 content 条目，system 消息只进入 systemInstruction。"""

        contents: List[Dict[str, Any]] = []
        for message in history:
            if message.role == "system":
                continue
            contents.append({
                "role": "model" if message.role == "assistant" else "user",
                "parts": [{"text": message.content}],
            })
        contents.append({"role": "user", "parts": [{"text": user_input}]})
        return contents

    def _parse_event(self, event: str) -> Tuple[List[str], bool]:
        """解析单个事件，返回 (文本增量列表, 是否结束)。"""

        lines: List[str] = []
        for raw_line in event.split("\n"):
            line = raw_line.rstrip("\r")
            if line.startswith("data:"):
                line = line[5:]
            elif _SSE_FIELD_LINE.match(line):
                continue
            line = line.strip()
            if line:
                lines.append(line)
        if not lines:
            return [], False

        texts: List[str] = []
        failures = 0
        for line in lines:
            if line == "[DONE]":
                return texts, True
            try:
                texts.extend(extract_gemini_texts(parse_event_json(line)))
            except MalformedEventError:
                failures += 1

        if not texts and len(lines) > 1:
            try:
                texts.extend(extract_gemini_texts(parse_event_json("\n".join(lines))))
                failures = 0
            except MalformedEventError:
                pass

        if not texts and failures:
            logger.warning(
                "Skipped malformed stream event",
                extra={"extra": {"provider": self.name, "lines": len(lines)}},
            )
        return texts, False


def extract_gemini_texts(chunk: Any) -> List[str]:
    """从单个对象或对象数组中提取文本，每个对象最多产出一段文本。"""

    items = chunk if isinstance(chunk, list) else [chunk]
    texts: List[str] = []
    for item in items:
        candidate = _first_candidate(item)
        if candidate is None:
            continue

        combined = _join_parts(candidate.get("content"))
        if combined:
            texts.append(combined)
            continue

        delta = candidate.get("delta")
        if not isinstance(delta, dict):
            continue
        delta_text = delta.get("text")
        if isinstance(delta_text, str) and delta_text:
            texts.append(delta_text)
            continue

        combined_delta = _join_parts(delta.get("content"))
        if combined_delta:
            texts.append(combined_delta)
    return texts


def _first_candidate(item: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(item, dict):
        return None
    candidates = item.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        return candidates[0]
    return None


def _join_parts(container: Any) -> str:
    if not isinstance(container, dict):
        return ""
    parts = container.get("parts")
    if not isinstance(parts, list):
        return ""
    return "".join(
        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    )
