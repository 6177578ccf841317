"""流式会话控制器。

负责一次发送的完整编排：校验输入与状态、构造 StreamRequest、
调用当前 Provider 的流式接口，并把文本增量按到达顺序追加到
assistant 消息上。同一时间最多只有一个进行中的请求。

状态流转：
    IDLE -> SENDING -> IDLE                （正常结束或出错）
    IDLE -> SENDING -> CANCELLING -> IDLE  （用户调用 stop）
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Literal, Optional, Tuple
from uuid import uuid4
import logging
import threading
import time

from doc_assistant.agents.errors import ErrorCategory, SessionError, describe, to_session_error
from doc_assistant.domain.cancellation import CancellationToken
from doc_assistant.domain.conversation import SessionStatus, Transcript
from doc_assistant.domain.exceptions import (
    BusinessError,
    BusyError,
    ContextTooLargeError,
    MissingKeyError,
    StreamCancelledError,
)
from doc_assistant.domain.models import (
    AssistantSettings,
    DocumentContext,
    Message,
    ProviderDescriptor,
    StreamRequest,
)
from doc_assistant.infrastructure.logging.logger import logger
from doc_assistant.providers import ProviderRegistry
from doc_assistant.providers.base import ProviderAdapter


SettingsLoader = Callable[[], AssistantSettings]


@dataclass
class SessionEvent:
    """send_stream 产生的流式事件。

    kind:
        - "delta": 一个文本增量已追加到 assistant 消息。
        - "final": 流正常结束。
        - "error": 流因错误结束，error 携带当前错误；已累积的内容保留。
        - "stopped": 流因用户取消结束。
    """

    kind: Literal["delta", "final", "error", "stopped"]
    user_message: Message
    assistant_message: Message
    delta_text: Optional[str] = None
    error: Optional[SessionError] = None


class SessionController:
    def __init__(
        self,
        context: DocumentContext,
        settings_loader: SettingsLoader,
        registry: ProviderRegistry,
    ):
        self._context = context
        self._load_settings = settings_loader
        self._registry = registry
        self._transcript = Transcript()
        self._status = SessionStatus.IDLE
        self._error: Optional[SessionError] = None
        self._token: Optional[CancellationToken] = None
        self._active: Optional[ProviderDescriptor] = None
        self._lock = threading.Lock()

    # ---- 只读视图（供界面层渲染） ----

    @property
    def messages(self) -> Tuple[Message, ...]:
        return self._transcript.snapshot()

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_streaming(self) -> bool:
        return self._status != SessionStatus.IDLE

    @property
    def error(self) -> Optional[SessionError]:
        return self._error

    @property
    def context(self) -> DocumentContext:
        return self._context

    @property
    def descriptors(self) -> List[ProviderDescriptor]:
        return self._registry.descriptors()

    def active_provider(self) -> ProviderDescriptor:
        return self._registry.get(self._load_settings().provider_id).descriptor

    # ---- 变更操作 ----

    def send(self, user_input: str) -> Optional[Message]:
        """发送并消费完整个流，返回 assistant 消息；被拒绝时返回 None。"""

        assistant: Optional[Message] = None
        for event in self.send_stream(user_input):
            assistant = event.assistant_message
        return assistant

    def send_stream(self, user_input: str) -> Iterator[SessionEvent]:
        """校验并受理一次发送，返回驱动流式消费的迭代器。

        所有拒绝（空输入、忙碌、上下文过长、缺少 Key）都在这里同步完成，
        不会发起网络请求，也不会向会话追加消息；此时返回空迭代器。
        """

        text = (user_input or "").strip()
        if not text:
            return iter(())

        settings = self._load_settings()
        adapter = self._registry.get(settings.provider_id)
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "provider": adapter.name,
        }

        if self._status != SessionStatus.IDLE:
            self._reject(BusyError(), adapter, log_ctx)
            return iter(())
        if self._context.too_long:
            self._reject(
                ContextTooLargeError(self._context.original_length, self._context.limit),
                adapter,
                log_ctx,
            )
            return iter(())
        if adapter.resolve_api_key(settings) is None:
            self._reject(MissingKeyError(adapter.name), adapter, log_ctx)
            return iter(())

        token = CancellationToken()
        request = StreamRequest(
            input=text,
            history=[m for m in self._transcript if m.content],
            context=self._context,
            settings=settings,
            cancellation=token,
        )
        try:
            increments = adapter.stream(request)
        except BusinessError as e:
            self._reject(e, adapter, log_ctx)
            return iter(())

        user_msg = self._transcript.append(Message(role="user", content=text, provider_id=adapter.name))
        assistant_msg = self._transcript.append(Message(role="assistant", content="", provider_id=adapter.name))
        self._error = None
        self._status = SessionStatus.SENDING
        self._token = token
        self._active = adapter.descriptor
        self._log(
            logging.INFO,
            "Accepted message",
            log_ctx,
            model=adapter.resolve_model(settings),
            history_count=len(request.history),
            user_message_id=user_msg.id,
            assistant_message_id=assistant_msg.id,
        )
        return self._consume(increments, token, user_msg, assistant_msg, adapter, log_ctx)

    def stop(self) -> None:
        """取消进行中的流；已在途的增量被丢弃，assistant 消息保留取消前的内容。"""

        with self._lock:
            if self._status != SessionStatus.SENDING or self._token is None:
                return
            self._status = SessionStatus.CANCELLING
            self._token.cancel()
            self._token = None
        label = self._active.label if self._active else ""
        self._error = SessionError(
            category=ErrorCategory.CANCELLED,
            message=describe(ErrorCategory.CANCELLED, label),
            provider_id=self._active.id if self._active else None,
        )
        self._status = SessionStatus.IDLE
        logger.info("Stream stopped by user", extra={"extra": {"provider": self._error.provider_id}})

    def reset(self) -> None:
        """停止当前流，并清空会话与错误。"""

        self.stop()
        self._transcript.clear()
        self._error = None
        logger.info("Conversation reset")

    def set_error(self, error: Optional[SessionError]) -> None:
        self._error = error

    def clear_error(self) -> None:
        self._error = None

    # ---- 内部实现 ----

    def _consume(
        self,
        increments: Iterator[str],
        token: CancellationToken,
        user_msg: Message,
        assistant_msg: Message,
        adapter: ProviderAdapter,
        log_ctx: Dict[str, Any],
    ) -> Iterator[SessionEvent]:
        started = time.time()
        applied = 0
        try:
            try:
                for delta_text in increments:
                    # 取消之后到达的增量一律丢弃；检查与追加需和 stop() 互斥
                    with self._lock:
                        if token.cancelled:
                            break
                        if delta_text:
                            assistant_msg.append(delta_text)
                    if not delta_text:
                        continue
                    applied += 1
                    yield SessionEvent(
                        kind="delta",
                        user_message=user_msg,
                        assistant_message=assistant_msg,
                        delta_text=delta_text,
                    )
                    if token.cancelled:
                        break
            except StreamCancelledError:
                pass
            except Exception as e:
                if token.cancelled or self._token is not token:
                    self._log(logging.INFO, "Ignored error from cancelled stream", log_ctx, error=str(e))
                    return
                error = to_session_error(e, adapter.descriptor)
                self._finish(token)
                self._error = error
                self._log(
                    logging.ERROR,
                    "Stream failed",
                    log_ctx,
                    category=error.category.value,
                    status=error.status,
                    applied_increments=applied,
                    error=str(e),
                )
                yield SessionEvent(
                    kind="error",
                    user_message=user_msg,
                    assistant_message=assistant_msg,
                    error=error,
                )
                return

            if token.cancelled:
                self._log(logging.INFO, "Stream cancelled", log_ctx, applied_increments=applied)
                yield SessionEvent(
                    kind="stopped",
                    user_message=user_msg,
                    assistant_message=assistant_msg,
                    error=self._error,
                )
                return

            self._finish(token)
            self._log(
                logging.INFO,
                "Completed stream",
                log_ctx,
                elapsed_seconds=round(time.time() - started, 2),
                applied_increments=applied,
                assistant_message_id=assistant_msg.id,
            )
            yield SessionEvent(kind="final", user_message=user_msg, assistant_message=assistant_msg)
        finally:
            close = getattr(increments, "close", None)
            if close is not None:
                close()
            self._finish(token)

    def _finish(self, token: CancellationToken) -> None:
        # 已被 stop()/新请求取代的流不再改变会话状态
        if self._token is token:
            self._token = None
            self._status = SessionStatus.IDLE

    def _reject(self, exc: BusinessError, adapter: ProviderAdapter, log_ctx: Dict[str, Any]) -> None:
        self._error = to_session_error(exc, adapter.descriptor)
        self._log(logging.WARNING, "Rejected message", log_ctx, code=exc.code)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
