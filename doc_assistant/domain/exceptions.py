"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在会话控制器或 API 层做统一捕获与用户提示。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、status 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class MissingKeyError(BusinessError):
    """当前 Provider 没有配置 API Key（空字符串视为未配置）。"""

    def __init__(self, provider: str):
        super().__init__(
            code="MISSING_API_KEY",
            message=f"{provider.upper()}_MISSING_KEY",
            provider=provider,
        )
        self.provider = provider


class ContextTooLargeError(BusinessError):
    """文档上下文超过字符上限，拒绝发送。"""

    def __init__(self, original_length: int, limit: int):
        super().__init__(
            code="CONTEXT_TOO_LARGE",
            message=f"Document context has {original_length} chars, limit is {limit}",
            http_status=413,
        )
        self.original_length = original_length
        self.limit = limit


class BusyError(BusinessError):
    """已有流式请求在进行中时再次发送。"""

    def __init__(self):
        super().__init__(code="BUSY", message="A response is already streaming", http_status=409)


class HttpFailureError(BusinessError):
    """Provider 返回非 2xx 响应。body 保留原始响应文本便于排查。"""

    def __init__(self, provider: str, status: int, body: str = ""):
        super().__init__(
            code="HTTP_ERROR",
            message=f"{provider.upper()}_HTTP_{status}:{body}",
            http_status=status,
            provider=provider,
        )
        self.provider = provider
        self.status = status
        self.body = body


class MalformedEventError(BusinessError):
    """单个流式事件无法解析。适配器在本地恢复，不中断整个流。"""

    def __init__(self, payload: str, reason: Optional[str] = None):
        super().__init__(code="MALFORMED_EVENT", message=reason or "Malformed stream event")
        self.payload = payload


class StreamCancelledError(BusinessError):
    """取消令牌已触发。"""

    def __init__(self):
        super().__init__(code="CANCELLED", message="Generation stopped", http_status=499)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""
