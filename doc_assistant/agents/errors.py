"""错误分类。

把底层异常映射为与 Provider 无关的错误类别，再按类别与 Provider
生成面向用户的提示文案。测试应断言类别，而不是文案。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from doc_assistant.domain.exceptions import (
    BusinessError,
    BusyError,
    ContextTooLargeError,
    HttpFailureError,
    MalformedEventError,
    MissingKeyError,
    StreamCancelledError,
)
from doc_assistant.domain.models import ProviderDescriptor


class ErrorCategory(str, Enum):
    MISSING_KEY = "missing_key"
    CONTEXT_TOO_LARGE = "context_too_large"
    BUSY = "busy"
    HTTP_FAILURE = "http_failure"
    MALFORMED_EVENT = "malformed_event"
    CANCELLED = "cancelled"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class SessionError:
    """展示给界面层的当前错误（同一时间只有一个）。"""

    category: ErrorCategory
    message: str
    provider_id: Optional[str] = None
    status: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "message": self.message,
            "provider_id": self.provider_id,
            "status": self.status,
        }


_CATEGORY_BY_TYPE = (
    (MissingKeyError, ErrorCategory.MISSING_KEY),
    (ContextTooLargeError, ErrorCategory.CONTEXT_TOO_LARGE),
    (BusyError, ErrorCategory.BUSY),
    (HttpFailureError, ErrorCategory.HTTP_FAILURE),
    (MalformedEventError, ErrorCategory.MALFORMED_EVENT),
    (StreamCancelledError, ErrorCategory.CANCELLED),
)


def classify(exc: BaseException) -> ErrorCategory:
    for exc_type, category in _CATEGORY_BY_TYPE:
        if isinstance(exc, exc_type):
            return category
    return ErrorCategory.UNRECOGNIZED


def describe(category: ErrorCategory, provider_label: str, detail: Optional[str] = None) -> str:
    """按类别生成提示文案。"""

    if category == ErrorCategory.MISSING_KEY:
        return f"Please enter a valid {provider_label} API key."
    if category == ErrorCategory.CONTEXT_TOO_LARGE:
        return "This page is longer than the current context limit."
    if category == ErrorCategory.BUSY:
        return "Wait for the current response to finish or stop it first."
    if category == ErrorCategory.HTTP_FAILURE:
        return f"{provider_label} request failed. Check your key, model, or try again later."
    if category == ErrorCategory.MALFORMED_EVENT:
        return f"{provider_label} sent a response that could not be read."
    if category == ErrorCategory.CANCELLED:
        return "Generation stopped."
    return detail or "Request failed. Please try again."


def to_session_error(exc: BaseException, descriptor: ProviderDescriptor) -> SessionError:
    category = classify(exc)
    detail = exc.message if isinstance(exc, BusinessError) else str(exc)
    status = exc.status if isinstance(exc, HttpFailureError) else None
    return SessionError(
        category=category,
        message=describe(category, descriptor.short_label or descriptor.label, detail),
        provider_id=descriptor.id,
        status=status,
    )
