"""统一的对话与文档上下文数据模型。

本模块定义了文档助手在不同 Provider 之间共享的标准数据结构：

- Message: 会话记录中的一条消息（user/assistant/system）。
- AssistantSettings: 用户偏好（当前 Provider、各 Provider 的 Key 与模型、是否发送上下文）。
- DocumentContext: 由文档上下文提取器生成的只读上下文。
- ProviderDescriptor: Provider 的展示信息，不含任何行为。
- StreamRequest: 单次发送时构造的临时请求，不做持久化。

所有 Provider 适配器（如 OpenAIClient）都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from doc_assistant.domain.cancellation import CancellationToken


# 会话消息角色（与 OpenAI 等厂商的 role 字段对应）
Role = Literal["user", "assistant", "system"]

OPENAI_PROVIDER_ID = "openai"
GEMINI_PROVIDER_ID = "gemini"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """会话中的一条消息。

    assistant 消息在流式过程中由会话控制器原地追加 content，
    流结束（成功、失败或取消）后不再修改。
    """

    role: Role
    content: str
    provider_id: str
    id: str = field(default_factory=lambda: f"m-{uuid4().hex}")
    created_at: datetime = field(default_factory=_utcnow)

    def append(self, text: str) -> None:
        self.content += text

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "provider_id": self.provider_id,
            "created_at": self.created_at.isoformat(),
        }


class ProviderSettings(BaseModel):
    """单个 Provider 的用户配置。"""

    api_key: str = ""
    model_id: str = ""


class AssistantSettings(BaseModel):
    """用户偏好，由界面层负责修改与持久化，核心只读。"""

    provider_id: str = OPENAI_PROVIDER_ID
    providers: Dict[str, ProviderSettings] = Field(default_factory=dict)
    send_context: bool = True

    def for_provider(self, provider_id: str) -> ProviderSettings:
        return self.providers.get(provider_id) or ProviderSettings()


class ContextError(str, Enum):
    NONE = "none"
    TOO_LONG = "too_long"
    MISSING = "missing"


@dataclass(frozen=True)
class DocumentMeta:
    slug: str
    title: Optional[str] = None
    headings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DocumentContext:
    """当前文档的纯文本上下文。

    - text: 截断后的纯文本；error 为 too_long / missing 时为 None。
    - original_length: 规范化后（未截断）的长度。
    - trimmed_length: 截断后的长度。
    - limit: 字符上限。
    """

    text: Optional[str]
    original_length: int
    trimmed_length: int
    limit: int
    meta: DocumentMeta
    error: ContextError = ContextError.NONE

    @property
    def too_long(self) -> bool:
        return self.error == ContextError.TOO_LONG


@dataclass(frozen=True)
class ProviderDescriptor:
    """Provider 的静态展示信息。short_label 用于错误提示等短文案。"""

    id: str
    label: str
    description: str
    default_model: str
    docs_url: Optional[str] = None
    short_label: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "default_model": self.default_model,
            "docs_url": self.docs_url,
            "short_label": self.short_label,
        }


@dataclass
class StreamRequest:
    """一次发送对应的流式请求。

    history 只包含本次发送之前的消息，新输入放在 input 中，
    由各适配器自行追加到请求体末尾。
    """

    input: str
    history: List[Message]
    context: DocumentContext
    settings: AssistantSettings
    cancellation: CancellationToken = field(default_factory=CancellationToken)
