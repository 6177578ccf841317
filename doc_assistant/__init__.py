"""Doc Assistant 顶层包。

该包提供“针对当前文档与大模型对话”的流式核心实现，
包括配置加载、领域模型、Provider 适配（OpenAI / Gemini）、
流式事件切分、会话控制器、错误分类以及本地偏好存储等能力。
"""

from doc_assistant.agents.session import SessionController, SessionEvent
from doc_assistant.infrastructure.documents.context_loader import load_document_context
from doc_assistant.providers import ProviderRegistry, create_registry

__all__ = [
    "SessionController",
    "SessionEvent",
    "ProviderRegistry",
    "create_registry",
    "load_document_context",
]
