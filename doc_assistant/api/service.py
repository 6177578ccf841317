"""对外 API 服务模块。

提供简化的函数接口供界面层调用，返回值均为可直接序列化为 JSON 的 dict。
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

from doc_assistant.agents.session import SessionController
from doc_assistant.config.settings import settings
from doc_assistant.domain.models import DocumentContext
from doc_assistant.infrastructure.documents.context_loader import load_document_context
from doc_assistant.infrastructure.logging.logger import logger
from doc_assistant.infrastructure.storage.json_store import JsonKeyValueStore
from doc_assistant.infrastructure.storage.settings_store import SettingsRepository
from doc_assistant.providers import create_registry


_repository: Optional[SettingsRepository] = None
_session: Optional[SessionController] = None


def get_settings_repository() -> SettingsRepository:
    """获取默认的偏好仓库（单例）。"""
    global _repository
    if _repository is None:
        _repository = SettingsRepository(JsonKeyValueStore(root=settings.storage_root))
    return _repository


def get_default_session(document_path: Optional[str | Path] = None) -> SessionController:
    """获取默认会话（单例）。首次调用或传入新文档时创建。

    文档上下文只在创建会话时提取一次，会话期间保持不变。
    """
    global _session
    if _session is None or document_path is not None:
        if document_path is None:
            raise ValueError("document_path is required to start a session")
        context = load_document_context(document_path)
        _session = SessionController(
            context=context,
            settings_loader=get_settings_repository().load,
            registry=create_registry(settings),
        )
        logger.info(
            "Session started",
            extra={"extra": {"slug": context.meta.slug, "context_error": context.error.value}},
        )
    return _session


def configure_session(
    session: Optional[SessionController],
    repository: Optional[SettingsRepository] = None,
) -> None:
    """替换默认会话与偏好仓库（测试或嵌入场景使用），传 None 重置。"""
    global _session, _repository
    _session = session
    _repository = repository


def send_message(user_input: str) -> Dict[str, Any]:
    """发送消息并等待流结束，返回最新状态。

    被拒绝（忙碌、上下文过长、缺少 Key）时不抛异常，错误体现在返回状态的 error 字段。
    """
    get_default_session().send(user_input)
    return get_state()


def stop_generation() -> Dict[str, Any]:
    get_default_session().stop()
    return get_state()


def reset_conversation() -> Dict[str, Any]:
    get_default_session().reset()
    return get_state()


def clear_error() -> Dict[str, Any]:
    get_default_session().clear_error()
    return get_state()


def list_providers() -> List[Dict[str, Any]]:
    """列出可选的 Provider 展示信息。"""
    return [d.to_dict() for d in get_default_session().descriptors]


def get_state() -> Dict[str, Any]:
    """当前会话状态：消息列表、是否在流式输出、当前错误、Provider 信息与文档上下文摘要。"""
    session = get_default_session()
    return {
        "messages": [m.to_dict() for m in session.messages],
        "is_streaming": session.is_streaming,
        "status": session.status.value,
        "error": session.error.to_dict() if session.error else None,
        "provider": session.active_provider().to_dict(),
        "providers": [d.to_dict() for d in session.descriptors],
        "context": _context_summary(session.context),
    }


def update_settings(
    provider_id: Optional[str] = None,
    api_key: Optional[str] = None,
    model_id: Optional[str] = None,
    send_context: Optional[bool] = None,
    target_provider: Optional[str] = None,
) -> Dict[str, Any]:
    """修改用户偏好。返回值中的 API Key 只保留是否已配置的标记。"""
    updated = get_settings_repository().update(
        provider_id=provider_id,
        api_key=api_key,
        model_id=model_id,
        send_context=send_context,
        target_provider=target_provider,
    )
    return {
        "provider_id": updated.provider_id,
        "send_context": updated.send_context,
        "providers": {
            name: {"model_id": entry.model_id, "has_key": bool(entry.api_key.strip())}
            for name, entry in updated.providers.items()
        },
    }


def check_api_key(provider_id: str, key: str) -> bool:
    """对 Key 做本地格式检查（不发网络请求），仅用于界面提示。"""
    return create_registry(settings).get(provider_id).validate_key_shape(key)


def _context_summary(context: DocumentContext) -> Dict[str, Any]:
    return {
        "slug": context.meta.slug,
        "title": context.meta.title,
        "headings": list(context.meta.headings),
        "error": context.error.value,
        "original_length": context.original_length,
        "trimmed_length": context.trimmed_length,
        "limit": context.limit,
    }
