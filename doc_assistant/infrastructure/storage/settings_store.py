"""用户偏好的持久化。

读取时容忍缺失或损坏的存储值：回退到默认偏好并记录诊断日志，
永远不把异常抛给调用方。写入失败则正常抛出 BusinessError。
"""

from typing import Optional

from pydantic import ValidationError

from doc_assistant.config.settings import settings as app_settings
from doc_assistant.domain.exceptions import BusinessError
from doc_assistant.domain.models import AssistantSettings, ProviderSettings
from doc_assistant.domain.storage import KeyValueStore
from doc_assistant.infrastructure.logging.logger import logger
from doc_assistant.providers.registry import PROVIDER_REGISTRY


def create_default_settings() -> AssistantSettings:
    """默认偏好：OpenAI 为当前 Provider，各 Provider Key 为空、模型为默认模型，发送上下文。"""

    return AssistantSettings(
        provider_id=next(iter(PROVIDER_REGISTRY)),
        providers={
            name: ProviderSettings(api_key="", model_id=cfg.default_model)
            for name, cfg in PROVIDER_REGISTRY.items()
        },
        send_context=True,
    )


class SettingsRepository:
    def __init__(self, store: KeyValueStore, key: Optional[str] = None):
        self._store = store
        self._key = key or app_settings.settings_key

    def load(self) -> AssistantSettings:
        try:
            raw = self._store.get(self._key)
        except BusinessError as e:
            logger.warning(
                "Failed to read stored settings, using defaults",
                extra={"extra": {"key": self._key, "code": e.code, "error": e.message}},
            )
            return create_default_settings()
        if not raw:
            return create_default_settings()
        try:
            loaded = AssistantSettings.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Stored settings are corrupt, using defaults",
                extra={"extra": {"key": self._key, "errors": e.error_count()}},
            )
            return create_default_settings()
        return self._fill_missing_providers(loaded)

    def save(self, value: AssistantSettings) -> None:
        self._store.set(self._key, value.model_dump_json())

    def update(
        self,
        provider_id: Optional[str] = None,
        api_key: Optional[str] = None,
        model_id: Optional[str] = None,
        send_context: Optional[bool] = None,
        target_provider: Optional[str] = None,
    ) -> AssistantSettings:
        """修改部分偏好并保存。

        api_key / model_id 写入 target_provider（默认是修改后的当前 Provider）。
        """

        current = self.load()
        if provider_id is not None:
            current.provider_id = provider_id
        if send_context is not None:
            current.send_context = send_context
        if api_key is not None or model_id is not None:
            target = target_provider or current.provider_id
            entry = current.for_provider(target).model_copy()
            if api_key is not None:
                entry.api_key = api_key
            if model_id is not None:
                entry.model_id = model_id
            current.providers[target] = entry
        self.save(current)
        return current

    def clear(self) -> None:
        self._store.clear(self._key)

    @staticmethod
    def _fill_missing_providers(loaded: AssistantSettings) -> AssistantSettings:
        defaults = create_default_settings()
        for name, entry in defaults.providers.items():
            loaded.providers.setdefault(name, entry)
        return loaded
