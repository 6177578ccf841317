"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 适配器协议 (base)。
- 维护 Provider 静态配置与展示目录 (registry)。
- 流式事件切分 (sse)。
- 提供各厂商的具体实现 (openai_client、gemini_client)。
"""

from typing import Dict, Iterable, List, Optional

from doc_assistant.config.settings import settings
from doc_assistant.domain.models import ProviderDescriptor
from doc_assistant.providers.base import ProviderAdapter
from doc_assistant.providers.gemini_client import GeminiClient
from doc_assistant.providers.openai_client import OpenAIClient


class ProviderRegistry:
    """Provider id → 适配器实例的有序映射。

    未识别的 id 回退到第一个注册的 Provider，查找永不失败。
    新增 Provider 只需多注册一个适配器。
    """

    def __init__(self, adapters: Iterable[ProviderAdapter] = ()):
        self._adapters: Dict[str, ProviderAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        self._adapters[adapter.name] = adapter

    def get(self, provider_id: Optional[str]) -> ProviderAdapter:
        if not self._adapters:
            raise LookupError("No provider adapters registered")
        if provider_id:
            adapter = self._adapters.get(provider_id.lower())
            if adapter is not None:
                return adapter
        return next(iter(self._adapters.values()))

    def descriptors(self) -> List[ProviderDescriptor]:
        return [adapter.descriptor for adapter in self._adapters.values()]

    def ids(self) -> List[str]:
        return list(self._adapters)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._adapters


def create_registry(app_settings=None) -> ProviderRegistry:
    """根据进程配置创建默认注册表（OpenAI 在前，作为回退 Provider）。"""

    cfg = app_settings or settings
    return ProviderRegistry([OpenAIClient(cfg), GeminiClient(cfg)])
