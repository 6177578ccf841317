"""Provider 静态配置与展示目录。

每个 Provider 的默认模型、基础 URL 与展示文案集中在这里，
适配器实现与界面展示都从这里读取，便于后续升级默认模型或切换端点。"""

from dataclasses import dataclass
from typing import Mapping, Optional

from doc_assistant.domain.models import GEMINI_PROVIDER_ID, OPENAI_PROVIDER_ID, ProviderDescriptor


OPENAI_DEFAULT_MODEL = "gpt-4.1-nano"
GEMINI_DEFAULT_MODEL = "gemini-2.0-flash"


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    label: str
    description: str
    default_model: str
    base_url: str
    docs_url: Optional[str] = None
    short_label: Optional[str] = None

    @property
    def descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            id=self.name,
            label=self.label,
            description=self.description,
            default_model=self.default_model,
            docs_url=self.docs_url,
            short_label=self.short_label or self.label,
        )


OPENAI_CONFIG = ProviderConfig(
    name=OPENAI_PROVIDER_ID,
    label="OpenAI",
    description="GPT-4.1 family via Chat Completions API",
    default_model=OPENAI_DEFAULT_MODEL,
    base_url="https://api.openai.com/v1",
    docs_url="https://platform.openai.com/docs/api-reference/chat",
)

GEMINI_CONFIG = ProviderConfig(
    name=GEMINI_PROVIDER_ID,
    label="Google Gemini",
    description="Gemini 2.0 family over Generative Language API",
    default_model=GEMINI_DEFAULT_MODEL,
    base_url="https://generativelanguage.googleapis.com/v1beta",
    docs_url="https://ai.google.dev/api/generate-content",
    short_label="Gemini",
)


# 顺序有意义：第一个为未知 id 时的回退 Provider
PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    OPENAI_PROVIDER_ID: OPENAI_CONFIG,
    GEMINI_PROVIDER_ID: GEMINI_CONFIG,
}
