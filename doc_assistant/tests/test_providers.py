import pytest

from conftest import SettingsStub, make_settings
from doc_assistant.domain.models import AssistantSettings, ProviderDescriptor
from doc_assistant.providers import ProviderRegistry, create_registry
from doc_assistant.providers.gemini_client import GeminiClient
from doc_assistant.providers.openai_client import OpenAIClient
from doc_assistant.providers.registry import GEMINI_DEFAULT_MODEL, OPENAI_DEFAULT_MODEL, PROVIDER_REGISTRY


def test_registry_lookup_and_fallback():
    registry = create_registry(SettingsStub())
    assert isinstance(registry.get("openai"), OpenAIClient)
    assert isinstance(registry.get("GEMINI"), GeminiClient)
    # 未识别的 id 回退到第一个注册的 Provider
    assert isinstance(registry.get("anthropic"), OpenAIClient)
    assert isinstance(registry.get(None), OpenAIClient)
    assert registry.ids() == ["openai", "gemini"]
    assert "gemini" in registry


def test_registry_descriptors_match_catalogue():
    descriptors = create_registry(SettingsStub()).descriptors()
    assert [d.id for d in descriptors] == list(PROVIDER_REGISTRY)
    assert [d.label for d in descriptors] == ["OpenAI", "Google Gemini"]
    assert [d.default_model for d in descriptors] == [OPENAI_DEFAULT_MODEL, GEMINI_DEFAULT_MODEL]


def test_registering_a_third_provider():
    class EchoAdapter:
        name = "echo"
        descriptor = ProviderDescriptor(id="echo", label="Echo", description="test", default_model="echo-1")

        def resolve_model(self, settings):
            return "echo-1"

        def resolve_api_key(self, settings):
            return "k"

        def validate_key_shape(self, key):
            return True

        def stream(self, request):
            return iter([request.input])

    registry = create_registry(SettingsStub())
    registry.register(EchoAdapter())
    assert registry.get("echo").name == "echo"
    assert [d.id for d in registry.descriptors()] == ["openai", "gemini", "echo"]


def test_empty_registry_has_nothing_to_fall_back_to():
    with pytest.raises(LookupError):
        ProviderRegistry().get("openai")



def test_resolve_api_key_trims_and_treats_blank_as_absent():
    client = OpenAIClient(SettingsStub())
    assert client.resolve_api_key(make_settings(key="  sk-abc  ")) == "sk-abc"
    assert client.resolve_api_key(make_settings(key="   ")) is None
    # 未配置该 Provider 时同样视为缺失
    assert client.resolve_api_key(AssistantSettings(provider_id="openai")) is None


def test_resolve_model_defaults_when_blank():
    client = OpenAIClient(SettingsStub())
    assert client.resolve_model(make_settings(model_id="")) == OPENAI_DEFAULT_MODEL
    assert client.resolve_model(make_settings(model_id="gpt-4o")) == "gpt-4o"
