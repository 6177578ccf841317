from doc_assistant.domain.conversation import Transcript
from doc_assistant.domain.models import AssistantSettings, Message


def test_message_defaults_and_append():
    message = Message(role="assistant", content="", provider_id="openai")
    message.append("Hel")
    message.append("lo")
    assert message.content == "Hello"
    assert message.id.startswith("m-")
    assert message.to_dict()["created_at"].endswith("+00:00")


def test_transcript_snapshot_is_stable():
    transcript = Transcript()
    first = transcript.append(Message(role="user", content="hi", provider_id="openai"))
    snapshot = transcript.snapshot()
    transcript.append(Message(role="assistant", content="yo", provider_id="openai"))

    assert snapshot == (first,)
    assert len(transcript) == 2
    assert list(transcript)[0] is first
    transcript.clear()
    assert transcript.snapshot() == ()


def test_settings_for_unknown_provider_is_empty():
    entry = AssistantSettings().for_provider("gemini")
    assert entry.api_key == ""
    assert entry.model_id == ""
