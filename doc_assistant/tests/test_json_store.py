import json
import tempfile
from pathlib import Path

import pytest

from doc_assistant.domain.exceptions import BusinessError
from doc_assistant.infrastructure.storage.json_store import JsonKeyValueStore


def test_json_store_set_and_get():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = JsonKeyValueStore(root=root)
        assert store.get("ih-assistant-settings") is None
        store.set("ih-assistant-settings", '{"provider_id": "gemini"}')
        assert store.get("ih-assistant-settings") == '{"provider_id": "gemini"}'
        record = json.loads((root / "kv" / "ih-assistant-settings.json").read_text(encoding="utf-8"))
        assert record["key"] == "ih-assistant-settings"


def test_json_store_clear():
    with tempfile.TemporaryDirectory() as d:
        store = JsonKeyValueStore(root=Path(d))
        store.set("k", "v")
        store.clear("k")
        assert store.get("k") is None
        # 清除不存在的键不报错
        store.clear("k")


def test_json_store_unsafe_key_is_sanitised():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d)
        store = JsonKeyValueStore(root=root)
        store.set("../escape/key", "v")
        assert store.get("../escape/key") == "v"
        assert [p.name for p in (root / "kv").iterdir()] == [".._escape_key.json"]


def test_json_store_corrupt_record_raises():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d)
        store = JsonKeyValueStore(root=root)
        (root / "kv" / "k.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(BusinessError) as exc_info:
            store.get("k")
        assert exc_info.value.code == "STORE_READ_ERROR"


def test_json_store_rejects_empty_key():
    with tempfile.TemporaryDirectory() as d:
        store = JsonKeyValueStore(root=Path(d))
        with pytest.raises(BusinessError) as exc_info:
            store.set("", "v")
        assert exc_info.value.code == "STORE_INVALID_KEY"


def test_json_store_unreadable_record_raises(monkeypatch):
    def deny(self, *args, **kwargs):
        raise PermissionError(13, "Permission denied")

    with tempfile.TemporaryDirectory() as d:
        store = JsonKeyValueStore(root=Path(d))
        store.set("k", "v")
        monkeypatch.setattr(Path, "read_text", deny)
        with pytest.raises(BusinessError) as exc_info:
            store.get("k")
        assert exc_info.value.code == "STORE_READ_ERROR"
