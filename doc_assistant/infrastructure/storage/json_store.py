import json
import os
import re
from pathlib import Path
from typing import Optional
from uuid import uuid4

from doc_assistant.config.settings import settings
from doc_assistant.domain.exceptions import BusinessError
from doc_assistant.domain.storage import KeyValueStore


_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class JsonKeyValueStore(KeyValueStore):
    """基于本地 JSON 文件的键值存储，每个键对应 <root>/kv/<key>.json。

    文件内容为 {"key": ..., "value": ...}，写入时先写临时文件再原子替换。
    """

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._kv_root = self._root / "kv"
        self._kv_root.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise BusinessError(code="STORE_READ_ERROR", message=str(e), key=key)
        if not isinstance(data, dict) or not isinstance(data.get("value"), str):
            raise BusinessError(code="STORE_READ_ERROR", message=f"Unexpected record for {key!r}", key=key)
        return data["value"]

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        tmp_path = path.with_name(f"{path.stem}.{uuid4().hex}.json.tmp")
        obj = {"key": key, "value": value}
        try:
            tmp_path.write_text(json.dumps(obj, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e), key=key)

    def clear(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise BusinessError(code="STORE_DELETE_ERROR", message=str(e), key=key)

    def _path_for(self, key: str) -> Path:
        if not key:
            raise BusinessError(code="STORE_INVALID_KEY", message="Empty storage key")
        return self._kv_root / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"
