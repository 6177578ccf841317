from typing import Optional, Protocol


class KeyValueStore(Protocol):
    """本地键值存储端口，用于持久化用户偏好。

    实现者读写失败时抛出 BusinessError（STORE_* 错误码），
    由上层决定是否回退默认值。
    """

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def clear(self, key: str) -> None:
        ...
