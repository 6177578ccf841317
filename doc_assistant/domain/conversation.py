from enum import Enum
from typing import Iterator, List, Tuple

from .models import Message


class SessionStatus(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    CANCELLING = "cancelling"


class Transcript:
    """单个会话的消息列表，只由会话控制器修改。"""

    def __init__(self):
        self._messages: List[Message] = []

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def snapshot(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)
