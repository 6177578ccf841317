"""流式响应的事件切分。

Provider 的流式响应以空行（\\n\\n）分隔事件。传输层每次给出的片段
可能只包含半个事件，也可能包含多个事件，这里负责：

- 缓存跨片段的残余数据；
- 按 UTF-8 增量解码字节（多字节字符被拆开时不会乱码）；
- 流结束时把未以空行结尾的残余作为最后一个事件输出。

本模块不解析事件内容，data: 前缀、JSON 等均由各适配器处理。
"""

import codecs
from typing import Iterable, Iterator, List, Optional, Union

EVENT_DELIMITER = "\n\n"

Fragment = Union[bytes, str]


class SSEFrameDecoder:
    """把任意切分的片段重组为完整事件。"""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    def feed(self, fragment: Fragment) -> List[str]:
        """送入一个片段，返回其中已完整的事件（可能为空列表）。"""

        if isinstance(fragment, bytes):
            text = self._decoder.decode(fragment)
        else:
            text = fragment
        if not text:
            return []
        self._buffer = (self._buffer + text).replace("\r\n", "\n")
        *events, self._buffer = self._buffer.split(EVENT_DELIMITER)
        return events

    def flush(self) -> Optional[str]:
        """流结束时调用，返回残余的未结束事件（仅空白时返回 None）。"""

        tail = self._decoder.decode(b"", final=True)
        remainder = (self._buffer + tail).replace("\r\n", "\n")
        self._buffer = ""
        if not remainder.strip():
            return None
        return remainder


def iter_events(fragments: Iterable[Fragment]) -> Iterator[str]:
    """惰性地把片段序列转换为事件序列，每次调用使用新的解码器。"""

    decoder = SSEFrameDecoder()
    for fragment in fragments:
        for event in decoder.feed(fragment):
            yield event
    tail = decoder.flush()
    if tail is not None:
        yield tail
