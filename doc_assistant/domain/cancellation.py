import threading

from doc_assistant.domain.exceptions import StreamCancelledError


class CancellationToken:
    """协作式取消令牌。

    由会话控制器在每次发送时新建，传入适配器的 stream()；
    适配器在读取下一段传输数据前检查，控制器在应用每个增量前检查。
    基于 threading.Event，界面线程可以安全地调用 cancel()。
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise StreamCancelledError()
