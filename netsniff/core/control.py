import threading
from typing import Optional


class CancelToken:
    """
    Cooperative cancellation token.
    The capture worker checks it between receive iterations.
    """
    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to `timeout`, waking early on cancel. Returns is_cancelled()."""
        return self._event.wait(timeout)
