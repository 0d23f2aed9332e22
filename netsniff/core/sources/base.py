from abc import ABC, abstractmethod
from typing import Optional


class PacketSource(ABC):
    """
    Abstract capture socket.
    Must be passive-only.
    """

    interface: str = ""

    @abstractmethod
    def open(self) -> None:
        """
        Create and bind the capture socket.
        Raises OSError when the socket cannot be created.
        """
        raise NotImplementedError

    @abstractmethod
    def recv(self, timeout: float) -> Optional[object]:
        """
        Wait at most `timeout` seconds for one packet.
        Returns None when nothing usable arrived in time.
        Must not send traffic.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()
        return False
