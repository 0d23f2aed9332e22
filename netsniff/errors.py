"""
Exceptions shared by the daemon and the control client.

Every error carries an errno-compatible code so the control server can put it
straight into a reply status.
"""
import errno as _errno


class NetsniffError(Exception):
    errno = _errno.EIO


class InvalidInterfaceName(NetsniffError, ValueError):
    errno = _errno.EINVAL


class CaptureRunningError(NetsniffError):
    errno = _errno.EBUSY


class ProtocolError(NetsniffError):
    """Malformed or unsupported request on the control channel."""
    errno = _errno.EPROTO

    def __init__(self, message: str, code: int = _errno.EPROTO):
        super().__init__(message)
        self.errno = code


class TransportError(NetsniffError):
    """Connect, send or receive failure on the control channel."""


class DaemonError(NetsniffError):
    """The daemon answered with a nonzero status."""

    def __init__(self, status: int, operation: str = ""):
        self.errno = status
        self.operation = operation
        try:
            reason = _errno.errorcode[status]
        except KeyError:
            reason = f"status {status}"
        prefix = f"{operation}: " if operation else ""
        super().__init__(f"{prefix}daemon replied {reason}")
