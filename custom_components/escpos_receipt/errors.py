"""Error taxonomy for receipt printing.

Every failure of a print or connection-test job is one of these. They derive
from HomeAssistantError so they read naturally in service handlers, but the
job executor never lets them escape: they are folded into a PrintResult.
"""

from __future__ import annotations

from homeassistant.exceptions import HomeAssistantError

from .const import MSG_NOT_CONNECTED


class PrinterError(HomeAssistantError):
    """Base class for all printer job failures."""

    reason = "PrinterError"


class DeviceUnavailable(PrinterError):
    """Enumeration or open failed: device missing, busy or not permitted."""

    reason = "DeviceUnavailable"


class ConnectionTimeout(PrinterError):
    """Opening the device did not finish within the connect bound."""

    reason = "ConnectionTimeout"

    def __init__(self, path: str, timeout_ms: int) -> None:
        super().__init__(f"Timed out after {timeout_ms} ms connecting to printer {path}")
        self.path = path
        self.timeout_ms = timeout_ms


class NotConnected(PrinterError):
    """The post-open liveness check failed."""

    reason = "NotConnected"

    def __init__(self, message: str = MSG_NOT_CONNECTED) -> None:
        super().__init__(message)


class UnknownProfile(PrinterError):
    """The printer type string names no known vendor profile."""

    reason = "UnknownProfile"

    def __init__(self, name: object) -> None:
        super().__init__(f"UnknownProfile: unsupported printer type '{name}'")
        self.name = name


class EncodingError(PrinterError):
    """Static input error: bad address key, receipt field or operation."""

    reason = "EncodingError"


class TransportWriteError(PrinterError):
    """I/O failure while writing to an open device."""

    reason = "TransportWriteError"

    def __init__(self, message: str, bytes_written: int = 0) -> None:
        super().__init__(message)
        self.bytes_written = bytes_written
