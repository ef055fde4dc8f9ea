"""Byte-level device channels: serial ports and USB bulk endpoints.

A transport is a linear resource: open once, write, close. All methods block
and are meant to run in an executor thread. ``close`` is idempotent and never
raises; a failed close is logged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
import logging
from typing import Any

import serial
import usb.core
import usb.util

from .const import DEFAULT_BAUDRATE, DEFAULT_WRITE_TIMEOUT_MS, USB_CLASS_PRINTER
from .errors import DeviceUnavailable, TransportWriteError
from .models import DeviceDescriptor, DeviceKind, format_usb_address
from .security import parse_usb_address

_LOGGER = logging.getLogger(__name__)

SERIAL_CHUNK_SIZE = 1024


class Transport(ABC):
    def __init__(self, path: str, write_timeout_ms: int = DEFAULT_WRITE_TIMEOUT_MS) -> None:
        self.path = path
        self.write_timeout_ms = write_timeout_ms
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    def open(self) -> None:
        """Open the device.

        Raises:
            DeviceUnavailable: The device is missing, busy or not accessible.
        """
        if self._closed:
            raise DeviceUnavailable(f"Transport for {self.path} was already closed")
        self._open()
        self._opened = True
        _LOGGER.debug("Opened printer %s", self.path)

    def write(self, data: bytes) -> int:
        """Write all of ``data``; returns the number of bytes written.

        Raises:
            TransportWriteError: The device rejected or timed out a write.
                ``bytes_written`` tells how much reached the device first.
        """
        if not self.is_open:
            raise TransportWriteError(f"Printer {self.path} is not open")
        written = self._write(data)
        _LOGGER.debug("Wrote %d bytes to %s", written, self.path)
        return written

    def flush(self) -> None:
        if not self.is_open:
            raise TransportWriteError(f"Printer {self.path} is not open")
        self._flush()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._opened:
            return
        try:
            self._close()
        except Exception as err:  # noqa: BLE001
            _LOGGER.warning("Error closing printer %s: %s", self.path, err)
        else:
            _LOGGER.debug("Closed printer %s", self.path)

    @abstractmethod
    def is_connected(self) -> bool:
        """Post-open liveness check."""

    @abstractmethod
    def _open(self) -> None: ...

    @abstractmethod
    def _write(self, data: bytes) -> int: ...

    def _flush(self) -> None:
        return None

    @abstractmethod
    def _close(self) -> None: ...


class SerialTransport(Transport):
    def __init__(
        self,
        path: str,
        baudrate: int = DEFAULT_BAUDRATE,
        write_timeout_ms: int = DEFAULT_WRITE_TIMEOUT_MS,
    ) -> None:
        super().__init__(path, write_timeout_ms)
        self.baudrate = baudrate
        self._serial: serial.Serial | None = None

    def _open(self) -> None:
        try:
            self._serial = serial.Serial(
                port=self.path,
                baudrate=self.baudrate,
                timeout=self.write_timeout_ms / 1000,
                write_timeout=self.write_timeout_ms / 1000,
            )
        except (serial.SerialException, ValueError) as err:
            raise DeviceUnavailable(f"Cannot open serial port {self.path}: {err}") from err

    def is_connected(self) -> bool:
        return self._serial is not None and bool(self._serial.is_open)

    def _write(self, data: bytes) -> int:
        if self._serial is None:
            raise TransportWriteError(f"Printer {self.path} is not open")
        written = 0
        try:
            for start in range(0, len(data), SERIAL_CHUNK_SIZE):
                chunk = data[start : start + SERIAL_CHUNK_SIZE]
                written += self._serial.write(chunk) or 0
        except serial.SerialTimeoutException as err:
            raise TransportWriteError(
                f"Write to {self.path} timed out after {self.write_timeout_ms} ms", written
            ) from err
        except (serial.SerialException, OSError) as err:
            raise TransportWriteError(f"Write to {self.path} failed: {err}", written) from err
        return written

    def _flush(self) -> None:
        if self._serial is None:
            raise TransportWriteError(f"Printer {self.path} is not open")
        try:
            self._serial.flush()
        except (serial.SerialException, OSError) as err:
            raise TransportWriteError(f"Flush of {self.path} failed: {err}", 0) from err

    def _close(self) -> None:
        if self._serial is not None:
            self._serial.close()
            self._serial = None


def _is_bulk_out(endpoint: Any) -> bool:
    return (
        usb.util.endpoint_direction(endpoint.bEndpointAddress) == usb.util.ENDPOINT_OUT
        and usb.util.endpoint_type(endpoint.bmAttributes) == usb.util.ENDPOINT_TYPE_BULK
    )


class UsbTransport(Transport):
    def __init__(
        self,
        vendor_id: int,
        product_id: int,
        write_timeout_ms: int = DEFAULT_WRITE_TIMEOUT_MS,
    ) -> None:
        super().__init__(format_usb_address(vendor_id, product_id), write_timeout_ms)
        self.vendor_id = vendor_id
        self.product_id = product_id
        self._device: Any = None
        self._endpoint: Any = None
        self._interface_number: int | None = None
        self._detached_interface: int | None = None

    def _find(self) -> Any:
        try:
            return usb.core.find(idVendor=self.vendor_id, idProduct=self.product_id)
        except usb.core.NoBackendError as err:
            raise DeviceUnavailable(f"No USB backend available: {err}") from err

    def _select_interface(self, config: Any) -> tuple[Any, Any]:
        """Prefer a printer-class interface; otherwise the first with a bulk OUT endpoint."""
        candidates = sorted(config, key=lambda intf: intf.bInterfaceClass != USB_CLASS_PRINTER)
        for interface in candidates:
            endpoint = usb.util.find_descriptor(interface, custom_match=_is_bulk_out)
            if endpoint is not None:
                return interface, endpoint
        raise DeviceUnavailable(f"USB printer {self.path} has no bulk OUT endpoint")

    def _open(self) -> None:
        device = self._find()
        if device is None:
            raise DeviceUnavailable(f"USB printer {self.path} not found")
        self._device = device
        try:
            try:
                config = device.get_active_configuration()
            except usb.core.USBError:
                config = None
            if config is None:
                device.set_configuration()
                config = device.get_active_configuration()

            interface, endpoint = self._select_interface(config)
            number = interface.bInterfaceNumber
            try:
                if device.is_kernel_driver_active(number):
                    device.detach_kernel_driver(number)
                    self._detached_interface = number
            except NotImplementedError:
                _LOGGER.debug("Kernel driver detach not supported for %s", self.path)

            usb.util.claim_interface(device, number)
            self._interface_number = number
            self._endpoint = endpoint
        except usb.core.USBError as err:
            self._abandon()
            raise DeviceUnavailable(f"Cannot claim USB printer {self.path}: {err}") from err
        except DeviceUnavailable:
            self._abandon()
            raise

    def is_connected(self) -> bool:
        if self._device is None or self._endpoint is None:
            return False
        try:
            return self._find() is not None
        except DeviceUnavailable:
            return False

    def _write(self, data: bytes) -> int:
        chunk_size = max(64, int(self._endpoint.wMaxPacketSize or 64)) * 64
        written = 0
        try:
            for start in range(0, len(data), chunk_size):
                chunk = data[start : start + chunk_size]
                written += self._endpoint.write(chunk, timeout=self.write_timeout_ms)
        except usb.core.USBTimeoutError as err:
            raise TransportWriteError(
                f"Write to {self.path} timed out after {self.write_timeout_ms} ms", written
            ) from err
        except usb.core.USBError as err:
            raise TransportWriteError(f"Write to {self.path} failed: {err}", written) from err
        return written

    def _release(self) -> None:
        device = self._device
        if device is None:
            return
        try:
            if self._interface_number is not None:
                usb.util.release_interface(device, self._interface_number)
            if self._detached_interface is not None:
                device.attach_kernel_driver(self._detached_interface)
        finally:
            usb.util.dispose_resources(device)
            self._device = None
            self._endpoint = None
            self._interface_number = None
            self._detached_interface = None

    def _abandon(self) -> None:
        try:
            self._release()
        except usb.core.USBError as err:
            _LOGGER.debug("Cleanup after failed open of %s: %s", self.path, err)

    def _close(self) -> None:
        self._release()


TransportFactory = Callable[[DeviceDescriptor, int], Transport]


def create_transport(descriptor: DeviceDescriptor, baudrate: int = DEFAULT_BAUDRATE) -> Transport:
    """Build the transport for a descriptor without touching the device.

    Raises:
        EncodingError: A USB descriptor's path is not a valid usb:<vid>:<pid> key.
    """
    if descriptor.kind is DeviceKind.USB:
        vendor_id, product_id = parse_usb_address(descriptor.path)
        return UsbTransport(vendor_id, product_id)
    return SerialTransport(descriptor.path, baudrate=baudrate)
