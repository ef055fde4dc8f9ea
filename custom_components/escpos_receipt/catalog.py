"""Device catalog: serial ports and USB printers as uniform descriptors.

Enumeration is a read-only probe. Nothing is opened or claimed, and a source
that cannot be enumerated (no libusb backend, permission denied, driver
error) contributes no devices rather than failing the listing.
"""

from __future__ import annotations

from collections.abc import Iterable
import logging
from typing import Any

import serial.tools.list_ports
import usb.core

from .const import THERMAL_PRINTER_VENDORS, USB_CLASS_PRINTER
from .models import DeviceDescriptor, DeviceKind, format_usb_address
from .security import sanitize_log_message

_LOGGER = logging.getLogger(__name__)


def _serial_descriptor(port: Any) -> DeviceDescriptor:
    return DeviceDescriptor(
        path=port.device,
        kind=DeviceKind.SERIAL,
        manufacturer=port.manufacturer,
        vendor_id=port.vid,
        product_id=port.pid,
        serial_number=port.serial_number,
        pnp_id=port.hwid,
        location_id=port.location,
    )


def _has_printer_interface(device: Any) -> bool:
    if device.bDeviceClass == USB_CLASS_PRINTER:
        return True
    try:
        for config in device:
            for interface in config:
                if interface.bInterfaceClass == USB_CLASS_PRINTER:
                    return True
    except usb.core.USBError as err:
        _LOGGER.debug(
            "Cannot read descriptors of USB device %04x:%04x: %s",
            device.idVendor,
            device.idProduct,
            err,
        )
    return False


def is_usb_printer(device: Any) -> bool:
    return device.idVendor in THERMAL_PRINTER_VENDORS or _has_printer_interface(device)


def _usb_descriptor(device: Any) -> DeviceDescriptor:
    return DeviceDescriptor(
        path=format_usb_address(device.idVendor, device.idProduct),
        kind=DeviceKind.USB,
        manufacturer=THERMAL_PRINTER_VENDORS.get(device.idVendor, "USB Device"),
        vendor_id=device.idVendor,
        product_id=device.idProduct,
        location_id=f"{device.bus}-{device.address}" if device.bus is not None else None,
    )


def list_serial_devices() -> list[DeviceDescriptor]:
    return [_serial_descriptor(port) for port in serial.tools.list_ports.comports()]


def list_usb_devices() -> list[DeviceDescriptor]:
    devices = usb.core.find(find_all=True) or []
    return [_usb_descriptor(device) for device in devices if is_usb_printer(device)]


def merge_devices(*sources: Iterable[DeviceDescriptor]) -> list[DeviceDescriptor]:
    """Concatenate sources, keeping the first descriptor for each path."""
    seen: set[str] = set()
    merged: list[DeviceDescriptor] = []
    for source in sources:
        for descriptor in source:
            if descriptor.path in seen:
                continue
            seen.add(descriptor.path)
            merged.append(descriptor)
    return merged


def _safe_list(source: str, lister: Any) -> list[DeviceDescriptor]:
    try:
        return list(lister())
    except Exception as err:  # noqa: BLE001
        _LOGGER.warning("Could not enumerate %s devices: %s", source, sanitize_log_message(str(err)))
        return []


def list_devices() -> list[DeviceDescriptor]:
    """List serial ports and USB printers, serial ports first.

    Blocking; call through an executor from the event loop.
    """
    devices = merge_devices(
        _safe_list("serial", list_serial_devices),
        _safe_list("USB", list_usb_devices),
    )
    _LOGGER.debug("Found %d printer devices", len(devices))
    return devices
