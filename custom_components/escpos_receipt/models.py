"""Value types passed between the catalog, composer, encoder and executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Union

from .const import DEFAULT_TIMEOUT_MS, USB_ADDRESS_PREFIX
from .profiles import PrinterProfile


class DeviceKind(StrEnum):
    SERIAL = "serial"
    USB = "usb"


class Align(StrEnum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass(frozen=True)
class DeviceDescriptor:
    """One addressable printer channel.

    USB devices use the ``usb:<vid>:<pid>`` key as their path; serial devices
    use the OS port path.
    """

    path: str
    kind: DeviceKind = DeviceKind.SERIAL
    manufacturer: str | None = None
    vendor_id: int | None = None
    product_id: int | None = None
    serial_number: str | None = None
    pnp_id: str | None = None
    location_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "path": self.path,
            "manufacturer": self.manufacturer,
            "serialNumber": self.serial_number,
            "pnpId": self.pnp_id,
            "locationId": self.location_id,
            "productId": self.product_id,
            "vendorId": self.vendor_id,
        }
        if self.kind is DeviceKind.USB:
            data["type"] = "usb"
        return data


def format_usb_address(vendor_id: int, product_id: int) -> str:
    return f"{USB_ADDRESS_PREFIX}:{vendor_id:04x}:{product_id:04x}"


@dataclass(frozen=True)
class ConnectionSpec:
    profile: PrinterProfile
    device: DeviceDescriptor
    timeout_ms: int = DEFAULT_TIMEOUT_MS


@dataclass(frozen=True)
class ImageBuffer:
    """Monochrome raster: one bit per dot, MSB first, rows padded to bytes."""

    width_bytes: int
    height: int
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class LineItem:
    name: str
    qty: int
    price: str


@dataclass(frozen=True)
class Receipt:
    logo: ImageBuffer | None = None
    header: str | None = None
    items: tuple[LineItem, ...] = ()
    total: str | None = None
    footer: str | None = None


# Print operations


@dataclass(frozen=True)
class SetAlign:
    align: Align


@dataclass(frozen=True)
class SetEmphasis:
    on: bool


@dataclass(frozen=True)
class Image:
    buffer: ImageBuffer


@dataclass(frozen=True)
class Text:
    line: str


@dataclass(frozen=True)
class TableColumn:
    text: str
    width: float
    align: Align = Align.LEFT


@dataclass(frozen=True)
class TableRow:
    columns: tuple[TableColumn, ...]


@dataclass(frozen=True)
class Rule:
    pass


@dataclass(frozen=True)
class FeedLine:
    pass


@dataclass(frozen=True)
class Cut:
    pass


PrintOperation = Union[SetAlign, SetEmphasis, Image, Text, TableRow, Rule, FeedLine, Cut]


@dataclass(frozen=True)
class PrintResult:
    success: bool
    message: str

    def as_dict(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message}
