"""Pytest fixtures for receipt printer integration testing."""

from __future__ import annotations

import base64
from collections.abc import AsyncGenerator, Generator
import io
from typing import Any
from unittest.mock import patch

from PIL import Image
import pytest
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.escpos_receipt.const import (
    CONF_BAUDRATE,
    CONF_BUSY_POLICY,
    CONF_TIMEOUT_MS,
    DOMAIN,
)
from tests.integration_tests.emulator import DIALECT_STAR, VirtualPrinter, VirtualPrinterBank

__all__ = [
    "entry_options",
    "logo_base64",
    "printer_bank",
    "receipt_integration",
    "sample_receipt_content",
    "serial_printer",
    "star_printer",
    "usb_printer",
]

SERIAL_PATH = "COM3"
USB_PATH = "usb:04b8:0202"
STAR_PATH = "/dev/ttyS1"


@pytest.fixture
def printer_bank() -> Generator[VirtualPrinterBank, None, None]:
    """Virtual printers, released on teardown so no executor thread stays blocked."""
    bank = VirtualPrinterBank()
    try:
        yield bank
    finally:
        bank.release_all()


@pytest.fixture
def serial_printer(printer_bank: VirtualPrinterBank) -> VirtualPrinter:
    return printer_bank.add(SERIAL_PATH)


@pytest.fixture
def usb_printer(printer_bank: VirtualPrinterBank) -> VirtualPrinter:
    return printer_bank.add(USB_PATH)


@pytest.fixture
def star_printer(printer_bank: VirtualPrinterBank) -> VirtualPrinter:
    return printer_bank.add(STAR_PATH, DIALECT_STAR)


@pytest.fixture
def entry_options() -> dict[str, Any]:
    return {CONF_TIMEOUT_MS: 3000, CONF_BUSY_POLICY: "fail", CONF_BAUDRATE: 9600}


@pytest.fixture
async def receipt_integration(
    hass: Any, printer_bank: VirtualPrinterBank, entry_options: dict[str, Any]
) -> AsyncGenerator[MockConfigEntry, None]:
    """Set up the integration with every transport served by ``printer_bank``."""
    entry = MockConfigEntry(domain=DOMAIN, data=entry_options, unique_id=DOMAIN)
    entry.add_to_hass(hass)
    with patch("custom_components.escpos_receipt.create_transport", printer_bank):
        assert await hass.config_entries.async_setup(entry.entry_id)
        await hass.async_block_till_done()
        yield entry


@pytest.fixture
def sample_receipt_content() -> dict[str, Any]:
    return {
        "header": "Corner Shop\n12 High Street",
        "items": [
            {"name": "Widget", "qty": 2, "price": "5.00"},
            {"name": "Gadget", "qty": 1, "price": "12.5"},
        ],
        "total": "22.50",
        "footer": "Thank you!",
    }


@pytest.fixture
def logo_base64() -> str:
    img = Image.new("1", (64, 16), color=0)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")
