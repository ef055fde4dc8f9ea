"""Jobs queue for a busy printer when the busy policy is 'wait'."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from custom_components.escpos_receipt.const import CONF_BAUDRATE, CONF_BUSY_POLICY, CONF_TIMEOUT_MS, DOMAIN
from tests.integration_tests.emulator import create_hanging_open

SERIAL = {"type": "GENERIC_A", "interface": "COM3", "connectionType": "serial"}


@pytest.fixture
def entry_options() -> dict[str, Any]:
    return {CONF_TIMEOUT_MS: 3000, CONF_BUSY_POLICY: "wait", CONF_BAUDRATE: 9600}


async def _print(hass: Any, header: str, timeout_ms: int = 5000) -> Any:
    return await hass.services.async_call(
        DOMAIN,
        "print_receipt",
        {"config": {**SERIAL, "timeoutMs": timeout_ms}, "content": {"header": header}},
        blocking=True,
        return_response=True,
    )


async def test_second_job_waits_for_first(hass, receipt_integration, serial_printer):  # type: ignore[no-untyped-def]
    serial_printer.errors.add_error_condition(create_hanging_open())
    first = hass.async_create_task(_print(hass, "first"))
    for _ in range(100):
        if serial_printer.state.open_attempts:
            break
        await asyncio.sleep(0.01)

    second = hass.async_create_task(_print(hass, "second"))
    await asyncio.sleep(0.05)
    assert not second.done()

    serial_printer.errors.release_hang()
    assert (await first)["success"] is True
    assert (await second)["success"] is True
    assert serial_printer.state.max_open_handles == 1
    assert len(serial_printer.state.jobs) == 2


async def test_waiting_job_gives_up_after_timeout(hass, receipt_integration, serial_printer):  # type: ignore[no-untyped-def]
    serial_printer.errors.add_error_condition(create_hanging_open())
    first = hass.async_create_task(_print(hass, "first"))
    for _ in range(100):
        if serial_printer.state.open_attempts:
            break
        await asyncio.sleep(0.01)

    second = await _print(hass, "second", timeout_ms=150)

    assert second == {"success": False, "message": "Timed out after 150 ms connecting to printer COM3"}
    serial_printer.errors.release_hang()
    assert (await first)["success"] is True
