"""Tests for the print job executor with in-memory transports."""

from __future__ import annotations

import asyncio
import logging
import threading
import time

import pytest

from custom_components.escpos_receipt.errors import DeviceUnavailable, TransportWriteError
from custom_components.escpos_receipt.executor import (
    DeviceLocks,
    JobState,
    PrintJob,
    PrintJobExecutor,
)
from custom_components.escpos_receipt.models import (
    ConnectionSpec,
    DeviceDescriptor,
    DeviceKind,
    LineItem,
    Receipt,
)
from custom_components.escpos_receipt.profiles import PrinterProfile
from custom_components.escpos_receipt.transport import Transport

SERIAL_SPEC = ConnectionSpec(PrinterProfile.GENERIC_A, DeviceDescriptor(path="COM3"))
RECEIPT = Receipt(header="Shop", items=(LineItem("Widget", 2, "5.00"),), total="10.00")


class FakeTransport(Transport):
    def __init__(
        self,
        path: str,
        *,
        connected: bool = True,
        open_error: Exception | None = None,
        write_error: Exception | None = None,
        flush_error: Exception | None = None,
        open_gate: threading.Event | None = None,
    ) -> None:
        super().__init__(path)
        self.connected = connected
        self.open_error = open_error
        self.write_error = write_error
        self.flush_error = flush_error
        self.open_gate = open_gate
        self.written = b""
        self.closed_calls = 0

    def _open(self) -> None:
        if self.open_gate is not None:
            self.open_gate.wait(5)
        if self.open_error is not None:
            raise self.open_error

    def is_connected(self) -> bool:
        return self.connected

    def _write(self, data: bytes) -> int:
        if self.write_error is not None:
            raise self.write_error
        self.written += data
        return len(data)

    def _flush(self) -> None:
        if self.flush_error is not None:
            raise self.flush_error

    def _close(self) -> None:
        self.closed_calls += 1


class Factory:
    def __init__(self, **kwargs) -> None:  # type: ignore[no-untyped-def]
        self.kwargs = kwargs
        self.transports: list[FakeTransport] = []

    def __call__(self, descriptor: DeviceDescriptor, baudrate: int) -> FakeTransport:
        transport = FakeTransport(descriptor.path, **self.kwargs)
        self.transports.append(transport)
        return transport


def _executor(hass, factory, jobs=None, **kwargs):  # type: ignore[no-untyped-def]
    return PrintJobExecutor(
        hass,
        DeviceLocks(),
        transport_factory=factory,
        job_listener=jobs.append if jobs is not None else None,
        **kwargs,
    )


async def test_successful_job_walks_every_state(hass):  # type: ignore[no-untyped-def]
    jobs: list[PrintJob] = []
    factory = Factory()

    result = await _executor(hass, factory, jobs).run_job(SERIAL_SPEC, RECEIPT)

    assert result.as_dict() == {"success": True, "message": "Receipt printed successfully!"}
    assert jobs[0].history == [
        JobState.IDLE,
        JobState.CONNECTING,
        JobState.CONNECTED,
        JobState.WRITING,
        JobState.CUTTING,
        JobState.CLOSED,
    ]
    transport = factory.transports[0]
    assert transport.written.startswith(b"\x1b@")
    assert transport.written.endswith(b"\x1dV\x00")
    assert transport.closed_calls == 1


async def test_usb_messages(hass):  # type: ignore[no-untyped-def]
    spec = ConnectionSpec(PrinterProfile.EPSON, DeviceDescriptor(path="usb:04b8:0202", kind=DeviceKind.USB))
    executor = _executor(hass, Factory())

    assert (await executor.test_connection(spec)).message == "USB printer test successful!"
    assert (await executor.run_job(spec, RECEIPT)).message == "Receipt printed successfully to USB printer!"


async def test_not_connected(hass):  # type: ignore[no-untyped-def]
    jobs: list[PrintJob] = []
    factory = Factory(connected=False)

    result = await _executor(hass, factory, jobs).test_connection(SERIAL_SPEC)

    assert result.as_dict() == {"success": False, "message": "Printer not connected."}
    assert jobs[0].history[-2:] == [JobState.CONNECTED, JobState.FAILED]
    assert factory.transports[0].written == b""
    assert factory.transports[0].closed_calls == 1


async def test_open_failure(hass):  # type: ignore[no-untyped-def]
    factory = Factory(open_error=DeviceUnavailable("Cannot open serial port COM3: busy"))

    result = await _executor(hass, factory).run_job(SERIAL_SPEC, RECEIPT)

    assert result.as_dict() == {"success": False, "message": "Cannot open serial port COM3: busy"}
    assert factory.transports[0].closed_calls == 0


async def test_partial_write_note(hass):  # type: ignore[no-untyped-def]
    factory = Factory(write_error=TransportWriteError("Write to COM3 failed: I/O error", 12))

    result = await _executor(hass, factory).run_job(SERIAL_SPEC, RECEIPT)

    assert result.message == (
        "Write to COM3 failed: I/O error. The printer may have printed part of the receipt."
    )
    assert factory.transports[0].closed_calls == 1


async def test_flush_failure_counts_as_partial(hass):  # type: ignore[no-untyped-def]
    jobs: list[PrintJob] = []
    factory = Factory(flush_error=TransportWriteError("Flush of COM3 failed: gone"))

    result = await _executor(hass, factory, jobs).run_job(SERIAL_SPEC, RECEIPT)

    assert result.success is False
    assert result.message.endswith("The printer may have printed part of the receipt.")
    assert jobs[0].history[-2:] == [JobState.CUTTING, JobState.FAILED]


async def test_unexpected_error_is_reported(hass, caplog):  # type: ignore[no-untyped-def]
    factory = Factory(write_error=RuntimeError("kaboom"))

    result = await _executor(hass, factory).run_job(SERIAL_SPEC, RECEIPT)

    assert result.as_dict() == {"success": False, "message": "Error: kaboom"}
    assert "Unexpected error printing to COM3" in caplog.text
    assert factory.transports[0].closed_calls == 1


async def test_encoding_error_before_any_io(hass):  # type: ignore[no-untyped-def]
    jobs: list[PrintJob] = []
    factory = Factory()
    receipt = Receipt(items=(LineItem("Widget", 1, "free"),))

    result = await _executor(hass, factory, jobs).run_job(SERIAL_SPEC, receipt)

    assert result.success is False
    assert "not a decimal amount" in result.message
    assert factory.transports == []
    assert jobs[0].history == [JobState.IDLE, JobState.FAILED]


async def test_bad_usb_address_before_any_io(hass):  # type: ignore[no-untyped-def]
    spec = ConnectionSpec(PrinterProfile.EPSON, DeviceDescriptor(path="usb:nope", kind=DeviceKind.USB))

    result = await PrintJobExecutor(hass, DeviceLocks()).test_connection(spec)

    assert result.success is False
    assert "Malformed USB address" in result.message


async def test_open_timeout_closes_late_transport(hass):  # type: ignore[no-untyped-def]
    gate = threading.Event()
    factory = Factory(open_gate=gate)
    spec = ConnectionSpec(PrinterProfile.GENERIC_A, DeviceDescriptor(path="COM3"), timeout_ms=100)
    locks = DeviceLocks()
    executor = PrintJobExecutor(hass, locks, transport_factory=factory)

    started = time.monotonic()
    result = await executor.test_connection(spec)
    elapsed = time.monotonic() - started

    assert result.as_dict() == {
        "success": False,
        "message": "Timed out after 100 ms connecting to printer COM3",
    }
    # Reported at the deadline, long before the blocked open returns
    assert 0.09 <= elapsed < 1.0
    # The device stays reserved until the blocked open returns
    assert locks.is_busy(spec.device)

    gate.set()
    for _ in range(100):
        await hass.async_block_till_done()
        if not locks.is_busy(spec.device):
            break
        await asyncio.sleep(0.01)

    transport = factory.transports[0]
    assert transport.closed_calls == 1
    assert transport.written == b""
    assert not locks.is_busy(spec.device)


async def test_late_open_failure_frees_device(hass, caplog):  # type: ignore[no-untyped-def]
    caplog.set_level(logging.DEBUG, logger="custom_components.escpos_receipt.executor")
    gate = threading.Event()
    factory = Factory(open_gate=gate, open_error=DeviceUnavailable("Cannot open serial port COM3: gone"))
    spec = ConnectionSpec(PrinterProfile.GENERIC_A, DeviceDescriptor(path="COM3"), timeout_ms=100)
    locks = DeviceLocks()

    result = await PrintJobExecutor(hass, locks, transport_factory=factory).test_connection(spec)
    assert result.message == "Timed out after 100 ms connecting to printer COM3"

    gate.set()
    for _ in range(100):
        await hass.async_block_till_done()
        if not locks.is_busy(spec.device):
            break
        await asyncio.sleep(0.01)

    assert not locks.is_busy(spec.device)
    assert "Late open of COM3 failed: Cannot open serial port COM3: gone" in caplog.text
    # Never opened, so there was nothing to close
    assert factory.transports[0].closed_calls == 0


async def test_busy_device_fails_fast(hass):  # type: ignore[no-untyped-def]
    gate = threading.Event()
    factory = Factory(open_gate=gate)
    executor = _executor(hass, factory)

    first = hass.async_create_task(executor.run_job(SERIAL_SPEC, RECEIPT))
    await asyncio.sleep(0.05)
    second = await executor.run_job(SERIAL_SPEC, RECEIPT)

    assert second.as_dict() == {"success": False, "message": "Printer COM3 is busy with another job."}
    gate.set()
    assert (await first).success is True


async def test_other_devices_are_independent(hass):  # type: ignore[no-untyped-def]
    gate = threading.Event()
    blocked = Factory(open_gate=gate)
    executor = _executor(hass, blocked)
    other = ConnectionSpec(PrinterProfile.GENERIC_A, DeviceDescriptor(path="COM4"))

    first = hass.async_create_task(executor.run_job(SERIAL_SPEC, RECEIPT))
    second = hass.async_create_task(executor.run_job(other, RECEIPT))
    await asyncio.sleep(0.05)
    gate.set()

    assert (await first).success is True
    assert (await second).success is True
    assert len(blocked.transports) == 2


async def test_wait_policy_serializes_jobs(hass):  # type: ignore[no-untyped-def]
    gate = threading.Event()
    factory = Factory(open_gate=gate)
    executor = _executor(hass, factory, busy_policy="wait")

    first = hass.async_create_task(executor.run_job(SERIAL_SPEC, RECEIPT))
    await asyncio.sleep(0.05)
    second = hass.async_create_task(executor.run_job(SERIAL_SPEC, RECEIPT))
    await asyncio.sleep(0.05)
    assert not second.done()

    gate.set()
    assert (await first).success is True
    assert (await second).success is True


async def test_cancelled_caller_still_closes(hass):  # type: ignore[no-untyped-def]
    gate = threading.Event()
    factory = Factory(open_gate=gate)
    jobs: list[PrintJob] = []
    executor = _executor(hass, factory, jobs)

    caller = hass.async_create_task(executor.run_job(SERIAL_SPEC, RECEIPT))
    await asyncio.sleep(0.01)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    gate.set()
    for _ in range(100):
        await hass.async_block_till_done()
        if jobs:
            break
        await asyncio.sleep(0.01)

    assert jobs[0].state is JobState.CLOSED
    assert factory.transports[0].closed_calls == 1


async def test_invalid_busy_policy(hass):  # type: ignore[no-untyped-def]
    with pytest.raises(ValueError, match="busy policy"):
        PrintJobExecutor(hass, busy_policy="sometimes")


def test_usb_lock_key_ignores_spelling():  # type: ignore[no-untyped-def]
    locks = DeviceLocks()
    a = locks.get(DeviceDescriptor(path="usb:04B8:0202", kind=DeviceKind.USB))
    b = locks.get(DeviceDescriptor(path="usb:0x04b8:0x0202", kind=DeviceKind.USB))
    assert a is b
