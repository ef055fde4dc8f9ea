"""Print job executor: connect, encode, write, cut and close as one job.

Each job owns its transport for its whole lifetime and always ends in exactly
one of two terminal states, CLOSED (success) or FAILED. Errors never escape;
they become the message of the job's PrintResult.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
import logging
from typing import Any

from homeassistant.core import HomeAssistant

from .composer import compose, compose_test_page
from .const import (
    BUSY_POLICY_FAIL,
    BUSY_POLICY_WAIT,
    DEFAULT_BAUDRATE,
    DEFAULT_BUSY_POLICY,
    MSG_PARTIAL_WRITE,
    MSG_PRINT_OK,
    MSG_PRINT_OK_USB,
    MSG_TEST_OK,
    MSG_TEST_OK_USB,
)
from .encoder import encode
from .errors import (
    ConnectionTimeout,
    DeviceUnavailable,
    NotConnected,
    PrinterError,
    TransportWriteError,
)
from .models import ConnectionSpec, DeviceDescriptor, DeviceKind, PrintOperation, PrintResult, Receipt
from .security import parse_usb_address
from .transport import Transport, TransportFactory, create_transport

_LOGGER = logging.getLogger(__name__)


class JobState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    WRITING = "writing"
    CUTTING = "cutting"
    CLOSED = "closed"
    FAILED = "failed"


_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.IDLE: frozenset({JobState.CONNECTING, JobState.FAILED}),
    JobState.CONNECTING: frozenset({JobState.CONNECTED, JobState.FAILED}),
    JobState.CONNECTED: frozenset({JobState.WRITING, JobState.FAILED}),
    JobState.WRITING: frozenset({JobState.CUTTING, JobState.FAILED}),
    JobState.CUTTING: frozenset({JobState.CLOSED, JobState.FAILED}),
    JobState.CLOSED: frozenset(),
    JobState.FAILED: frozenset(),
}


@dataclass
class PrintJob:
    """State of a single job. Never reused."""

    device_path: str
    state: JobState = JobState.IDLE
    history: list[JobState] = field(default_factory=lambda: [JobState.IDLE])
    error: PrinterError | None = None
    bytes_written: int = 0
    result: PrintResult | None = None

    @property
    def finished(self) -> bool:
        return self.state in (JobState.CLOSED, JobState.FAILED)

    def advance(self, state: JobState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid job transition {self.state} -> {state}")
        _LOGGER.debug("Job on %s: %s -> %s", self.device_path, self.state, state)
        self.state = state
        self.history.append(state)

    def succeed(self, message: str) -> PrintResult:
        self.advance(JobState.CLOSED)
        self.result = PrintResult(success=True, message=message)
        return self.result

    def fail(self, err: PrinterError) -> PrintResult:
        self.error = err
        message = str(err)
        if isinstance(err, TransportWriteError) and max(err.bytes_written, self.bytes_written) > 0:
            message = f"{message.rstrip('.')}. {MSG_PARTIAL_WRITE}"
        _LOGGER.debug("Job on %s failed in state %s: %s", self.device_path, self.state, err.reason)
        self.advance(JobState.FAILED)
        self.result = PrintResult(success=False, message=message)
        return self.result

    def fail_unexpected(self, err: Exception) -> PrintResult:
        self.advance(JobState.FAILED)
        self.result = PrintResult(success=False, message=f"Error: {err}")
        return self.result


def device_key(device: DeviceDescriptor) -> str:
    """Key identifying the physical channel, independent of path spelling."""
    if device.kind is DeviceKind.USB:
        try:
            vendor_id, product_id = parse_usb_address(device.path)
        except PrinterError:
            return device.path
        return f"usb:{vendor_id:04x}:{product_id:04x}"
    return device.path


class DeviceLocks:
    """One asyncio lock per device, so a device serves one job at a time."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, device: DeviceDescriptor) -> asyncio.Lock:
        return self._locks.setdefault(device_key(device), asyncio.Lock())

    def is_busy(self, device: DeviceDescriptor) -> bool:
        lock = self._locks.get(device_key(device))
        return lock is not None and lock.locked()


class PrintJobExecutor:
    def __init__(
        self,
        hass: HomeAssistant,
        locks: DeviceLocks | None = None,
        *,
        busy_policy: str = DEFAULT_BUSY_POLICY,
        baudrate: int = DEFAULT_BAUDRATE,
        transport_factory: TransportFactory = create_transport,
        job_listener: Callable[[PrintJob], None] | None = None,
    ) -> None:
        if busy_policy not in (BUSY_POLICY_FAIL, BUSY_POLICY_WAIT):
            raise ValueError(f"Unknown busy policy '{busy_policy}'")
        self._hass = hass
        self._locks = locks if locks is not None else DeviceLocks()
        self._busy_policy = busy_policy
        self._baudrate = baudrate
        self._transport_factory = transport_factory
        self._job_listener = job_listener

    @property
    def busy_policy(self) -> str:
        return self._busy_policy

    async def run_job(self, spec: ConnectionSpec, receipt: Receipt) -> PrintResult:
        """Print ``receipt`` on the printer described by ``spec``."""
        usb = spec.device.kind is DeviceKind.USB
        return await self._run(
            spec,
            lambda: compose(receipt),
            MSG_PRINT_OK_USB if usb else MSG_PRINT_OK,
        )

    async def test_connection(self, spec: ConnectionSpec) -> PrintResult:
        """Open the printer, check it is alive and print a short test page."""
        usb = spec.device.kind is DeviceKind.USB
        return await self._run(
            spec,
            lambda: compose_test_page(spec.device.kind),
            MSG_TEST_OK_USB if usb else MSG_TEST_OK,
        )

    async def _run(
        self,
        spec: ConnectionSpec,
        build_operations: Callable[[], Sequence[PrintOperation]],
        success_message: str,
    ) -> PrintResult:
        job = PrintJob(spec.device.path)
        # Static failures are reported before any device I/O
        try:
            payload = encode(build_operations(), spec.profile)
            transport = self._transport_factory(spec.device, self._baudrate)
        except PrinterError as err:
            return self._finish(job, job.fail(err))
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("Unexpected error preparing job for %s", spec.device.path)
            return self._finish(job, job.fail_unexpected(err))

        # A caller that stops waiting does not stop the job: it still runs to
        # a terminal state and closes its transport.
        task = self._hass.async_create_task(
            self._execute(job, spec, transport, payload, success_message),
            f"escpos_receipt job {spec.device.path}",
        )
        return await asyncio.shield(task)

    def _finish(self, job: PrintJob, result: PrintResult) -> PrintResult:
        if self._job_listener is not None:
            self._job_listener(job)
        return result

    def _executor_job(self, target: Callable[..., Any], *args: Any) -> asyncio.Future[Any]:
        return self._hass.async_add_executor_job(target, *args)

    async def _acquire(self, spec: ConnectionSpec, lock: asyncio.Lock, deadline: float) -> None:
        if self._busy_policy == BUSY_POLICY_FAIL:
            if lock.locked():
                _LOGGER.warning("Printer %s is busy, rejecting job", spec.device.path)
                raise DeviceUnavailable(f"Printer {spec.device.path} is busy with another job.")
            await lock.acquire()
            return
        remaining = max(0.0, deadline - self._hass.loop.time())
        try:
            async with asyncio.timeout(remaining):
                await lock.acquire()
        except TimeoutError as err:
            raise ConnectionTimeout(spec.device.path, spec.timeout_ms) from err

    async def _execute(
        self,
        job: PrintJob,
        spec: ConnectionSpec,
        transport: Transport,
        payload: bytes,
        success_message: str,
    ) -> PrintResult:
        deadline = self._hass.loop.time() + spec.timeout_ms / 1000
        lock = self._locks.get(spec.device)
        try:
            await self._acquire(spec, lock, deadline)
        except PrinterError as err:
            return self._finish(job, job.fail(err))

        open_future: asyncio.Future[Any] | None = None
        try:
            job.advance(JobState.CONNECTING)
            open_future = self._executor_job(transport.open)
            remaining = max(0.0, deadline - self._hass.loop.time())
            done, _ = await asyncio.wait({open_future}, timeout=remaining)
            if not done:
                raise ConnectionTimeout(spec.device.path, spec.timeout_ms)
            open_future.result()
            job.advance(JobState.CONNECTED)

            if not await self._executor_job(transport.is_connected):
                raise NotConnected()

            job.advance(JobState.WRITING)
            job.bytes_written = await self._executor_job(transport.write, payload)

            job.advance(JobState.CUTTING)
            await self._executor_job(transport.flush)
        except PrinterError as err:
            result = job.fail(err)
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("Unexpected error printing to %s", spec.device.path)
            result = job.fail_unexpected(err)
        else:
            result = job.succeed(success_message)
        finally:
            if open_future is not None and not open_future.done():
                # Open is still blocked in its thread; close and free the
                # device once it returns.
                open_future.add_done_callback(lambda future: self._close_late(future, transport, lock))
            else:
                try:
                    await self._executor_job(transport.close)
                finally:
                    lock.release()
        return self._finish(job, result)

    def _close_late(self, open_future: asyncio.Future[Any], transport: Transport, lock: asyncio.Lock) -> None:
        err = None if open_future.cancelled() else open_future.exception()
        if err is not None:
            _LOGGER.debug("Late open of %s failed: %s", transport.path, err)
        else:
            _LOGGER.debug("Late open of %s finished, closing", transport.path)
        self._executor_job(transport.close).add_done_callback(lambda _: lock.release())
