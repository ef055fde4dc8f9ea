"""Virtual printer emulator for receipt integration testing."""

from .command_parser import DIALECT_ESCPOS, DIALECT_STAR, EscposCommandParser, text_lines
from .error_simulator import (
    ErrorCondition,
    ErrorSimulator,
    create_close_failure,
    create_hanging_open,
    create_not_connected_error,
    create_offline_error,
    create_write_failure,
)
from .printer_state import PrinterState, ReceivedJob
from .virtual_printer import VirtualPrinter, VirtualPrinterBank, VirtualPrinterTransport

__all__ = [
    "DIALECT_ESCPOS",
    "DIALECT_STAR",
    "ErrorCondition",
    "ErrorSimulator",
    "EscposCommandParser",
    "PrinterState",
    "ReceivedJob",
    "VirtualPrinter",
    "VirtualPrinterBank",
    "VirtualPrinterTransport",
    "create_close_failure",
    "create_hanging_open",
    "create_not_connected_error",
    "create_offline_error",
    "create_write_failure",
    "text_lines",
]
