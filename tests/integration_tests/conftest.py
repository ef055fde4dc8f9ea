"""Shared integration-test configuration and fixtures.

Explicitly imports fixtures from tests/integration_tests/fixtures/conftest.py
to make them available to tests in sibling packages like scenarios/.
"""

from typing import Any

import pytest

from tests.integration_tests.fixtures.conftest import (  # noqa: F401
    entry_options,
    logo_base64,
    printer_bank,
    receipt_integration,
    sample_receipt_content,
    serial_printer,
    star_printer,
    usb_printer,
)


def pytest_collection_modifyitems(config: Any, items: Any) -> None:
    """Mark all tests under tests/integration_tests as integration."""
    for item in items:
        if "tests/integration_tests/" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
