"""Service handlers for the ESC/POS receipt integration."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
import logging
from typing import Any

from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers import config_validation as cv
import voluptuous as vol

from .catalog import list_devices
from .const import (
    ATTR_CONFIG,
    ATTR_CONNECTION_TYPE,
    ATTR_CONTENT,
    ATTR_FOOTER,
    ATTR_HEADER,
    ATTR_INTERFACE,
    ATTR_ITEMS,
    ATTR_LOGO,
    ATTR_NAME,
    ATTR_PRICE,
    ATTR_QTY,
    ATTR_TIMEOUT_MS,
    ATTR_TOTAL,
    ATTR_TYPE,
    CONF_TIMEOUT_MS,
    CONNECTION_TYPE_USB,
    CONNECTION_TYPES,
    DEFAULT_TIMEOUT_MS,
    DOMAIN,
    SERVICE_LIST_DEVICES,
    SERVICE_PRINT_RECEIPT,
    SERVICE_TEST_CONNECTION,
)
from .errors import EncodingError, PrinterError
from .executor import PrintJobExecutor
from .imaging import decode_logo
from .models import ConnectionSpec, DeviceDescriptor, DeviceKind, LineItem, PrintResult, Receipt, format_usb_address
from .profiles import PrinterProfile, get_profile
from .security import (
    MAX_ITEM_NAME_LENGTH,
    MAX_ITEMS,
    MAX_QTY,
    parse_usb_address,
    sanitize_log_message,
    validate_numeric_input,
    validate_text_input,
    validate_timeout_ms,
)

_LOGGER = logging.getLogger(__name__)

MAX_INTERFACE_LENGTH = 255

# Only the shape is checked here. Field values are validated while building
# the job so that bad values come back as a failed result, not a raised error.
CONNECTION_FIELDS = {
    vol.Required(ATTR_TYPE): cv.string,
    vol.Required(ATTR_INTERFACE): cv.string,
    vol.Required(ATTR_CONNECTION_TYPE): cv.string,
    vol.Optional(ATTR_TIMEOUT_MS): vol.Any(int, float, cv.string),
}

TEST_CONNECTION_SCHEMA = vol.Schema(CONNECTION_FIELDS, extra=vol.ALLOW_EXTRA)

PRINT_RECEIPT_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_CONFIG): vol.Schema(CONNECTION_FIELDS, extra=vol.ALLOW_EXTRA),
        vol.Optional(ATTR_CONTENT, default=dict): dict,
    },
    extra=vol.ALLOW_EXTRA,
)


def build_connection_spec(config: Mapping[str, Any], default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ConnectionSpec:
    """Resolve a request's printer config into a ConnectionSpec.

    The profile is resolved first, so an unknown printer type is reported
    before anything about the device is looked at.

    Raises:
        UnknownProfile: ``type`` names no supported printer
        EncodingError: Bad ``connectionType``, ``interface`` or ``timeoutMs``
    """
    profile = get_profile(config.get(ATTR_TYPE))

    connection_type = str(config.get(ATTR_CONNECTION_TYPE) or "").strip().lower()
    if connection_type not in CONNECTION_TYPES:
        raise EncodingError(
            f"Unsupported connectionType '{config.get(ATTR_CONNECTION_TYPE)}', expected one of {CONNECTION_TYPES}"
        )

    interface = validate_text_input(config.get(ATTR_INTERFACE), ATTR_INTERFACE, MAX_INTERFACE_LENGTH).strip()
    if not interface:
        raise EncodingError("interface must not be empty")

    timeout_ms = config.get(ATTR_TIMEOUT_MS)
    timeout_ms = default_timeout_ms if timeout_ms is None else validate_timeout_ms(timeout_ms)

    if connection_type == CONNECTION_TYPE_USB:
        vendor_id, product_id = parse_usb_address(interface)
        device = DeviceDescriptor(
            path=format_usb_address(vendor_id, product_id),
            kind=DeviceKind.USB,
            vendor_id=vendor_id,
            product_id=product_id,
        )
    else:
        device = DeviceDescriptor(path=interface, kind=DeviceKind.SERIAL)

    return ConnectionSpec(profile=profile, device=device, timeout_ms=timeout_ms)


def _optional_text(content: Mapping[str, Any], field: str) -> str | None:
    value = content.get(field)
    if value is None:
        return None
    return validate_text_input(value, field)


def _amount(value: Any, field: str) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        raise EncodingError(f"{field} must be a decimal amount")
    return str(value)


def _line_item(index: int, raw: Any) -> LineItem:
    if not isinstance(raw, Mapping):
        raise EncodingError(f"Item {index + 1} must be an object with name, qty and price")
    name = validate_text_input(raw.get(ATTR_NAME, ""), f"Item {index + 1} name", MAX_ITEM_NAME_LENGTH)
    qty = validate_numeric_input(raw.get(ATTR_QTY), 1, MAX_QTY, f"Item {index + 1} qty")
    if raw.get(ATTR_PRICE) is None:
        raise EncodingError(f"Item {index + 1} has no price")
    return LineItem(name=name, qty=qty, price=_amount(raw[ATTR_PRICE], f"Item {index + 1} price"))


def build_receipt(content: Mapping[str, Any] | None, profile: PrinterProfile) -> Receipt:
    """Validate request content and build a Receipt for ``profile``.

    Blocking when a logo is present (image decoding); run it in an executor.

    Raises:
        EncodingError: Any field is malformed or over its size limit
    """
    if content is None:
        content = {}
    if not isinstance(content, Mapping):
        raise EncodingError("content must be an object")

    logo = content.get(ATTR_LOGO)
    buffer = decode_logo(logo, profile.table.dot_width) if logo else None

    raw_items = content.get(ATTR_ITEMS) or []
    if not isinstance(raw_items, list):
        raise EncodingError("items must be a list")
    if len(raw_items) > MAX_ITEMS:
        raise EncodingError(f"Too many items (max {MAX_ITEMS})")

    total = content.get(ATTR_TOTAL)
    return Receipt(
        logo=buffer,
        header=_optional_text(content, ATTR_HEADER),
        items=tuple(_line_item(index, raw) for index, raw in enumerate(raw_items)),
        total=None if total is None else _amount(total, "Total"),
        footer=_optional_text(content, ATTR_FOOTER),
    )


def _get_store(hass: HomeAssistant) -> dict[str, Any]:
    """Return the runtime store of the loaded entry.

    Raises:
        ServiceValidationError: The integration has no loaded entry
    """
    for store in hass.data.get(DOMAIN, {}).values():
        return store  # type: ignore[no-any-return]
    raise ServiceValidationError("ESC/POS receipt printing is not set up")


def _failed(err: Exception) -> ServiceResponse:
    message = str(err) if isinstance(err, PrinterError) else f"Error: {err}"
    return PrintResult(success=False, message=message).as_dict()


async def async_setup_services(hass: HomeAssistant) -> None:
    """Register the integration's services.

    All three return a response; print and test failures are reported in the
    response rather than raised.
    """

    async def _handle_list_devices(call: ServiceCall) -> ServiceResponse:
        _LOGGER.debug("Service call: list_devices")
        try:
            devices = await hass.async_add_executor_job(list_devices)
        except Exception as err:
            _LOGGER.exception("Service list_devices failed: %s", err)
            raise HomeAssistantError(str(err)) from err
        return {"devices": [device.as_dict() for device in devices]}

    async def _handle_test_connection(call: ServiceCall) -> ServiceResponse:
        _LOGGER.debug("Service call: test_connection data=%s", sanitize_log_message(str(dict(call.data))))
        store = _get_store(hass)
        executor: PrintJobExecutor = store["executor"]
        try:
            spec = build_connection_spec(call.data, store["defaults"][CONF_TIMEOUT_MS])
        except PrinterError as err:
            _LOGGER.debug("Rejected test_connection request: %s", err)
            return _failed(err)
        try:
            result = await executor.test_connection(spec)
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("Service test_connection failed: %s", err)
            return _failed(err)
        return result.as_dict()

    async def _handle_print_receipt(call: ServiceCall) -> ServiceResponse:
        _LOGGER.debug("Service call: print_receipt data=%s", sanitize_log_message(str(dict(call.data))))
        store = _get_store(hass)
        executor: PrintJobExecutor = store["executor"]
        try:
            spec = build_connection_spec(call.data[ATTR_CONFIG], store["defaults"][CONF_TIMEOUT_MS])
            receipt = await hass.async_add_executor_job(build_receipt, call.data.get(ATTR_CONTENT), spec.profile)
        except PrinterError as err:
            _LOGGER.debug("Rejected print_receipt request: %s", err)
            return _failed(err)
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("Service print_receipt failed: %s", err)
            return _failed(err)
        try:
            result = await executor.run_job(spec, receipt)
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("Service print_receipt failed: %s", err)
            return _failed(err)
        return result.as_dict()

    hass.services.async_register(
        DOMAIN,
        SERVICE_LIST_DEVICES,
        _handle_list_devices,
        supports_response=SupportsResponse.ONLY,
    )
    _LOGGER.debug("Registered service %s.%s", DOMAIN, SERVICE_LIST_DEVICES)

    hass.services.async_register(
        DOMAIN,
        SERVICE_TEST_CONNECTION,
        _handle_test_connection,
        schema=TEST_CONNECTION_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )
    _LOGGER.debug("Registered service %s.%s", DOMAIN, SERVICE_TEST_CONNECTION)

    hass.services.async_register(
        DOMAIN,
        SERVICE_PRINT_RECEIPT,
        _handle_print_receipt,
        schema=PRINT_RECEIPT_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )
    _LOGGER.debug("Registered service %s.%s", DOMAIN, SERVICE_PRINT_RECEIPT)


async def async_unload_services(hass: HomeAssistant) -> None:
    """Remove the integration's services when its entry is unloaded."""
    hass.services.async_remove(DOMAIN, SERVICE_LIST_DEVICES)
    hass.services.async_remove(DOMAIN, SERVICE_TEST_CONNECTION)
    hass.services.async_remove(DOMAIN, SERVICE_PRINT_RECEIPT)
    _LOGGER.debug("Unloaded all %s services", DOMAIN)
