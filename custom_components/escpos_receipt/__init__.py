from __future__ import annotations

import logging
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import (
    CONF_BAUDRATE,
    CONF_BUSY_POLICY,
    CONF_TIMEOUT_MS,
    DEFAULT_BAUDRATE,
    DEFAULT_BUSY_POLICY,
    DEFAULT_TIMEOUT_MS,
    DOMAIN,
)
from .executor import DeviceLocks, PrintJobExecutor
from .services import async_setup_services, async_unload_services
from .transport import create_transport

_LOGGER = logging.getLogger(__name__)


def _entry_value(entry: ConfigEntry, key: str, default: Any) -> Any:
    return entry.options.get(key, entry.data.get(key, default))


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.debug("Setting up escpos_receipt entry: %s", entry.entry_id)
    timeout_ms = int(_entry_value(entry, CONF_TIMEOUT_MS, DEFAULT_TIMEOUT_MS))
    busy_policy = str(_entry_value(entry, CONF_BUSY_POLICY, DEFAULT_BUSY_POLICY))
    baudrate = int(_entry_value(entry, CONF_BAUDRATE, DEFAULT_BAUDRATE))

    executor = PrintJobExecutor(
        hass,
        DeviceLocks(),
        busy_policy=busy_policy,
        baudrate=baudrate,
        transport_factory=create_transport,
    )
    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "executor": executor,
        "defaults": {CONF_TIMEOUT_MS: timeout_ms},
    }
    _LOGGER.debug(
        "Printer defaults: timeout_ms=%s busy_policy=%s baudrate=%s",
        timeout_ms,
        busy_policy,
        baudrate,
    )

    await async_setup_services(hass)
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))
    return True


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    _LOGGER.debug("Options changed for entry %s, reloading", entry.entry_id)
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.debug("Unloading escpos_receipt entry: %s", entry.entry_id)
    hass.data.get(DOMAIN, {}).pop(entry.entry_id, None)
    if not hass.data.get(DOMAIN):
        await async_unload_services(hass)
    _LOGGER.debug("Unloaded entry %s", entry.entry_id)
    return True
