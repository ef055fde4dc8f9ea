from __future__ import annotations

from typing import Any

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .catalog import list_devices
from .const import CONF_BAUDRATE, CONF_BUSY_POLICY, CONF_TIMEOUT_MS, DOMAIN
from .profiles import list_profiles

# pnpId embeds the serial number for most USB-serial adapters
TO_REDACT = {"serialNumber", "pnpId"}


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    data = dict(entry.data)
    options = dict(entry.options)

    store = hass.data.get(DOMAIN, {}).get(entry.entry_id, {})
    executor = store.get("executor")

    devices = await hass.async_add_executor_job(list_devices)

    payload = {
        "entry": {
            "title": entry.title,
            "data": {key: data.get(key) for key in (CONF_TIMEOUT_MS, CONF_BUSY_POLICY, CONF_BAUDRATE)},
            "options": {key: options.get(key) for key in (CONF_TIMEOUT_MS, CONF_BUSY_POLICY, CONF_BAUDRATE)},
        },
        "runtime": {
            "loaded": executor is not None,
            "busy_policy": executor.busy_policy if executor is not None else None,
            "defaults": store.get("defaults"),
        },
        "profiles": list_profiles(),
        "devices": [device.as_dict() for device in devices],
    }

    return async_redact_data(payload, TO_REDACT)
