from __future__ import annotations

import logging
from typing import Any

from homeassistant import config_entries
from homeassistant.config_entries import ConfigFlowResult
import voluptuous as vol

from .const import (
    BAUDRATE_CHOICES,
    BUSY_POLICIES,
    CONF_BAUDRATE,
    CONF_BUSY_POLICY,
    CONF_TIMEOUT_MS,
    DEFAULT_BAUDRATE,
    DEFAULT_BUSY_POLICY,
    DEFAULT_TIMEOUT_MS,
    DOMAIN,
    MAX_TIMEOUT_MS,
    MIN_TIMEOUT_MS,
)

_LOGGER = logging.getLogger(__name__)

TITLE = "ESC/POS Receipt Printer"


def _settings_schema(timeout_ms: int, busy_policy: str, baudrate: int) -> vol.Schema:
    """Schema shared by the setup form and the options form.

    Args:
        timeout_ms: Default connect timeout shown in the form
        busy_policy: Default busy policy shown in the form
        baudrate: Default serial baud rate shown in the form

    Returns:
        Voluptuous schema for the form
    """
    return vol.Schema(
        {
            vol.Optional(CONF_TIMEOUT_MS, default=timeout_ms): vol.All(
                vol.Coerce(int), vol.Range(min=MIN_TIMEOUT_MS, max=MAX_TIMEOUT_MS)
            ),
            vol.Optional(CONF_BUSY_POLICY, default=busy_policy): vol.In(BUSY_POLICIES),
            vol.Optional(CONF_BAUDRATE, default=baudrate): vol.All(vol.Coerce(int), vol.In(BAUDRATE_CHOICES)),
        }
    )


class EscposReceiptConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    VERSION = 1

    async def async_step_user(self, user_input: dict[str, Any] | None = None) -> ConfigFlowResult:
        """Handle the initial step of the config flow.

        Printers are addressed per request, so setup only collects defaults.
        """
        if self._async_current_entries():
            _LOGGER.debug("Aborting config flow, %s is already configured", DOMAIN)
            return self.async_abort(reason="single_instance_allowed")

        if user_input is not None:
            _LOGGER.debug("Config flow user step input: %s", user_input)
            data = {
                CONF_TIMEOUT_MS: user_input.get(CONF_TIMEOUT_MS, DEFAULT_TIMEOUT_MS),
                CONF_BUSY_POLICY: user_input.get(CONF_BUSY_POLICY, DEFAULT_BUSY_POLICY),
                CONF_BAUDRATE: user_input.get(CONF_BAUDRATE, DEFAULT_BAUDRATE),
            }
            return self.async_create_entry(title=TITLE, data=data)

        return self.async_show_form(
            step_id="user",
            data_schema=_settings_schema(DEFAULT_TIMEOUT_MS, DEFAULT_BUSY_POLICY, DEFAULT_BAUDRATE),
        )

    @staticmethod
    def async_get_options_flow(config_entry: Any) -> Any:
        return EscposReceiptOptionsFlowHandler(config_entry)


class EscposReceiptOptionsFlowHandler(config_entries.OptionsFlow):
    def __init__(self, config_entry: Any) -> None:
        # Older HA releases do not set config_entry on the base class
        object.__setattr__(self, "_config_entry_compat", config_entry)
        super().__init__()

    @property
    def config_entry(self) -> Any:
        try:
            return super().config_entry
        except AttributeError:
            return self._config_entry_compat

    def _current(self, key: str, default: Any) -> Any:
        return self.config_entry.options.get(key, self.config_entry.data.get(key, default))

    async def async_step_init(self, user_input: dict[str, Any] | None = None) -> ConfigFlowResult:
        if user_input is not None:
            _LOGGER.debug("Options flow update for entry %s: %s", self.config_entry.entry_id, user_input)
            return self.async_create_entry(title="Options", data=user_input)

        data_schema = _settings_schema(
            self._current(CONF_TIMEOUT_MS, DEFAULT_TIMEOUT_MS),
            self._current(CONF_BUSY_POLICY, DEFAULT_BUSY_POLICY),
            self._current(CONF_BAUDRATE, DEFAULT_BAUDRATE),
        )
        _LOGGER.debug("Showing options form for entry %s", self.config_entry.entry_id)
        return self.async_show_form(step_id="init", data_schema=data_schema)
