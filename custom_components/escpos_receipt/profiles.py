"""Vendor profiles and their command tables.

A profile selects which raw byte sequences the encoder emits for each print
operation. Adding a vendor means adding one CommandTable and one enum member.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging

from .errors import UnknownProfile

_LOGGER = logging.getLogger(__name__)

ESC = b"\x1b"
GS = b"\x1d"
LF = b"\n"


@dataclass(frozen=True)
class CommandTable:
    name: str
    initialize: bytes
    select_codepage: bytes
    codepage: str
    align_left: bytes
    align_center: bytes
    align_right: bytes
    emphasis_on: bytes
    emphasis_off: bytes
    cut: bytes
    line_feed: bytes = LF
    rule_char: str = "-"
    # GS v 0 raster prefix; None when the printer has no raster image support
    raster_image: bytes | None = None
    line_width: int = 42
    dot_width: int = 512


# Epson-style ESC/POS
ESCPOS_TABLE = CommandTable(
    name="ESC/POS",
    initialize=ESC + b"@",
    select_codepage=ESC + b"t\x00",  # PC437
    codepage="CP437",
    align_left=ESC + b"a\x00",
    align_center=ESC + b"a\x01",
    align_right=ESC + b"a\x02",
    emphasis_on=ESC + b"E\x01",
    emphasis_off=ESC + b"E\x00",
    # Feed 4 lines then full cut
    cut=ESC + b"d\x04" + GS + b"V\x00",
    raster_image=GS + b"v0\x00",
    line_width=42,
    dot_width=512,
)

# Star line mode
STAR_TABLE = CommandTable(
    name="Star Line Mode",
    initialize=ESC + b"@",
    select_codepage=ESC + GS + b"t\x01",  # PC437
    codepage="CP437",
    align_left=ESC + GS + b"a\x00",
    align_center=ESC + GS + b"a\x01",
    align_right=ESC + GS + b"a\x02",
    emphasis_on=ESC + b"E",
    emphasis_off=ESC + b"F",
    # Feed to cut position then full cut
    cut=ESC + b"d\x02",
    raster_image=None,
    line_width=48,
    dot_width=576,
)


class PrinterProfile(Enum):
    GENERIC_A = "GENERIC_A"
    GENERIC_B = "GENERIC_B"
    EPSON = "EPSON"
    STAR = "STAR"

    @property
    def table(self) -> CommandTable:
        return _TABLES[self]


_TABLES: dict[PrinterProfile, CommandTable] = {
    PrinterProfile.GENERIC_A: ESCPOS_TABLE,
    PrinterProfile.GENERIC_B: STAR_TABLE,
    PrinterProfile.EPSON: ESCPOS_TABLE,
    PrinterProfile.STAR: STAR_TABLE,
}


def get_profile(name: object) -> PrinterProfile:
    """Resolve a printer type string to a profile.

    Matching is case-insensitive. Unknown names raise UnknownProfile; there is
    no fallback profile.
    """
    if not isinstance(name, str) or not name.strip():
        raise UnknownProfile(name)
    try:
        return PrinterProfile[name.strip().upper()]
    except KeyError:
        _LOGGER.debug("Rejecting unknown printer type '%s'", name)
        raise UnknownProfile(name) from None


def list_profiles() -> list[str]:
    return [profile.value for profile in PrinterProfile]
