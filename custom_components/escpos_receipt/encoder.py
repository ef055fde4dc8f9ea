"""Command encoder: print operations to a profile's raw byte stream.

The encoder is pure. The stream always begins by resetting the printer and
selecting the profile's codepage, so no printer state leaks from one receipt
into the next.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
import logging
import re

from .errors import EncodingError
from .models import (
    Align,
    Cut,
    FeedLine,
    Image,
    ImageBuffer,
    PrintOperation,
    Rule,
    SetAlign,
    SetEmphasis,
    TableColumn,
    TableRow,
    Text,
)
from .profiles import CommandTable, PrinterProfile
from .text_utils import encode_text, get_unmappable_chars, transcode_to_codepage

_LOGGER = logging.getLogger(__name__)


def column_widths(columns: Sequence[TableColumn], line_width: int) -> list[int]:
    """Character width of each column: floor(fraction * line_width)."""
    widths: list[int] = []
    total = Decimal(0)
    for column in columns:
        try:
            fraction = Decimal(str(column.width))
        except InvalidOperation as err:
            raise EncodingError(f"Invalid column width {column.width!r}") from err
        if not fraction.is_finite() or fraction < 0:
            raise EncodingError(f"Invalid column width {column.width!r}")
        total += fraction
        widths.append(int((fraction * line_width).to_integral_value(rounding=ROUND_FLOOR)))
    if total > 1:
        raise EncodingError(f"Table column widths add up to {total}, more than the full line")
    return widths


# Cells stay on one line: control characters become spaces
_CELL_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def _fit(text: str, width: int, align: Align) -> str:
    # Overflow keeps the left-most characters, no wrapping
    text = text[:width]
    if align is Align.RIGHT:
        return text.rjust(width)
    if align is Align.CENTER:
        return text.center(width)
    return text.ljust(width)


def render_table_row(columns: Sequence[TableColumn], line_width: int, codepage: str = "CP437") -> str:
    """Lay out a table row as a single line of at most ``line_width`` characters."""
    widths = column_widths(columns, line_width)
    cells = [
        _fit(
            transcode_to_codepage(_CELL_CONTROL_CHARS.sub(" ", column.text), codepage),
            width,
            Align(column.align),
        )
        for column, width in zip(columns, widths, strict=True)
    ]
    return "".join(cells)


def _encode_image(prefix: bytes, buffer: ImageBuffer) -> bytes:
    if buffer.width_bytes <= 0 or buffer.height <= 0:
        raise EncodingError("Image has no pixels")
    if len(buffer.data) != buffer.width_bytes * buffer.height:
        raise EncodingError(
            f"Image data is {len(buffer.data)} bytes, expected {buffer.width_bytes * buffer.height}"
        )
    if buffer.width_bytes > 0xFFFF or buffer.height > 0xFFFF:
        raise EncodingError("Image is too large for the raster command")
    header = prefix + bytes(
        (
            buffer.width_bytes & 0xFF,
            buffer.width_bytes >> 8,
            buffer.height & 0xFF,
            buffer.height >> 8,
        )
    )
    return header + buffer.data


def _encode_operation(table: CommandTable, op: PrintOperation) -> bytes:
    if isinstance(op, SetAlign):
        return {
            Align.LEFT: table.align_left,
            Align.CENTER: table.align_center,
            Align.RIGHT: table.align_right,
        }[Align(op.align)]
    if isinstance(op, SetEmphasis):
        return table.emphasis_on if op.on else table.emphasis_off
    if isinstance(op, Text):
        unmappable = get_unmappable_chars(op.line, table.codepage)
        if unmappable:
            _LOGGER.debug("%d characters have no %s mapping and print as ?", len(unmappable), table.codepage)
        return encode_text(op.line, table.codepage) + table.line_feed
    if isinstance(op, TableRow):
        row = render_table_row(op.columns, table.line_width, table.codepage)
        return encode_text(row, table.codepage) + table.line_feed
    if isinstance(op, Rule):
        return encode_text(table.rule_char * table.line_width, table.codepage) + table.line_feed
    if isinstance(op, FeedLine):
        return table.line_feed
    if isinstance(op, Image):
        if table.raster_image is None:
            _LOGGER.debug("Profile %s has no raster support, skipping image", table.name)
            return b""
        return _encode_image(table.raster_image, op.buffer)
    if isinstance(op, Cut):
        return table.cut
    raise EncodingError(f"Unsupported print operation {type(op).__name__}")


def encode(operations: Sequence[PrintOperation], profile: PrinterProfile) -> bytes:
    """Encode operations for ``profile``, preserving their order exactly.

    Raises:
        EncodingError: An operation cannot be encoded, or a Cut appears
            anywhere but as the single final operation.
    """
    table = profile.table
    last = len(operations) - 1
    out = bytearray(table.initialize + table.select_codepage)
    for index, op in enumerate(operations):
        if isinstance(op, Cut) and index != last:
            raise EncodingError("Cut must be the final print operation")
        out += _encode_operation(table, op)
    _LOGGER.debug("Encoded %d operations into %d bytes for %s", len(operations), len(out), profile.value)
    return bytes(out)
