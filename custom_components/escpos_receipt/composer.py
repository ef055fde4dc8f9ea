"""Receipt composer: a Receipt document to an ordered list of print operations."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .errors import EncodingError
from .models import (
    Align,
    Cut,
    DeviceKind,
    FeedLine,
    Image,
    LineItem,
    PrintOperation,
    Receipt,
    Rule,
    SetAlign,
    SetEmphasis,
    TableColumn,
    TableRow,
    Text,
)

NAME_WIDTH = 0.6
QTY_WIDTH = 0.1
PRICE_WIDTH = 0.3

TWO_PLACES = Decimal("0.01")


def format_amount(value: str, field: str) -> str:
    """Normalize a decimal string to exactly two fractional digits."""
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as err:
        raise EncodingError(f"{field} '{value}' is not a decimal amount") from err
    if not amount.is_finite():
        raise EncodingError(f"{field} '{value}' is not a decimal amount")
    try:
        return str(amount.quantize(TWO_PLACES))
    except InvalidOperation as err:
        # Too many digits for the decimal context
        raise EncodingError(f"{field} '{value}' is not a decimal amount") from err


def _lines(text: str | None) -> list[str]:
    if text is None or not text.strip():
        return []
    return text.splitlines()


def item_row(item: LineItem) -> TableRow:
    if isinstance(item.qty, bool) or not isinstance(item.qty, int) or item.qty < 1:
        raise EncodingError(f"Quantity for '{item.name}' must be a whole number of at least 1")
    return TableRow(
        columns=(
            TableColumn(text=item.name, width=NAME_WIDTH, align=Align.LEFT),
            TableColumn(text=f"{item.qty}x", width=QTY_WIDTH, align=Align.RIGHT),
            TableColumn(text=format_amount(item.price, "Price"), width=PRICE_WIDTH, align=Align.RIGHT),
        )
    )


def compose(receipt: Receipt) -> list[PrintOperation]:
    """Map a receipt onto print operations.

    Layout: optional logo, centered bold header, left-aligned item table
    closed by a rule, right-aligned bold total, centered footer, and always
    a final cut. Empty optional fields add nothing.
    """
    ops: list[PrintOperation] = []

    if receipt.logo is not None:
        ops.append(Image(receipt.logo))

    header = _lines(receipt.header)
    if header:
        ops.append(SetAlign(Align.CENTER))
        ops.append(SetEmphasis(True))
        ops.extend(Text(line) for line in header)
        ops.append(SetEmphasis(False))
        ops.append(FeedLine())

    ops.append(SetAlign(Align.LEFT))

    for item in receipt.items:
        ops.append(item_row(item))
    if receipt.items:
        ops.append(Rule())

    if receipt.total is not None and receipt.total.strip():
        ops.append(SetAlign(Align.RIGHT))
        ops.append(SetEmphasis(True))
        ops.append(Text("TOTAL: " + format_amount(receipt.total, "Total")))
        ops.append(SetEmphasis(False))

    footer = _lines(receipt.footer)
    if footer:
        ops.append(SetAlign(Align.CENTER))
        ops.extend(Text(line) for line in footer)

    ops.append(Cut())
    return ops


def compose_test_page(kind: DeviceKind) -> list[PrintOperation]:
    title = "USB Printer Test" if kind is DeviceKind.USB else "Thermal Printer Test"
    return [
        SetAlign(Align.CENTER),
        SetEmphasis(True),
        Text(title),
        SetEmphasis(False),
        Text("Test Successful!"),
        Cut(),
    ]
