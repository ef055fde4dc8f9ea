"""Text utilities for mapping receipt text onto printer codepages.

Thermal printers only understand single-byte codepages. Receipt text typed in
an editor is arbitrary Unicode, so each character is encoded directly when
the codepage has it, otherwise replaced by an ASCII look-alike, otherwise
stripped of its accents, and only then replaced with ``?``.

Transcoding keeps one output character per input character wherever a
look-alike is a single character, so column layout computed on the
transcoded string matches what the printer emits.
"""

from __future__ import annotations

import logging
import unicodedata

_LOGGER = logging.getLogger(__name__)

# Consulted only when direct encoding fails, so characters native to the
# codepage (box drawing in CP437, for example) are kept as-is.
LOOKALIKE_MAP: dict[str, str] = {
    # Typographic quotes
    "\u2018": "'",  # LEFT SINGLE QUOTATION MARK
    "\u2019": "'",  # RIGHT SINGLE QUOTATION MARK
    "\u201a": ",",  # SINGLE LOW-9 QUOTATION MARK
    "\u201c": '"',  # LEFT DOUBLE QUOTATION MARK
    "\u201d": '"',  # RIGHT DOUBLE QUOTATION MARK
    "\u201e": '"',  # DOUBLE LOW-9 QUOTATION MARK
    "\u2039": "<",  # SINGLE LEFT-POINTING ANGLE QUOTATION MARK
    "\u203a": ">",  # SINGLE RIGHT-POINTING ANGLE QUOTATION MARK
    # Dashes
    "\u2010": "-",  # HYPHEN
    "\u2011": "-",  # NON-BREAKING HYPHEN
    "\u2012": "-",  # FIGURE DASH
    "\u2013": "-",  # EN DASH
    "\u2014": "--",  # EM DASH
    "\u2212": "-",  # MINUS SIGN
    # Spaces
    "\u00a0": " ",  # NO-BREAK SPACE
    "\u2007": " ",  # FIGURE SPACE
    "\u2009": " ",  # THIN SPACE
    "\u202f": " ",  # NARROW NO-BREAK SPACE
    "\u200b": "",  # ZERO WIDTH SPACE
    "\ufeff": "",  # BOM
    # Punctuation
    "\u2026": "...",  # HORIZONTAL ELLIPSIS
    "\u2022": "*",  # BULLET
    "\u00b7": ".",  # MIDDLE DOT
    "\u00d7": "x",  # MULTIPLICATION SIGN
    # Currency
    "\u20ac": "EUR",  # EURO SIGN
    "\u20b9": "INR",  # INDIAN RUPEE SIGN
    "\u20bd": "RUB",  # RUBLE SIGN
    # Marks
    "\u00a9": "(C)",  # COPYRIGHT SIGN
    "\u00ae": "(R)",  # REGISTERED SIGN
    "\u2122": "(TM)",  # TRADE MARK SIGN
}

CODEPAGE_TO_CODEC: dict[str, str] = {
    "CP437": "cp437",
    "CP850": "cp850",
    "CP852": "cp852",
    "CP858": "cp858",
    "CP1252": "cp1252",
    "ISO_8859-1": "iso-8859-1",
    "ISO_8859-15": "iso-8859-15",
}


def get_codec_name(codepage: str) -> str:
    """Return the Python codec name for a printer codepage name."""
    upper = codepage.upper()
    if upper in CODEPAGE_TO_CODEC:
        return CODEPAGE_TO_CODEC[upper]
    if upper.startswith("CP") and upper[2:].isdigit():
        return f"cp{upper[2:]}"
    return codepage.lower()


def strip_accents(char: str) -> str:
    decomposed = unicodedata.normalize("NFKD", char)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def transcode_to_codepage(text: str, codepage: str, replace_char: str = "?") -> str:
    """Transcode Unicode text so that every character exists in ``codepage``.

    Args:
        text: Text to transcode.
        codepage: Target codepage name (e.g. "CP437").
        replace_char: Substitute for characters with no usable fallback.

    Returns:
        Text that encodes to ``codepage`` without errors.
    """
    if not text:
        return text

    codec = get_codec_name(codepage)
    try:
        "".encode(codec)
    except LookupError:
        _LOGGER.warning("Unknown codepage '%s', falling back to cp437", codepage)
        codec = "cp437"

    # NFC keeps precomposed accented letters, which CP437 partly supports
    normalized = unicodedata.normalize("NFC", text)
    result: list[str] = []
    for char in normalized:
        for candidate in (char, LOOKALIKE_MAP.get(char), strip_accents(char)):
            if candidate is None:
                continue
            try:
                candidate.encode(codec)
            except UnicodeEncodeError:
                continue
            result.append(candidate)
            break
        else:
            result.append(replace_char)
    return "".join(result)


def encode_text(text: str, codepage: str) -> bytes:
    """Transcode and encode text to the raw bytes sent to the printer."""
    return transcode_to_codepage(text, codepage).encode(get_codec_name(codepage), errors="replace")


def get_unmappable_chars(text: str, codepage: str) -> list[str]:
    """List the characters that will print as the replacement character."""
    unmappable: list[str] = []
    for char in unicodedata.normalize("NFC", text or ""):
        if char in unmappable:
            continue
        if transcode_to_codepage(char, codepage) == "?" and char != "?":
            unmappable.append(char)
    return unmappable
