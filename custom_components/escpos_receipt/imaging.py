"""Logo decoding: a base64 image to a printer raster buffer."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from typing import Any

from PIL import Image, UnidentifiedImageError

from .errors import EncodingError
from .models import ImageBuffer
from .security import MAX_LOGO_SIZE_MB

_LOGGER = logging.getLogger(__name__)


# Late import of python-escpos to avoid import errors at HA startup if deps pending
def _get_escpos_image() -> type[Any]:
    from escpos.image import EscposImage

    return EscposImage  # type: ignore[no-any-return]


def decode_base64_image(data: str) -> bytes:
    """Decode a base64 string or ``data:`` URL into raw image bytes."""
    if not isinstance(data, str):
        raise EncodingError("Logo must be a base64 string")
    payload = data.strip()
    if payload.startswith("data:"):
        _, sep, payload = payload.partition(",")
        if not sep:
            raise EncodingError("Logo data URL has no payload")
    if len(payload) > MAX_LOGO_SIZE_MB * 1024 * 1024 * 4 // 3 + 4:
        raise EncodingError(f"Logo too large (max {MAX_LOGO_SIZE_MB}MB)")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as err:
        raise EncodingError(f"Logo is not valid base64: {err}") from err


def to_raster(img: Image.Image, max_width: int) -> ImageBuffer:
    """Scale ``img`` to fit ``max_width`` dots and convert it to raster format."""
    orig_w, orig_h = img.width, img.height
    if orig_w > max_width:
        ratio = max_width / float(orig_w)
        new_size = (max_width, max(1, int(orig_h * ratio)))
        img = img.resize(new_size)
        _LOGGER.debug("Resized logo from %sx%s to %sx%s", orig_w, orig_h, new_size[0], new_size[1])
    escpos_image = _get_escpos_image()(img)
    return ImageBuffer(
        width_bytes=escpos_image.width_bytes,
        height=escpos_image.height,
        data=escpos_image.to_raster_format(),
    )


def decode_logo(data: str, max_width: int) -> ImageBuffer:
    """Decode a base64 logo into a raster buffer at most ``max_width`` dots wide.

    Raises:
        EncodingError: The data is not base64 or not a readable image
    """
    raw = decode_base64_image(data)
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError) as err:
        raise EncodingError(f"Logo is not a readable image: {err}") from err
    return to_raster(img, max_width)
