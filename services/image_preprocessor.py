"""Validate and downscale images attached to a conversation turn.

Small OOP wrapper around Pillow. Input is base64 image data as sent by the
client; output is base64 data the language model accepts, bounded to
`max_size` pixels on the longest side.

Example:
    prep = ImagePreprocessor(max_size=(1568, 1568))
    image = prep.prepare(InlineImage(data=b64, mime_type="image/png"))
"""
from __future__ import annotations

import base64
import binascii
import io
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from models.reply_models import InlineImage

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"}


class ImagePreprocessor:
    """Decode, verify and shrink an inline image.

    Args:
        max_size: Maximum width and height. Images already within bounds are
            passed through untouched.
        background: Color used when flattening images with alpha to JPEG.
    """

    def __init__(self, max_size: Tuple[int, int] = (1568, 1568), background: Tuple[int, int, int] | None = None):
        self.max_size = max_size
        self.background = background or (255, 255, 255)

    def prepare(self, image: InlineImage) -> InlineImage:
        """Return a validated (and possibly downscaled) copy of `image`.

        Raises:
            ValueError: If the mime type is unsupported or the data is not a decodable image.
        """
        mime_type = (image.mime_type or "").lower().split(";", 1)[0].strip()
        if mime_type not in ALLOWED_IMAGE_TYPES:
            raise ValueError(f"Unsupported image type: {image.mime_type!r}")

        try:
            raw = base64.b64decode(image.data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("Image data must be valid base64.") from exc

        try:
            src = Image.open(io.BytesIO(raw))
            src.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError("Decoded bytes are not a supported image format.") from exc

        if src.width <= self.max_size[0] and src.height <= self.max_size[1]:
            return InlineImage(data=image.data, mime_type=mime_type)

        src = src.convert("RGBA")
        src.thumbnail(self.max_size, Image.LANCZOS)

        # Flatten alpha against the background color before JPEG encoding
        background = Image.new("RGB", src.size, self.background)
        background.paste(src, mask=src.split()[3])

        out_io = io.BytesIO()
        background.save(out_io, format="JPEG", quality=90)
        return InlineImage(data=base64.b64encode(out_io.getvalue()).decode("utf-8"), mime_type="image/jpeg")
