"""Image payloads exchanged with the generation APIs and the story store."""

from __future__ import annotations

import base64
import binascii
import io
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from PIL import Image

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;base64)?,(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True)
class ImageBlob:
    """Raw image bytes plus their MIME type."""
    data: bytes
    mime_type: str = "image/png"

    def __repr__(self) -> str:
        return f"ImageBlob({self.mime_type}, {len(self.data)} bytes)"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    @classmethod
    def from_base64(cls, payload: str, mime_type: str = "image/png") -> "ImageBlob":
        try:
            return cls(base64.b64decode(payload, validate=True), mime_type)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 image data: {e}") from e

    @classmethod
    def from_data_url(cls, value: str) -> "ImageBlob":
        """Parse ``data:<mime>;base64,<payload>``; bare base64 is accepted as PNG."""
        match = _DATA_URL_RE.match(value.strip())
        if not match:
            return cls.from_base64(value.strip())
        return cls.from_base64(match.group("data"), match.group("mime") or "image/png")


def _open_rgba(blob: ImageBlob) -> Image.Image:
    try:
        with Image.open(io.BytesIO(blob.data)) as img:
            return img.convert("RGBA")
    except OSError as e:
        # UnidentifiedImageError and truncated data both land here
        raise ValueError(f"Unreadable image ({blob.mime_type}, {len(blob.data)} bytes)") from e


def combine_images(images: Sequence[ImageBlob]) -> Optional[ImageBlob]:
    """Place reference photos side by side in one PNG.

    Shorter images are centred vertically. A single image is returned
    unchanged; an empty sequence yields None.

    Raises:
        ValueError: One of several images cannot be decoded.
    """
    if not images:
        return None
    if len(images) == 1:
        return images[0]

    opened = [_open_rgba(blob) for blob in images]
    total_width = sum(img.width for img in opened)
    max_height = max(img.height for img in opened)

    canvas = Image.new("RGBA", (total_width, max_height), (0, 0, 0, 0))
    x_offset = 0
    for img in opened:
        y_offset = (max_height - img.height) // 2
        canvas.paste(img, (x_offset, y_offset))
        x_offset += img.width

    buf = io.BytesIO()
    canvas.save(buf, format="PNG")
    return ImageBlob(buf.getvalue(), "image/png")
