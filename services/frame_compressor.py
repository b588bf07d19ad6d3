"""Frame compressor service.

Provides a small OOP wrapper around Pillow that shrinks camera frames
before they are sent for analysis. Frames are fitted within a maximum
size and re-encoded as low-quality JPEG, which keeps request payloads
and cost down while streaming.

Public class: `FrameCompressor`

Example:
    fc = FrameCompressor(max_size=(1280, 720), quality=50)
    frame_b64 = fc.compress(raw_jpeg_bytes)
"""
from __future__ import annotations

import base64
import io
from typing import Tuple

from PIL import Image


class FrameCompressor:
    """Downscale and re-encode frames as base64 JPEG.

    Args:
        max_size: Maximum width and height for the frame. Defaults to (1280, 720).
        quality: JPEG quality passed to Pillow. Defaults to 50.
        background: Color used when flattening images with alpha to RGB.
    """

    def __init__(
        self,
        max_size: Tuple[int, int] = (1280, 720),
        quality: int = 50,
        background: Tuple[int, int, int] | None = None,
    ):
        self.max_size = max_size
        self.quality = quality
        self.background = background or (0, 0, 0)

    def compress(self, raw: bytes) -> bytes:
        """Return a base64-encoded JPEG for the given image bytes.

        Args:
            raw: Encoded image bytes in any format Pillow can open.

        Returns:
            Base64-encoded JPEG bytes.

        Raises:
            ValueError: If the bytes cannot be opened as an image.
        """
        try:
            src = Image.open(io.BytesIO(raw))
            src.load()
        except Exception as exc:
            raise ValueError("Decoded bytes are not a supported image format") from exc

        if src.mode in ("RGBA", "LA", "P"):
            src = src.convert("RGBA")
            flattened = Image.new("RGB", src.size, self.background)
            flattened.paste(src, mask=src.split()[3])
            src = flattened
        elif src.mode != "RGB":
            src = src.convert("RGB")

        src.thumbnail(self.max_size, Image.LANCZOS)

        out_io = io.BytesIO()
        src.save(out_io, format="JPEG", quality=self.quality)
        return base64.b64encode(out_io.getvalue())
