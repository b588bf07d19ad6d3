"""Validation helpers for camera frames pushed by clients."""

import base64
import binascii
import re

DATA_URL_PREFIX = re.compile(r"^data:image/\w+;base64,")
MAX_FRAME_BYTES = 8 * 1024 * 1024


def strip_data_url(text: str) -> str:
    """Drop a leading `data:image/...;base64,` prefix if present."""
    return DATA_URL_PREFIX.sub("", (text or "").strip())


def decode_frame(frame_text: str) -> bytes:
    """Return the raw image bytes for a base64 frame or data URL.

    Raises:
        ValueError: If the payload is empty, not base64, or too large.
    """
    payload = strip_data_url(frame_text)
    if not payload:
        raise ValueError("Frame payload is required.")
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Frame payload must be base64-encoded.") from exc
    if not raw:
        raise ValueError("Frame payload is empty.")
    if len(raw) > MAX_FRAME_BYTES:
        raise ValueError("Frame payload is too large.")
    return raw
