"""Frame source backed by the latest frame a client pushed."""

from __future__ import annotations

import logging
import time
from typing import Optional

from services.frame_compressor import FrameCompressor
from utils.media_validation import decode_frame

LOGGER = logging.getLogger(__name__)


class LatestFrameBuffer:
	"""Keep only the newest frame; capture returns it or None."""

	def __init__(self, compressor: Optional[FrameCompressor] = None, max_age: Optional[float] = 10.0) -> None:
		self.compressor = compressor or FrameCompressor()
		self.max_age = max_age
		self._frame: Optional[bytes] = None
		self._received_at: Optional[float] = None

	def push(self, frame_text: str) -> int:
		"""Store a base64 frame or data URL; returns the stored payload size."""
		raw = decode_frame(frame_text)
		self._frame = self.compressor.compress(raw)
		self._received_at = time.time()
		return len(self._frame)

	def clear(self) -> None:
		self._frame = None
		self._received_at = None

	@property
	def has_frame(self) -> bool:
		return self.capture_frame() is not None

	def capture_frame(self) -> Optional[bytes]:
		"""Return the latest frame, or None when there is none or it is stale."""
		if self._frame is None:
			return None
		if self.max_age is not None and self._received_at is not None:
			if time.time() - self._received_at > self.max_age:
				LOGGER.debug("Latest frame is stale; treating as unavailable")
				return None
		return self._frame
