"""Split an incrementally streamed response into complete sentences."""

from __future__ import annotations

import re
from typing import Callable, List, Optional

# A terminator only ends a sentence when whitespace follows, so "3.5" stays whole.
SENTENCE_END = re.compile(r"[.!?]\s")


class SentenceSegmenter:
	"""Buffer streamed text and emit sentences as soon as they are complete."""

	def __init__(self, on_sentence: Optional[Callable[[str], None]] = None) -> None:
		self.on_sentence = on_sentence
		self._buffer = ""

	@property
	def pending(self) -> str:
		"""Text received but not yet emitted."""
		return self._buffer

	def feed(self, chunk: str) -> List[str]:
		"""Add a chunk and return every sentence it completed, in order."""
		if not chunk:
			return []
		self._buffer += chunk
		sentences: List[str] = []
		match = SENTENCE_END.search(self._buffer)
		while match:
			end = match.start() + 1
			sentences.append(self._buffer[:end])
			self._buffer = self._buffer[end:].lstrip()
			match = SENTENCE_END.search(self._buffer)
		self._emit(sentences)
		return sentences

	def flush(self) -> List[str]:
		"""Return whatever is left as a final unit and clear the buffer."""
		remainder = self._buffer.strip()
		self._buffer = ""
		sentences = [remainder] if remainder else []
		self._emit(sentences)
		return sentences

	def _emit(self, sentences: List[str]) -> None:
		if self.on_sentence is None:
			return
		for sentence in sentences:
			self.on_sentence(sentence)
