"""Serialize speech so utterances never overlap."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from models.scene_models import SpeechRequest

LOGGER = logging.getLogger(__name__)


class Speaker(Protocol):
	"""Speech synthesis facility driven by the queue."""

	async def speak(self, text: str) -> None: ...

	async def cancel_all(self) -> None: ...


class SpeechOutputQueue:
	"""Play utterances one at a time with priority preemption and mute support.

	Non-priority items play in arrival order and are never dropped by the
	queue itself; producers decide whether to enqueue narration at all.
	A priority item cancels whatever is playing or waiting, then plays.
	"""

	def __init__(self, speaker: Speaker) -> None:
		if speaker is None:
			raise ValueError("A speaker is required.")
		self.speaker = speaker
		self.muted = False
		self._lock = asyncio.Lock()
		self._generation = 0
		self._priority_active = 0

	@property
	def busy(self) -> bool:
		return self._lock.locked()

	@property
	def priority_active(self) -> bool:
		"""True while a priority utterance is waiting or playing."""
		return self._priority_active > 0

	def mute(self) -> None:
		self.muted = True

	def unmute(self) -> None:
		self.muted = False

	async def enqueue(self, text: str, priority: bool = False) -> None:
		"""Speak `text`, returning once it finished, failed, or was preempted."""
		await self.submit(SpeechRequest(text=text, priority=priority))

	async def submit(self, request: SpeechRequest) -> None:
		text = (request.text or "").strip()
		if not text:
			return
		if request.priority:
			await self._play_priority(text)
			return
		if self.muted:
			LOGGER.debug("Muted; dropping narration %r", text[:60])
			return
		generation = self._generation
		async with self._lock:
			if generation != self._generation:
				return
			await self._speak(text)

	async def _play_priority(self, text: str) -> None:
		self._generation += 1
		generation = self._generation
		self._priority_active += 1
		try:
			try:
				await self.speaker.cancel_all()
			except Exception as exc:
				LOGGER.error("Speech cancel failed: %s", exc)
			async with self._lock:
				if generation != self._generation:
					return
				await self._speak(text)
		finally:
			self._priority_active -= 1

	async def _speak(self, text: str) -> None:
		try:
			await self.speaker.speak(text)
		except Exception as exc:
			LOGGER.error("Speech playback failed: %s", exc)
