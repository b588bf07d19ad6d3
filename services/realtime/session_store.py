"""Simple in-memory store for assist sessions."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from models.scene_models import SceneDescription
from services.realtime import prompts
from services.realtime.client_channel import ClientChannel, WebSocketSpeaker
from services.realtime.frame_buffer import LatestFrameBuffer
from services.scene.query_router import QueryRouter
from services.scene.scene_sampler import AnalysisStream, SceneSampler
from services.scene.speech_queue import SpeechOutputQueue
from utils.settings import AssistSettings

LOGGER = logging.getLogger(__name__)


class AssistSession:
	"""Wire one client's frame buffer, sampler, router and speech queue together."""

	def __init__(self, session_id: str, analyzer: AnalysisStream, settings: AssistSettings) -> None:
		self.session_id = session_id
		self.channel = ClientChannel()
		self.frames = LatestFrameBuffer()
		self.speaker = WebSocketSpeaker(self.channel, utterance_timeout=settings.speech_timeout)
		self.speech = SpeechOutputQueue(self.speaker)
		self.sampler = SceneSampler(
			self.frames,
			analyzer,
			self.speech,
			prompt=prompts.FRAME_PROMPT,
			interval=settings.sample_interval,
			threshold=settings.similarity_threshold,
			analysis_timeout=settings.analysis_timeout,
			should_narrate=self._narration_allowed,
			on_sentence=self._scene_sentence,
			on_accepted=self._scene_accepted,
		)
		self.router = QueryRouter(
			analyzer,
			self.sampler,
			self.speech,
			triggers=settings.capture_triggers,
			history_pairs=settings.history_pairs,
			answer_timeout=settings.analysis_timeout,
			on_sentence=self._answer_sentence,
		)

	def _narration_allowed(self) -> bool:
		return not self.router.busy and not self.speech.priority_active

	async def _scene_sentence(self, sentence: str) -> None:
		await self.channel.send({"type": "scene.sentence", "text": sentence})

	async def _answer_sentence(self, sentence: str) -> None:
		await self.channel.send({"type": "answer.sentence", "text": sentence})

	async def _scene_accepted(self, description: SceneDescription) -> None:
		await self.channel.send(
			{
				"type": "scene.accepted",
				"text": description.text,
				"captured_at": description.captured_at,
				"metrics": self.sampler.metrics.as_dict(),
			}
		)

	async def start_streaming(self) -> None:
		if self.sampler.running:
			return
		self.sampler.start()
		await self.speech.enqueue(prompts.STREAMING_STARTED, priority=True)

	async def stop_streaming(self) -> None:
		if not self.sampler.running:
			return
		self.sampler.stop()
		await self.speech.enqueue(prompts.STREAMING_STOPPED, priority=True)

	async def set_muted(self, muted: bool) -> None:
		"""Toggle narration and acknowledge it aloud."""
		if muted:
			self.speech.mute()
			await self.speech.enqueue(prompts.MUTED, priority=True)
		else:
			self.speech.unmute()
			await self.speech.enqueue(prompts.UNMUTED, priority=True)

	def end(self) -> None:
		"""Stop sampling and forget everything this session learned."""
		self.sampler.stop()
		self.sampler.reset_memory()
		self.router.history.clear()
		self.frames.clear()

	def snapshot(self) -> Dict[str, Any]:
		memory = self.sampler.memory
		return {
			"session_id": self.session_id,
			"streaming": self.sampler.running,
			"phase": self.sampler.phase.value,
			"metrics": self.sampler.metrics.as_dict(),
			"memory": {"text": memory.text, "captured_at": memory.captured_at} if memory else None,
			"muted": self.speech.muted,
			"client_attached": self.channel.attached,
			"history_turns": len(self.router.history),
		}


class SessionStore:
	"""Manage assist sessions by id."""

	def __init__(self, analyzer: AnalysisStream, settings: Optional[AssistSettings] = None) -> None:
		self.analyzer = analyzer
		self.settings = settings or AssistSettings()
		self._sessions: Dict[str, AssistSession] = {}

	def __len__(self) -> int:
		return len(self._sessions)

	def create(self) -> AssistSession:
		"""Create a new session with its own scene memory."""
		session_id = uuid4().hex
		session = AssistSession(session_id, self.analyzer, self.settings)
		self._sessions[session_id] = session
		LOGGER.info("Created assist session %s", session_id)
		return session

	def get(self, session_id: str) -> AssistSession:
		"""Return a session or raise KeyError if missing."""
		session = self._sessions.get(session_id)
		if session is None:
			raise KeyError(f"Session {session_id} not found")
		return session

	def close(self, session_id: str) -> None:
		"""End a session; its scene memory does not survive."""
		session = self._sessions.pop(session_id, None)
		if session is None:
			raise KeyError(f"Session {session_id} not found")
		session.end()
		LOGGER.info("Closed assist session %s", session_id)

	def close_all(self) -> None:
		for session_id in list(self._sessions):
			self.close(session_id)
