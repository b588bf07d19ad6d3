"""Decide how a spoken question is answered and answer it."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from models.scene_models import AnalysisRequest, ConversationHistory, Intent, Outcome, RouteResult
from services.realtime import prompts
from services.scene.errors import AnalysisFailed, CaptureUnavailable, NoMemory
from services.scene.scene_sampler import AnalysisStream, SceneSampler, collect_stream
from services.scene.speech_queue import SpeechOutputQueue

LOGGER = logging.getLogger(__name__)

DEFAULT_TRIGGERS = (
	"what's around",
	"what is around",
	"where am i",
	"describe",
	"what do you see",
	"look around",
	"scan",
	"what's in front",
	"what is in front",
	"surroundings",
)


class QueryRouter:
	"""Route utterances to a fresh capture or to the stored scene memory.

	Classification is a substring match against `triggers`, so phrasing
	outside the list can misfire (e.g. "scan this document").
	"""

	def __init__(
		self,
		analyzer: AnalysisStream,
		sampler: Optional[SceneSampler] = None,
		speech: Optional[SpeechOutputQueue] = None,
		*,
		triggers: Sequence[str] = DEFAULT_TRIGGERS,
		history_pairs: int = 4,
		system_prompt: str = prompts.CHAT_SYSTEM_PROMPT,
		answer_timeout: Optional[float] = 10.0,
		capture_ack: Optional[str] = prompts.CAPTURE_ACK,
		on_sentence: Optional[Callable[[str], object]] = None,
	) -> None:
		if analyzer is None:
			raise ValueError("A chat collaborator is required.")
		self.analyzer = analyzer
		self.sampler = sampler
		self.speech = speech
		self.triggers = tuple(t.lower() for t in triggers if t and t.strip())
		self.history = ConversationHistory(max_pairs=history_pairs)
		self.system_prompt = system_prompt
		self.answer_timeout = answer_timeout
		self.capture_ack = capture_ack
		self.on_sentence = on_sentence
		self._active_questions = 0

	@property
	def busy(self) -> bool:
		"""True while a question is being answered."""
		return self._active_questions > 0

	def classify(self, utterance: str) -> Intent:
		lowered = (utterance or "").lower()
		if any(trigger in lowered for trigger in self.triggers):
			return Intent.NEEDS_CAPTURE
		return Intent.USES_MEMORY

	def memory_text(self) -> Optional[str]:
		memory = self.sampler.memory if self.sampler is not None else None
		return memory.text if memory is not None else None

	async def route(self, utterance: str) -> RouteResult:
		"""Answer `utterance`; failures come back as results, never exceptions."""
		intent = self.classify(utterance)
		try:
			if intent is Intent.NEEDS_CAPTURE:
				scene_text = await self._fresh_scene()
			else:
				scene_text = self.memory_text()
				if not scene_text:
					raise NoMemory("No scene captured yet.")
			answer = await self._chat(utterance, scene_text)
		except CaptureUnavailable as exc:
			LOGGER.info("Capture unavailable for question: %s", exc)
			return RouteResult(Outcome.UNAVAILABLE, prompts.CAMERA_UNAVAILABLE, intent)
		except NoMemory:
			return RouteResult(Outcome.NO_MEMORY_YET, prompts.NO_MEMORY_GUIDANCE, intent)
		except AnalysisFailed as exc:
			LOGGER.error("Answering question failed: %s", exc)
			return RouteResult(Outcome.FAILED, prompts.APOLOGY, intent)
		except Exception as exc:
			LOGGER.error("Unexpected failure while answering question: %s", exc)
			return RouteResult(Outcome.FAILED, prompts.APOLOGY, intent)

		self.history.append_pair(utterance, answer)
		return RouteResult(Outcome.ANSWERED, answer, intent)

	async def ask(self, utterance: str) -> RouteResult:
		"""Route `utterance` and speak the reply with priority."""
		self._active_questions += 1
		try:
			if self.speech is not None and self.capture_ack and self.classify(utterance) is Intent.NEEDS_CAPTURE:
				await self.speech.enqueue(self.capture_ack, priority=True)
			result = await self.route(utterance)
			if self.speech is not None:
				await self.speech.enqueue(result.text, priority=True)
			return result
		finally:
			self._active_questions -= 1

	async def _fresh_scene(self) -> str:
		if self.sampler is None:
			raise CaptureUnavailable("No capture source available.")
		description = await self.sampler.capture_now()
		return description.text

	async def _chat(self, utterance: str, scene_text: Optional[str]) -> str:
		request = AnalysisRequest(
			prompt=utterance,
			scene_context=scene_text,
			history=self.history.turns(),
			instructions=self.system_prompt,
		)
		return await collect_stream(
			self.analyzer,
			request,
			timeout=self.answer_timeout,
			on_sentence=self.on_sentence,
		)
