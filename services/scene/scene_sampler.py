"""Periodic capture, describe, compare and announce loop that owns scene memory."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import AsyncIterator, Callable, List, Optional, Protocol

from models.scene_models import AnalysisRequest, SampleMetrics, SamplerPhase, SceneDescription
from services.scene.errors import AnalysisFailed, CaptureUnavailable
from services.scene.sentence_segmenter import SentenceSegmenter
from services.scene.similarity import similarity
from services.scene.speech_queue import SpeechOutputQueue

LOGGER = logging.getLogger(__name__)


class FrameSource(Protocol):
	def capture_frame(self) -> Optional[bytes]: ...


class AnalysisStream(Protocol):
	def stream(self, request: AnalysisRequest) -> AsyncIterator[str]: ...


async def _call_hook(hook: Optional[Callable[..., object]], *args) -> None:
	if hook is None:
		return
	result = hook(*args)
	if inspect.isawaitable(result):
		await result


async def collect_stream(
	analyzer: AnalysisStream,
	request: AnalysisRequest,
	*,
	timeout: Optional[float],
	on_sentence: Optional[Callable[[str], object]] = None,
) -> str:
	"""Run a streaming request to completion and return the assembled text.

	Sentences are handed to `on_sentence` as soon as they complete. Any
	failure, including the timeout expiring, is raised as AnalysisFailed.
	"""
	sentences: List[str] = []
	segmenter = SentenceSegmenter(on_sentence=sentences.append)
	parts: List[str] = []

	async def _consume() -> None:
		async for chunk in analyzer.stream(request):
			if not chunk:
				continue
			parts.append(chunk)
			segmenter.feed(chunk)
			while sentences:
				await _call_hook(on_sentence, sentences.pop(0))
		segmenter.flush()
		while sentences:
			await _call_hook(on_sentence, sentences.pop(0))

	try:
		await asyncio.wait_for(_consume(), timeout)
	except asyncio.TimeoutError as exc:
		raise AnalysisFailed(f"Analysis timed out after {timeout}s") from exc
	except AnalysisFailed:
		raise
	except Exception as exc:
		raise AnalysisFailed(str(exc) or exc.__class__.__name__) from exc

	text = "".join(parts).strip()
	if not text:
		raise AnalysisFailed("Analysis returned no text.")
	return text


class SceneSampler:
	"""Sample frames on a fixed period and keep the latest distinct description.

	Ticks never overlap: a tick arriving while a sample is in flight is
	dropped. `stop()` cancels the in-flight tick and invalidates any other
	sample so its result is discarded on arrival instead of touching memory.
	"""

	def __init__(
		self,
		frame_source: Optional[FrameSource],
		analyzer: AnalysisStream,
		speech: Optional[SpeechOutputQueue],
		*,
		prompt: str,
		interval: float = 2.0,
		threshold: float = 0.75,
		analysis_timeout: Optional[float] = 10.0,
		should_narrate: Optional[Callable[[], bool]] = None,
		on_sentence: Optional[Callable[[str], object]] = None,
		on_accepted: Optional[Callable[[SceneDescription], object]] = None,
	) -> None:
		if analyzer is None:
			raise ValueError("An analysis collaborator is required.")
		if interval <= 0:
			raise ValueError("Sampling interval must be positive.")
		self.frame_source = frame_source
		self.analyzer = analyzer
		self.speech = speech
		self.prompt = prompt
		self.interval = interval
		self.threshold = threshold
		self.analysis_timeout = analysis_timeout
		self.should_narrate = should_narrate
		self.on_sentence = on_sentence
		self.on_accepted = on_accepted

		self.metrics = SampleMetrics()
		self.phase = SamplerPhase.IDLE
		self._active = False
		self._memory: Optional[SceneDescription] = None
		self._epoch = 0
		self._sample_lock = asyncio.Lock()
		self._timer: Optional[asyncio.Task] = None
		self._in_flight: Optional[asyncio.Task] = None
		self._narration: Optional[asyncio.Task] = None

	@property
	def running(self) -> bool:
		return self._active

	@property
	def memory(self) -> Optional[SceneDescription]:
		"""Last accepted scene description, if any."""
		return self._memory

	@property
	def in_flight(self) -> bool:
		return self._sample_lock.locked()

	def reset_memory(self) -> None:
		self._memory = None

	def start(self) -> None:
		"""Begin periodic sampling with fresh metrics."""
		if self.running:
			return
		self._epoch += 1
		self._active = True
		self.metrics = SampleMetrics(session_start=time.time())
		self.phase = SamplerPhase.WAITING_FOR_TICK
		self._timer = asyncio.get_running_loop().create_task(self._run_timer())
		LOGGER.info("Scene sampling started (interval %.2fs)", self.interval)

	def stop(self) -> None:
		"""Cancel the timer along with any sample or narration still in flight."""
		self._epoch += 1
		for task in (self._timer, self._in_flight, self._narration):
			if task is not None and not task.done():
				task.cancel()
		self._timer = None
		self._in_flight = None
		self._narration = None
		if self._active:
			LOGGER.info("Scene sampling stopped")
		self._active = False
		self.phase = SamplerPhase.IDLE

	async def _run_timer(self) -> None:
		while True:
			await asyncio.sleep(self.interval)
			self.tick()

	def tick(self) -> Optional[asyncio.Task]:
		"""Start one sample unless another is still in flight."""
		if not self.running:
			return None
		if self.in_flight:
			self.metrics.ticks_skipped += 1
			LOGGER.debug("Tick dropped; previous sample still in flight")
			return None
		self._in_flight = asyncio.get_running_loop().create_task(self.sample_once())
		return self._in_flight

	async def sample_once(self) -> bool:
		"""Run one capture/analyze/compare cycle. Returns True when accepted.

		Never raises for collaborator failures; they count as skipped ticks.
		"""
		if self.in_flight:
			self.metrics.ticks_skipped += 1
			return False
		epoch = self._epoch
		async with self._sample_lock:
			try:
				return await self._sample(epoch)
			except CaptureUnavailable as exc:
				LOGGER.debug("Skipped sample tick: %s", exc)
			except AnalysisFailed as exc:
				LOGGER.warning("Skipped sample tick: %s", exc)
			except Exception as exc:
				LOGGER.error("Unexpected failure in sample tick: %s", exc)
			if epoch == self._epoch:
				self.metrics.ticks_skipped += 1
				self._settle()
			return False

	async def _sample(self, epoch: int) -> bool:
		self.phase = SamplerPhase.CAPTURING
		frame = self._capture()
		if frame is None:
			raise CaptureUnavailable("No frame available.")
		self.metrics.frames_sampled += 1

		self.phase = SamplerPhase.ANALYZING
		text = await collect_stream(
			self.analyzer,
			AnalysisRequest(prompt=self.prompt, image_b64=frame),
			timeout=self.analysis_timeout,
			on_sentence=self._partial_hook(epoch),
		)
		if epoch != self._epoch:
			LOGGER.debug("Discarding sample result that arrived after stop")
			return False

		self.phase = SamplerPhase.COMPARING
		score = similarity(text, self._memory.text) if self._memory else 0.0
		if self._memory is not None and score > self.threshold:
			self.phase = SamplerPhase.SKIPPING
			LOGGER.debug("Rejected near-duplicate description (similarity %.2f)", score)
			self._settle()
			return False

		self.phase = SamplerPhase.ANNOUNCING
		description = SceneDescription(text=text)
		self._memory = description
		self.metrics.frames_accepted += 1
		LOGGER.info("Accepted new scene description (similarity %.2f)", score)
		await _call_hook(self.on_accepted, description)
		self._announce(text)
		self._settle()
		return True

	async def capture_now(self) -> SceneDescription:
		"""Capture and describe a frame immediately, replacing scene memory.

		Waits for an in-flight periodic sample instead of dropping. Raises
		CaptureUnavailable or AnalysisFailed.
		"""
		async with self._sample_lock:
			frame = self._capture()
			if frame is None:
				raise CaptureUnavailable("No frame available.")
			text = await collect_stream(
				self.analyzer,
				AnalysisRequest(prompt=self.prompt, image_b64=frame),
				timeout=self.analysis_timeout,
				on_sentence=self.on_sentence,
			)
			self._memory = SceneDescription(text=text)
			await _call_hook(self.on_accepted, self._memory)
			return self._memory

	def _capture(self) -> Optional[bytes]:
		if self.frame_source is None:
			raise CaptureUnavailable("No frame source configured.")
		try:
			return self.frame_source.capture_frame()
		except Exception as exc:
			raise CaptureUnavailable(f"Frame capture failed: {exc}") from exc

	def _partial_hook(self, epoch: int) -> Optional[Callable[[str], object]]:
		if self.on_sentence is None:
			return None

		def _hook(sentence: str) -> object:
			if epoch != self._epoch:
				return None
			return self.on_sentence(sentence)

		return _hook

	def _announce(self, text: str) -> None:
		if self.speech is None:
			return
		if self.should_narrate is not None and not self.should_narrate():
			LOGGER.debug("Narration suppressed while a question is being answered")
			return
		# Narration runs in the background so the next tick is not held up by speech.
		self._narration = asyncio.get_running_loop().create_task(self.speech.enqueue(text))

	def _settle(self) -> None:
		self.phase = SamplerPhase.WAITING_FOR_TICK if self._active else SamplerPhase.IDLE
