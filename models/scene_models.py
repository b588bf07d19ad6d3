"""Domain models for scene narration and spoken question answering."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Optional, Sequence


class SamplerPhase(str, Enum):
	"""Named states of the scene sampler."""

	IDLE = "idle"
	WAITING_FOR_TICK = "waiting_for_tick"
	CAPTURING = "capturing"
	ANALYZING = "analyzing"
	COMPARING = "comparing"
	ANNOUNCING = "announcing"
	SKIPPING = "skipping"


class Intent(str, Enum):
	"""What an utterance needs in order to be answered."""

	NEEDS_CAPTURE = "needs_capture"
	USES_MEMORY = "uses_memory"


class Outcome(str, Enum):
	"""How a routed utterance was resolved."""

	ANSWERED = "answered"
	UNAVAILABLE = "unavailable"
	NO_MEMORY_YET = "no_memory_yet"
	FAILED = "failed"


@dataclass(frozen=True)
class SceneDescription:
	"""Most recent accepted description of the surroundings."""

	text: str
	captured_at: float = field(default_factory=lambda: time.time())

	def __post_init__(self) -> None:
		if not self.text or not self.text.strip():
			raise ValueError("Scene description text must be non-empty.")


@dataclass(frozen=True)
class ConversationTurn:
	"""Single user or assistant message passed as chat context."""

	role: str
	content: str


class ConversationHistory:
	"""Bounded list of recent turns, evicting the oldest first."""

	def __init__(self, max_pairs: int = 4) -> None:
		if max_pairs < 1:
			raise ValueError("max_pairs must be at least 1.")
		self.max_pairs = max_pairs
		self._turns: Deque[ConversationTurn] = deque(maxlen=max_pairs * 2)

	def append_pair(self, user: str, assistant: str) -> None:
		"""Record a question and its answer."""
		self._turns.append(ConversationTurn(role="user", content=user))
		self._turns.append(ConversationTurn(role="assistant", content=assistant))

	def turns(self) -> List[ConversationTurn]:
		return list(self._turns)

	def clear(self) -> None:
		self._turns.clear()

	def __len__(self) -> int:
		return len(self._turns)


@dataclass
class SampleMetrics:
	"""Counters for one sampling session."""

	frames_sampled: int = 0
	frames_accepted: int = 0
	ticks_skipped: int = 0
	session_start: Optional[float] = None

	@property
	def change_rate(self) -> float:
		"""Share of sampled frames that produced a new description."""
		if not self.frames_sampled:
			return 0.0
		return self.frames_accepted / self.frames_sampled

	def as_dict(self) -> dict:
		return {
			"frames_sampled": self.frames_sampled,
			"frames_accepted": self.frames_accepted,
			"ticks_skipped": self.ticks_skipped,
			"session_start": self.session_start,
			"change_rate": round(self.change_rate, 3),
		}


@dataclass(frozen=True)
class SpeechRequest:
	"""Text to speak and whether it should preempt everything else."""

	text: str
	priority: bool = False


@dataclass(frozen=True)
class AnalysisRequest:
	"""Input for the streaming analysis / chat collaborator."""

	prompt: str
	image_b64: Optional[bytes] = None
	scene_context: Optional[str] = None
	history: Sequence[ConversationTurn] = ()
	instructions: Optional[str] = None


@dataclass(frozen=True)
class RouteResult:
	"""Answer (or guidance) produced for a recognized utterance."""

	outcome: Outcome
	text: str
	intent: Intent

	def as_dict(self) -> dict:
		return {"outcome": self.outcome.value, "text": self.text, "intent": self.intent.value}
