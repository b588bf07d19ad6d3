"""Runtime settings read from the environment (and a .env file if present)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

from services.scene.query_router import DEFAULT_TRIGGERS


def _float_env(name: str, default: float) -> float:
	raw = os.getenv(name)
	if raw is None or not raw.strip():
		return default
	try:
		return float(raw)
	except ValueError as exc:
		raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def _int_env(name: str, default: int) -> int:
	raw = os.getenv(name)
	if raw is None or not raw.strip():
		return default
	try:
		return int(raw)
	except ValueError as exc:
		raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _triggers_env(name: str) -> Tuple[str, ...]:
	raw = os.getenv(name)
	if not raw:
		return DEFAULT_TRIGGERS
	return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class AssistSettings:
	"""Tunable values handed to the scene components at construction."""

	openai_model: str = "gpt-4o-mini"
	sample_interval: float = 2.0
	similarity_threshold: float = 0.75
	analysis_timeout: Optional[float] = 10.0
	history_pairs: int = 4
	speech_timeout: Optional[float] = 30.0
	capture_triggers: Tuple[str, ...] = field(default=DEFAULT_TRIGGERS)

	@classmethod
	def from_env(cls) -> "AssistSettings":
		load_dotenv()
		settings = cls(
			openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
			sample_interval=_float_env("SAMPLE_INTERVAL_SECONDS", 2.0),
			similarity_threshold=_float_env("SIMILARITY_THRESHOLD", 0.75),
			analysis_timeout=_float_env("ANALYSIS_TIMEOUT_SECONDS", 10.0),
			history_pairs=_int_env("HISTORY_PAIRS", 4),
			speech_timeout=_float_env("SPEECH_TIMEOUT_SECONDS", 30.0),
			capture_triggers=_triggers_env("CAPTURE_TRIGGERS"),
		)
		if settings.sample_interval <= 0:
			raise RuntimeError("SAMPLE_INTERVAL_SECONDS must be positive")
		if not 0.0 <= settings.similarity_threshold <= 1.0:
			raise RuntimeError("SIMILARITY_THRESHOLD must be between 0 and 1")
		if settings.history_pairs < 1:
			raise RuntimeError("HISTORY_PAIRS must be at least 1")
		return settings
