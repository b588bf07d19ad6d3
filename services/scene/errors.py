"""Failure kinds raised by scene collaborators and converted at component boundaries."""

from __future__ import annotations


class SceneError(Exception):
	"""Base class for scene narration failures."""


class CaptureUnavailable(SceneError):
	"""No frame source, or the frame source produced nothing."""


class AnalysisFailed(SceneError):
	"""The streaming analysis or chat call failed, timed out, or returned no text."""


class NoMemory(SceneError):
	"""A memory-only question arrived before any scene was captured."""


class Unclassifiable(SceneError):
	"""Reserved for stricter intent classification; every utterance currently classifies."""
