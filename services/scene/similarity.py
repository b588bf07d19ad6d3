"""Word-overlap similarity used to suppress repeated scene descriptions."""

from __future__ import annotations

from typing import Set


def _words(text: str) -> Set[str]:
	return set(text.lower().split())


def similarity(a: str, b: str) -> float:
	"""Return the Jaccard index of the lower-cased word sets of `a` and `b`.

	Empty input on either side scores 0, meaning "no evidence of similarity".
	"""
	words_a = _words(a or "")
	words_b = _words(b or "")
	if not words_a or not words_b:
		return 0.0
	return len(words_a & words_b) / len(words_a | words_b)
