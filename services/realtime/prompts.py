"""Prompt text and spoken guidance for scene narration and questions."""

from __future__ import annotations

from typing import Iterable, Optional

from models.scene_models import ConversationTurn

FRAME_PROMPT = (
	"Describe what you see for a blind person navigating. "
	"Focus on: obstacles and hazards first, then clear paths, then spatial layout. "
	"Use clock positions. Under 3 sentences."
)

VISION_SYSTEM_PROMPT = (
	"You describe camera frames for a blind person in 2-3 sentences. "
	"Focus on spatial layout and obstacles, use directional language (left, right, ahead) "
	"and prioritize safety-relevant information."
)

CHAT_SYSTEM_PROMPT = (
	"You are a helpful assistant for a blind person using smart glasses. "
	"Be concise (1-3 sentences). Use spatial language. Say \"I notice\" instead of \"I see\". "
	"You have access to the most recent scene description to answer follow-up questions."
)

CAPTURE_ACK = "Let me take a look."
NO_MEMORY_GUIDANCE = (
	"I don't have any scene in memory yet. Try asking me 'What's around me?' "
	"and I'll capture and describe your surroundings."
)
CAMERA_UNAVAILABLE = "Camera is not available. Please allow camera access and try again."
APOLOGY = "I'm sorry, something went wrong. Please try again."
STREAMING_STARTED = "Streaming started. I will describe your surroundings as they change."
STREAMING_STOPPED = "Streaming stopped."
MUTED = "Muted."
UNMUTED = "Voice on."


def scene_context_block(scene_context: Optional[str]) -> str:
	"""Return the scene memory line injected ahead of a question."""
	if scene_context:
		return f'Scene: "{scene_context}"'
	return "No scene captured yet."


def history_block(history: Iterable[ConversationTurn]) -> str:
	"""Return recent turns as a short transcript, or an empty string."""
	lines = [f"{turn.role}: {turn.content}" for turn in history]
	if not lines:
		return ""
	return "Recent:\n" + "\n".join(lines)
