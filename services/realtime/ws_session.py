"""Dispatch realtime websocket events to the appropriate session operations."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from fastapi import WebSocket

from services.realtime.session_store import AssistSession

LOGGER = logging.getLogger(__name__)


class RealtimeSessionHandler:
	"""Route websocket messages for a single assist session.

	Operations that speak (questions, start/stop, mute) run as background
	tasks so the receive loop keeps reading `speech.done` acknowledgements.
	"""

	def __init__(self, session: AssistSession) -> None:
		self.session = session
		self._tasks: Set[asyncio.Task] = set()

	async def handle(self, websocket: WebSocket, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		request_id = payload.get("request_id")
		message_type = payload.get("type")
		try:
			if message_type == "frame.push":
				result = self._push_frame(payload)
			elif message_type == "speech.done":
				result = self._speech_done(payload)
			elif message_type == "query.ask":
				utterance = (payload.get("text") or "").strip()
				if not utterance:
					raise ValueError("Question text is required.")
				result = self._spawn(websocket, request_id, lambda: self._ask(utterance))
			elif message_type == "stream.start":
				result = self._spawn(websocket, request_id, self._start)
			elif message_type == "stream.stop":
				result = self._spawn(websocket, request_id, self._stop)
			elif message_type == "speech.mute":
				result = self._spawn(websocket, request_id, lambda: self._mute(True))
			elif message_type == "speech.unmute":
				result = self._spawn(websocket, request_id, lambda: self._mute(False))
			else:
				raise ValueError("Unsupported message type.")
			if result is not None:
				result["request_id"] = request_id
				await self._send(websocket, result)
		except Exception as exc:
			await self._send_error(websocket, request_id, str(exc))

	def cancel_pending(self) -> None:
		"""Cancel operations still running when the socket goes away."""
		for task in list(self._tasks):
			task.cancel()
		self._tasks.clear()

	def _push_frame(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
		frame = payload.get("image_b64") or payload.get("image") or ""
		size = self.session.frames.push(frame)
		if not payload.get("ack"):
			return None
		return {"type": "frame.ack", "bytes": size}

	def _speech_done(self, payload: Dict[str, Any]) -> None:
		utterance_id = payload.get("utterance_id") or ""
		if not self.session.speaker.finished(utterance_id):
			LOGGER.debug("speech.done for unknown utterance %s", utterance_id)
		return None

	def _spawn(
		self,
		websocket: WebSocket,
		request_id: Any,
		operation: Callable[[], Awaitable[Dict[str, Any]]],
	) -> None:
		async def _run() -> None:
			try:
				result = await operation()
				result["request_id"] = request_id
				await self._send(websocket, result)
			except asyncio.CancelledError:
				raise
			except Exception as exc:
				LOGGER.error("Realtime operation failed: %s", exc)
				await self._send_error(websocket, request_id, str(exc))

		task = asyncio.get_running_loop().create_task(_run())
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)
		return None

	async def _ask(self, utterance: str) -> Dict[str, Any]:
		result = await self.session.router.ask(utterance)
		return {"type": "answer", **result.as_dict()}

	async def _start(self) -> Dict[str, Any]:
		await self.session.start_streaming()
		return {"type": "stream.state", "streaming": self.session.sampler.running}

	async def _stop(self) -> Dict[str, Any]:
		await self.session.stop_streaming()
		return {
			"type": "stream.state",
			"streaming": self.session.sampler.running,
			"metrics": self.session.sampler.metrics.as_dict(),
		}

	async def _mute(self, muted: bool) -> Dict[str, Any]:
		await self.session.set_muted(muted)
		return {"type": "speech.state", "muted": self.session.speech.muted}

	async def _send_error(self, websocket: WebSocket, request_id: Any, detail: str) -> None:
		await self._send(websocket, {"type": "error", "request_id": request_id, "detail": detail})

	async def _send(self, websocket: WebSocket, payload: Dict[str, Any]) -> None:
		try:
			await websocket.send_text(json.dumps(payload))
		except Exception as exc:
			LOGGER.warning("Could not deliver %s: %s", payload.get("type"), exc)
