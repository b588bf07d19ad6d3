"""Outbound event channel and speech synthesis delegated to the connected client."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import WebSocket

LOGGER = logging.getLogger(__name__)


class ClientChannel:
	"""Send JSON events to the websocket currently attached to a session.

	Events sent while no client is attached are dropped.
	"""

	def __init__(self) -> None:
		self._websocket: Optional[WebSocket] = None

	@property
	def attached(self) -> bool:
		return self._websocket is not None

	def attach(self, websocket: WebSocket) -> None:
		self._websocket = websocket

	def detach(self, websocket: Optional[WebSocket] = None) -> None:
		if websocket is None or websocket is self._websocket:
			self._websocket = None

	async def send(self, payload: Dict[str, Any]) -> bool:
		"""Send one event; returns False when nothing was delivered."""
		websocket = self._websocket
		if websocket is None:
			return False
		try:
			await websocket.send_text(json.dumps(payload))
		except Exception as exc:
			LOGGER.warning("Dropping client event %s: %s", payload.get("type"), exc)
			self.detach(websocket)
			return False
		return True


class WebSocketSpeaker:
	"""Speech output where the client synthesizes and reports completion.

	`speak` sends `speech.say` and waits for the matching `speech.done`;
	`cancel_all` sends `speech.cancel` and releases every waiting utterance.
	"""

	def __init__(self, channel: ClientChannel, utterance_timeout: Optional[float] = 30.0) -> None:
		self.channel = channel
		self.utterance_timeout = utterance_timeout
		self._pending: Dict[str, asyncio.Future] = {}

	@property
	def pending(self) -> int:
		return len(self._pending)

	async def speak(self, text: str) -> None:
		utterance_id = uuid4().hex
		future = asyncio.get_running_loop().create_future()
		self._pending[utterance_id] = future
		try:
			delivered = await self.channel.send({"type": "speech.say", "utterance_id": utterance_id, "text": text})
			if not delivered:
				return
			await asyncio.wait_for(future, self.utterance_timeout)
		except asyncio.TimeoutError:
			LOGGER.warning("No speech.done for utterance %s; continuing", utterance_id)
		finally:
			self._pending.pop(utterance_id, None)

	def finished(self, utterance_id: str) -> bool:
		"""Resolve an utterance the client reported as finished."""
		future = self._pending.pop(utterance_id, None)
		if future is None:
			return False
		if not future.done():
			future.set_result(None)
		return True

	async def cancel_all(self) -> None:
		for future in self._pending.values():
			if not future.done():
				future.set_result(None)
		self._pending.clear()
		await self.channel.send({"type": "speech.cancel"})
