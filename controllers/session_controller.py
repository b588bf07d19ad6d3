"""Session lifecycle helpers for assist sessions."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, Request

from services.realtime.session_store import AssistSession, SessionStore


def _store(request: Request) -> SessionStore:
	store = getattr(request.app.state, "session_store", None)
	if store is None:
		raise HTTPException(status_code=500, detail="Session store unavailable")
	return store


def _session(request: Request, session_id: str) -> AssistSession:
	try:
		return _store(request).get(session_id)
	except KeyError as exc:
		raise HTTPException(status_code=404, detail=str(exc)) from exc


async def start_session(request: Request) -> Dict[str, Any]:
	"""Create a new assist session and return its id."""
	session = _store(request).create()
	return {"session_id": session.session_id}


async def session_status(request: Request, session_id: str) -> Dict[str, Any]:
	"""Return sampling state, metrics and scene memory for a session."""
	return _session(request, session_id).snapshot()


async def start_streaming(request: Request, session_id: str) -> Dict[str, Any]:
	session = _session(request, session_id)
	await session.start_streaming()
	return session.snapshot()


async def stop_streaming(request: Request, session_id: str) -> Dict[str, Any]:
	session = _session(request, session_id)
	await session.stop_streaming()
	return session.snapshot()


async def ask_question(request: Request, session_id: str, utterance: str) -> Dict[str, Any]:
	"""Answer a recognized utterance and speak it if a client is attached."""
	text = (utterance or "").strip()
	if not text:
		raise HTTPException(status_code=400, detail="Utterance text is required.")
	session = _session(request, session_id)
	result = await session.router.ask(text)
	return {"session_id": session_id, **result.as_dict()}


async def end_session(request: Request, session_id: str) -> Dict[str, Any]:
	"""Stop sampling and drop the session along with its scene memory."""
	try:
		_store(request).close(session_id)
	except KeyError as exc:
		raise HTTPException(status_code=404, detail=str(exc)) from exc
	return {"session_id": session_id, "closed": True}
