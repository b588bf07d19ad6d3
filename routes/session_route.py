"""FastAPI routes for assist sessions."""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.session_controller import (
	ask_question,
	end_session,
	session_status,
	start_session,
	start_streaming,
	stop_streaming,
)

router = APIRouter(prefix="/sessions")


class AskPayload(BaseModel):
	utterance: str


@router.post("")
async def start_session_route(request: Request):
	try:
		return await start_session(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/{session_id}")
async def session_status_route(request: Request, session_id: str):
	try:
		return await session_status(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{session_id}/stream/start")
async def start_streaming_route(request: Request, session_id: str):
	try:
		return await start_streaming(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{session_id}/stream/stop")
async def stop_streaming_route(request: Request, session_id: str):
	try:
		return await stop_streaming(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/{session_id}/ask")
async def ask_route(request: Request, session_id: str, payload: AskPayload):
	try:
		return await ask_question(request, session_id, payload.utterance)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/{session_id}")
async def end_session_route(request: Request, session_id: str):
	try:
		return await end_session(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
