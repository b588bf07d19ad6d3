import inspect
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from routes.realtime_ws import router as realtime_router
from routes.session_route import router as session_router
from services.openai.analysis_client import OpenAIAnalysisClient
from services.realtime.session_store import SessionStore
from services.scene.scene_sampler import AnalysisStream
from utils.settings import AssistSettings

load_dotenv()  # Load environment variables from .env file if present

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


async def _close_client(client) -> None:
    """Close the OpenAI client if it exposes a close/aclose method."""
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception:
        # Ignore shutdown errors to avoid masking more important issues.
        pass


def create_app(analyzer: Optional[AnalysisStream] = None, settings: Optional[AssistSettings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Passing `analyzer` skips OpenAI client creation, which is how tests run
    the app without credentials.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager to initialize:
          - runtime settings
          - the OpenAI async client and the streaming analysis collaborator
          - the in-memory session store
        and attach them to `app.state`.
        """
        app.state.settings = settings or AssistSettings.from_env()
        app.state.openai_client = None
        resolved = analyzer
        if resolved is None:
            if not os.getenv("OPENAI_API_KEY"):
                raise RuntimeError("OPENAI_API_KEY environment variable is not set")
            try:
                openai_client = AsyncOpenAI()
            except Exception as exc:
                raise RuntimeError("Failed to initialize OpenAI Async client") from exc
            app.state.openai_client = openai_client
            resolved = OpenAIAnalysisClient(openai_client, model=app.state.settings.openai_model)

        app.state.analyzer = resolved
        app.state.session_store = SessionStore(resolved, app.state.settings)

        try:
            yield
        finally:
            app.state.session_store.close_all()
            client = getattr(app.state, "openai_client", None)
            if client is not None:
                await _close_client(client)

    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports analyzer presence and open sessions.
        """
        store = getattr(request.app.state, "session_store", None)
        return {
            "ok": True,
            "openai_available": getattr(request.app.state, "openai_client", None) is not None,
            "analyzer_ready": getattr(request.app.state, "analyzer", None) is not None,
            "sessions": len(store) if store is not None else 0,
        }

    # Register application routers
    app.include_router(session_router)
    app.include_router(realtime_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
