"""Streaming scene analysis and chat via OpenAI's Responses API."""

import logging
from typing import AsyncIterator

from openai import AsyncOpenAI

from models.scene_models import AnalysisRequest
from services.openai.media_inputs import build_inputs

LOGGER = logging.getLogger(__name__)

TEXT_DELTA_EVENT = "response.output_text.delta"


class OpenAIAnalysisClient:
    """Stream text for frame descriptions and scene questions.

    One collaborator serves both the periodic sampler and spoken
    questions; the request decides whether an image is attached.
    """

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-4o-mini", max_output_tokens: int = 300) -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client
        self.model = model
        self.max_output_tokens = max_output_tokens

    async def stream(self, request: AnalysisRequest) -> AsyncIterator[str]:
        """Yield text deltas as they arrive.

        Cancelling the consuming task closes the underlying stream.
        """
        inputs = build_inputs(request)
        try:
            async with self.client.responses.stream(
                model=self.model,
                input=inputs,
                max_output_tokens=self.max_output_tokens,
            ) as stream:
                async for event in stream:
                    if getattr(event, "type", None) == TEXT_DELTA_EVENT:
                        delta = getattr(event, "delta", "")
                        if delta:
                            yield delta
        except Exception as exc:
            LOGGER.error("OpenAI streaming request failed: %s", exc)
            raise
