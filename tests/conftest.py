import asyncio
from typing import List, Optional, Sequence, Union

import pytest

from models.scene_models import AnalysisRequest


async def settle(rounds: int = 20) -> None:
    """Let scheduled tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeAnalyzer:
    """Streams canned replies word by word; an Exception entry is raised instead."""

    def __init__(self, replies: Sequence[Union[str, Exception]] = (), delay: float = 0.0) -> None:
        self.replies: List[Union[str, Exception]] = list(replies)
        self.delay = delay
        self.requests: List[AnalysisRequest] = []

    def add(self, reply: Union[str, Exception]) -> None:
        self.replies.append(reply)

    async def stream(self, request: AnalysisRequest):
        self.requests.append(request)
        if not self.replies:
            raise RuntimeError("No canned reply left")
        reply = self.replies.pop(0)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(reply, Exception):
            raise reply
        words = reply.split(" ")
        for index, word in enumerate(words):
            yield word if index == len(words) - 1 else word + " "


class FakeFrameSource:
    def __init__(self, frame: Optional[bytes] = b"ZnJhbWU=", error: Optional[Exception] = None) -> None:
        self.frame = frame
        self.error = error
        self.captures = 0

    def capture_frame(self) -> Optional[bytes]:
        self.captures += 1
        if self.error is not None:
            raise self.error
        return self.frame


class FakeSpeaker:
    """Records speech; with auto=False each utterance waits for finish() or cancel_all()."""

    def __init__(self, auto: bool = True) -> None:
        self.auto = auto
        self.started: List[str] = []
        self.completed: List[str] = []
        self.cancelled: List[str] = []
        self.cancel_calls = 0
        self._current: Optional[asyncio.Future] = None
        self._current_text: Optional[str] = None

    async def speak(self, text: str) -> None:
        self.started.append(text)
        if self.auto:
            self.completed.append(text)
            return
        self._current = asyncio.get_running_loop().create_future()
        self._current_text = text
        outcome = await self._current
        if outcome == "done":
            self.completed.append(text)
        else:
            self.cancelled.append(text)

    def finish(self) -> None:
        if self._current is not None and not self._current.done():
            self._current.set_result("done")

    async def cancel_all(self) -> None:
        self.cancel_calls += 1
        if self._current is not None and not self._current.done():
            self._current.set_result("cancelled")


class FailingSpeaker(FakeSpeaker):
    async def speak(self, text: str) -> None:
        self.started.append(text)
        raise RuntimeError("synthesis unavailable")


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest.fixture
def frames():
    return FakeFrameSource()


@pytest.fixture
def speaker():
    return FakeSpeaker()
