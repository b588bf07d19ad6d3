import asyncio
import json

from conftest import settle
from services.realtime.client_channel import ClientChannel, WebSocketSpeaker


class RecordingSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


def test_speak_without_client_returns_immediately():
    speaker = WebSocketSpeaker(ClientChannel())
    asyncio.run(speaker.speak("Hello."))
    assert speaker.pending == 0


def test_speak_waits_for_client_done():
    async def scenario():
        socket = RecordingSocket()
        channel = ClientChannel()
        channel.attach(socket)
        speaker = WebSocketSpeaker(channel)
        task = asyncio.create_task(speaker.speak("Door ahead."))
        await settle()
        assert not task.done()
        say = socket.sent[0]
        assert speaker.finished(say["utterance_id"])
        await task
        return socket, speaker

    socket, speaker = asyncio.run(scenario())
    assert socket.sent[0]["type"] == "speech.say"
    assert socket.sent[0]["text"] == "Door ahead."
    assert speaker.pending == 0
    assert not speaker.finished("unknown")


def test_cancel_all_releases_waiting_speech():
    async def scenario():
        socket = RecordingSocket()
        channel = ClientChannel()
        channel.attach(socket)
        speaker = WebSocketSpeaker(channel)
        task = asyncio.create_task(speaker.speak("Long description."))
        await settle()
        await speaker.cancel_all()
        await task
        return socket

    socket = asyncio.run(scenario())
    assert [event["type"] for event in socket.sent] == ["speech.say", "speech.cancel"]


def test_missing_done_times_out():
    async def scenario():
        channel = ClientChannel()
        channel.attach(RecordingSocket())
        speaker = WebSocketSpeaker(channel, utterance_timeout=0.01)
        await speaker.speak("Nobody is listening.")
        return speaker

    assert asyncio.run(scenario()).pending == 0


def test_broken_socket_is_detached():
    async def scenario():
        channel = ClientChannel()
        channel.attach(RecordingSocket(fail=True))
        delivered = await channel.send({"type": "scene.sentence", "text": "Hi."})
        return channel, delivered

    channel, delivered = asyncio.run(scenario())
    assert delivered is False
    assert not channel.attached
