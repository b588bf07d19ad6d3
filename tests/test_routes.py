import base64
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from main import create_app
from services.realtime import prompts
from utils.settings import AssistSettings


@pytest.fixture
def client(analyzer):
    app = create_app(analyzer=analyzer, settings=AssistSettings(sample_interval=60.0))
    with TestClient(app) as test_client:
        yield test_client


def _frame_b64():
    out = io.BytesIO()
    Image.new("RGB", (16, 16), (200, 200, 200)).save(out, format="JPEG")
    return base64.b64encode(out.getvalue()).decode("utf-8")


def _new_session(client):
    response = client.post("/sessions")
    assert response.status_code == 200
    return response.json()["session_id"]


def test_health(client):
    body = client.get("/health").json()
    assert body["ok"] is True
    assert body["analyzer_ready"] is True
    assert body["openai_available"] is False
    assert body["sessions"] == 0


def test_session_lifecycle(client):
    session_id = _new_session(client)
    status = client.get(f"/sessions/{session_id}").json()
    assert status["streaming"] is False
    assert status["phase"] == "idle"
    assert status["memory"] is None

    started = client.post(f"/sessions/{session_id}/stream/start").json()
    assert started["streaming"] is True
    assert started["metrics"]["frames_sampled"] == 0

    stopped = client.post(f"/sessions/{session_id}/stream/stop").json()
    assert stopped["streaming"] is False

    assert client.delete(f"/sessions/{session_id}").json() == {"session_id": session_id, "closed": True}
    assert client.get(f"/sessions/{session_id}").status_code == 404


def test_ask_without_memory_returns_guidance(client, analyzer):
    session_id = _new_session(client)
    body = client.post(f"/sessions/{session_id}/ask", json={"utterance": "Tell me more"}).json()
    assert body["outcome"] == "no_memory_yet"
    assert body["intent"] == "uses_memory"
    assert body["text"] == prompts.NO_MEMORY_GUIDANCE
    assert analyzer.requests == []


def test_ask_for_capture_without_frame_is_unavailable(client):
    session_id = _new_session(client)
    body = client.post(f"/sessions/{session_id}/ask", json={"utterance": "What's around me?"}).json()
    assert body["outcome"] == "unavailable"
    assert body["text"] == prompts.CAMERA_UNAVAILABLE


def test_ask_rejects_blank_utterance(client):
    session_id = _new_session(client)
    assert client.post(f"/sessions/{session_id}/ask", json={"utterance": "  "}).status_code == 400


def test_unknown_session_is_404(client):
    assert client.get("/sessions/missing").status_code == 404
    assert client.post("/sessions/missing/stream/start").status_code == 404
    assert client.delete("/sessions/missing").status_code == 404


def test_websocket_frame_then_visual_question(client, analyzer):
    analyzer.add("A grey wall is ahead.")
    analyzer.add("There is a grey wall right in front of you.")
    session_id = _new_session(client)
    with client.websocket_connect(f"/ws/{session_id}") as ws:
        ws.send_json({"type": "frame.push", "image_b64": _frame_b64(), "ack": True, "request_id": 1})
        ack = ws.receive_json()
        assert ack["type"] == "frame.ack"
        assert ack["request_id"] == 1

        ws.send_json({"type": "query.ask", "text": "What's in front of me?", "request_id": 2})
        answer = None
        sentences = []
        while answer is None:
            event = ws.receive_json()
            if event["type"] == "speech.say":
                ws.send_json({"type": "speech.done", "utterance_id": event["utterance_id"]})
            elif event["type"] in ("scene.sentence", "answer.sentence"):
                sentences.append(event["text"])
            elif event["type"] == "answer":
                answer = event
        assert answer["outcome"] == "answered"
        assert answer["request_id"] == 2
        assert answer["text"] == "There is a grey wall right in front of you."
        assert "A grey wall is ahead." in sentences

    status = client.get(f"/sessions/{session_id}").json()
    assert status["memory"]["text"] == "A grey wall is ahead."
    assert status["history_turns"] == 2


def test_websocket_mute_is_acknowledged_aloud(client):
    session_id = _new_session(client)
    with client.websocket_connect(f"/ws/{session_id}") as ws:
        ws.send_json({"type": "speech.mute", "request_id": "m"})
        assert ws.receive_json()["type"] == "speech.cancel"
        say = ws.receive_json()
        assert say["type"] == "speech.say"
        assert say["text"] == prompts.MUTED
        ws.send_json({"type": "speech.done", "utterance_id": say["utterance_id"]})
        state = ws.receive_json()
        assert state == {"type": "speech.state", "muted": True, "request_id": "m"}


def test_websocket_errors_keep_socket_open(client):
    session_id = _new_session(client)
    with client.websocket_connect(f"/ws/{session_id}") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["detail"] == "Payload must be JSON"
        ws.send_json({"type": "bogus", "request_id": 7})
        error = ws.receive_json()
        assert error == {"type": "error", "request_id": 7, "detail": "Unsupported message type."}
        ws.send_json({"type": "frame.push", "image_b64": "###", "request_id": 8})
        assert ws.receive_json()["type"] == "error"


def test_websocket_unknown_session(client):
    with client.websocket_connect("/ws/missing") as ws:
        assert ws.receive_json() == {"type": "error", "detail": "Session not found"}
