import pytest
from fastapi.testclient import TestClient

from conftest import ScriptedRouter, evaluation_json
from mockloop.api import dependencies
from mockloop.core.sessions import SessionRegistry


@pytest.fixture
def client():
    import main

    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture
def scripted_registry(monkeypatch, tmp_path):
    """Serve the API from a registry whose provider answers are scripted."""

    def install(responses):
        registry = SessionRegistry(router=ScriptedRouter(responses))
        monkeypatch.setattr(dependencies, "_registry", registry)
        return registry

    return install


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["failed_credentials"] == 0


def test_start_answer_end_cycle(client, scripted_registry):
    scripted_registry([
        "Welcome to your DBMS interview!",
        "[TYPE:CONCEPT] What is a primary key?",
        evaluation_json(82, follow_up="Can a primary key be NULL?", strengths=["Precise"]),
    ])

    start = client.post("/api/interview/start", json={"interview_type": "dbms"})
    assert start.status_code == 200
    session = start.json()
    assert session["step"] == "question"
    assert session["question_number"] == 1
    assert [t["text"] for t in session["turns"]] == [
        "Welcome to your DBMS interview!",
        "What is a primary key?",
    ]

    answer = client.post(
        f"/api/interview/{session['session_id']}/answer",
        json={"text": "A column that uniquely identifies a row."},
    ).json()
    assert answer["accepted"]
    assert answer["score"] == 82
    assert answer["turns"][-1]["text"] == "Can a primary key be NULL?"
    assert answer["turns"][-1]["kind"] == "follow_up"

    status = client.get(f"/api/interview/{session['session_id']}/status").json()
    assert status["follow_up_count"] == 1
    assert status["overall_score"] == 82
    assert not status["completed"]

    pending = client.get(f"/api/interview/{session['session_id']}/result")
    assert pending.status_code == 409

    result = client.post(f"/api/interview/{session['session_id']}/end").json()
    assert result["overall_score"] == 82
    assert result["end_reason"] == "user_ended"
    assert result["strengths"] == ["Precise"]

    again = client.post(f"/api/interview/{session['session_id']}/end").json()
    assert again["completed_at"] == result["completed_at"]

    late = client.post(
        f"/api/interview/{session['session_id']}/answer", json={"text": "One more thing"}
    ).json()
    assert not late["accepted"]
    assert late["completed"]


def test_code_submission(client, scripted_registry):
    scripted_registry([
        "Welcome!",
        "[TYPE:CODING] [PATTERN:hashing] Two Sum: return indices of two numbers adding to target.",
        evaluation_json(90, feedback="Optimal.", works=True, isOptimal=True, problemTitle="Two Sum"),
    ])

    session = client.post("/api/interview/start", json={"interview_type": "dsa"}).json()
    assert session["step"] == "coding"
    assert session["is_coding_question"]

    response = client.post(
        f"/api/interview/{session['session_id']}/code",
        json={"code": "def two_sum(nums, target): ...", "language": "python"},
    ).json()

    assert response["accepted"]
    assert response["score"] == 90
    assert response["turns"][0]["kind"] == "code"
    assert "Optimal." in [t["text"] for t in response["turns"]]


def test_start_without_providers_uses_fallbacks(client):
    response = client.post("/api/interview/start", json={"interview_type": "os"})

    assert response.status_code == 200
    session = response.json()
    assert session["step"] == "question"
    assert session["turns"][0]["text"].startswith("Welcome to your Operating Systems interview")


def test_unknown_session_is_404(client):
    assert client.get("/api/interview/nope/status").status_code == 404
    assert client.post("/api/interview/nope/answer", json={"text": "hi"}).status_code == 404
    assert client.post("/api/interview/nope/end").status_code == 404


def test_invalid_config_is_rejected(client):
    response = client.post("/api/interview/start", json={"difficulty": "impossible"})

    assert response.status_code == 422


def test_voice_session_over_websocket(client, scripted_registry):
    scripted_registry([
        "Welcome!",
        "[TYPE:CONCEPT] What is virtual memory?",
        evaluation_json(70),
    ])

    session = client.post(
        "/api/interview/start",
        json={"interview_type": "os", "voice": True, "narration_enabled": False},
    ).json()
    assert session["step"] == "loading"

    with client.websocket_connect(f"/api/interview/ws/{session['session_id']}") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        ws.send_json({"type": "start"})
        messages = []
        while not any(
            m["type"] == "turn" and m["data"]["kind"] == "question" for m in messages
        ):
            messages.append(ws.receive_json())

        assert {"type": "state_change", "data": {"from": "loading", "to": "intro"}} in messages

        ws.send_json({"type": "listen_start"})
        ws.send_json({"type": "transcript_partial", "text": "paging"})
        ws.send_json({"type": "transcript_final", "text": "Paging maps virtual pages to frames."})
        ws.send_json({"type": "listen_stop"})

        answer = ws.receive_json()
        while answer["type"] != "turn":
            answer = ws.receive_json()
        assert answer["data"]["role"] == "candidate"
        assert answer["data"]["text"] == "Paging maps virtual pages to frames."

        ws.send_json({"type": "end"})
        message = ws.receive_json()
        while message["type"] != "complete":
            message = ws.receive_json()

    assert message["data"]["session_id"] == session["session_id"]
    assert message["data"]["end_reason"] == "user_ended"
    assert message["data"]["questions_attempted"] == 1


def test_websocket_unknown_session_closes(client):
    from starlette.websockets import WebSocketDisconnect

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/interview/ws/missing") as ws:
            ws.receive_json()


def test_tts_rejects_unspeakable_text(client):
    response = client.post("/api/audio/tts", json={"text": "   "})

    assert response.status_code == 400


def test_tts_reports_synthesis_failure(client, monkeypatch):
    from mockloop.api.endpoints import audio
    from mockloop.core.errors import SpeechChannelError

    async def broken(text, voice):
        raise SpeechChannelError("edge-tts unreachable")

    monkeypatch.setattr(audio, "synthesize", broken)

    response = client.post("/api/audio/tts", json={"text": "Hello there."})

    assert response.status_code == 502


def test_list_voices(client):
    voices = client.get("/api/audio/voices").json()

    assert voices
    assert all(isinstance(name, str) for name in voices.values())
