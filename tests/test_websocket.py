import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import encode
from server.app import create_app


@pytest.fixture
def client(db, transcriber, summarizer):
    app = create_app(db, transcriber, summarizer)
    with TestClient(app) as c:
        yield c


def receive_until(ws, predicate, limit=50):
    seen = []
    for _ in range(limit):
        frame = ws.receive_json()
        seen.append(frame)
        if predicate(frame):
            return seen
    raise AssertionError(f"frame not received, got {seen}")


def wait_ack(ws, ack_id):
    frames = receive_until(ws, lambda f: f["event"] == "ack" and f["id"] == ack_id)
    return frames[-1]["data"], frames[:-1]


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.parametrize("query", ["", "?userId=ghost"])
def test_unauthenticated_connection_is_refused(client, query):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws{query}") as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_recording_session_over_websocket(client, user):
    with client.websocket_connect(f"/ws?userId={user.id}") as ws:
        ws.send_json({"event": "start-recording", "id": 1, "data": {"sourceKind": "microphone"}})
        ack, _ = wait_ack(ws, 1)
        assert ack["success"] is True
        session_id = ack["sessionId"]

        for offset, text in [(0, "uno"), (20, "dos"), (40, "tres")]:
            ws.send_json({
                "event": "audio-chunk",
                "data": {"sessionId": session_id, "encodedAudio": encode(text), "timestampOffset": offset},
            })

        progress = []
        while len(progress) < 3:
            frame = ws.receive_json()
            if frame["event"] == "transcription-progress":
                progress.append(frame["data"])
        assert sorted(p["timestampOffset"] for p in progress) == [0, 20, 40]

        ws.send_json({"event": "stop-recording", "id": 2, "data": {"sessionId": session_id, "durationSeconds": 45}})
        ack, before = wait_ack(ws, 2)
        assert ack["success"] is True
        events = [f["event"] for f in before]
        assert "processing-complete" in events
        assert events.index("status-updated") < events.index("processing-complete")

        ws.send_json({"event": "get-session", "id": 3, "data": {"sessionId": session_id}})
        ack, _ = wait_ack(ws, 3)
        session = ack["session"]
        assert session["status"] == "completed"
        assert [f["text"] for f in session["fragments"]] == ["uno", "dos", "tres"]
        assert session["summary"]["fullText"].startswith("Resumen:")


def test_failed_chunk_over_websocket(client, user, db):
    with client.websocket_connect(f"/ws?userId={user.id}") as ws:
        ws.send_json({"event": "start-recording", "id": 1, "data": {}})
        session_id = wait_ack(ws, 1)[0]["sessionId"]

        ws.send_json({
            "event": "audio-chunk",
            "data": {"sessionId": session_id, "encodedAudio": encode("fail"), "timestampOffset": 0},
        })
        receive_until(ws, lambda f: f["event"] == "transcription-progress")

        ws.send_json({"event": "stop-recording", "id": 2, "data": {"sessionId": session_id, "durationSeconds": 3}})
        assert wait_ack(ws, 2)[0]["success"] is True

    summary = db.get_summary(session_id)
    assert summary["full_text"] == "Resumen: [Transcripcion fallida en 0s]"
    assert db.list_transcripts(session_id)[0]["confidence"] == 0


def test_get_session_of_other_user_is_not_found(client, user, other_user):
    with client.websocket_connect(f"/ws?userId={user.id}") as ws:
        ws.send_json({"event": "start-recording", "id": 1, "data": {}})
        session_id = wait_ack(ws, 1)[0]["sessionId"]

    with client.websocket_connect(f"/ws?userId={other_user.id}") as ws:
        ws.send_json({"event": "get-session", "id": 1, "data": {"sessionId": session_id}})
        ack, _ = wait_ack(ws, 1)
        assert ack == {"success": False, "error": "Sesion no encontrada"}


def test_binary_frame_gets_error_and_connection_survives(client, user):
    with client.websocket_connect(f"/ws?userId={user.id}") as ws:
        ws.send_bytes(b"\x00\x01")
        frame = ws.receive_json()
        assert frame == {
            "event": "error",
            "data": {"message": "Solo se aceptan mensajes de texto JSON"},
        }

        ws.send_json({"event": "ping", "data": {}})
        frame = ws.receive_json()
        assert frame["event"] == "pong"
