import asyncio

import pytest

from errors import InvalidTransitionError, NotFoundError
from sessions.lifecycle import can_transition
from sessions.models import RecordingStatus


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        ("recording", "paused", True),
        ("paused", "recording", True),
        ("recording", "processing", True),
        ("paused", "processing", True),
        ("processing", "completed", True),
        ("recording", "completed", False),
        ("paused", "completed", False),
        ("completed", "recording", False),
        ("completed", "processing", False),
        ("processing", "recording", False),
    ],
)
def test_transition_table(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_pause_and_resume_broadcast(services, connection):
    session = services.registry.create_session(connection, "microphone", "Demo")

    paused = asyncio.run(
        services.lifecycle.update_status(session["id"], connection.user.id, RecordingStatus.PAUSED)
    )
    resumed = asyncio.run(
        services.lifecycle.update_status(session["id"], connection.user.id, RecordingStatus.RECORDING)
    )

    assert paused["status"] == "paused"
    assert resumed["status"] == "recording"
    assert connection.events("status-updated") == [
        {"sessionId": session["id"], "status": "paused"},
        {"sessionId": session["id"], "status": "recording"},
    ]


def test_same_status_is_a_noop(services, connection):
    session = services.registry.create_session(connection, "microphone", "Demo")
    result = asyncio.run(
        services.lifecycle.update_status(session["id"], connection.user.id, RecordingStatus.RECORDING)
    )
    assert result["status"] == "recording"
    assert connection.events("status-updated") == []


def test_completed_session_rejects_status_updates(services, connection, db):
    session = services.registry.create_session(connection, "microphone", "Demo")
    db.update_session(session["id"], status="completed")

    with pytest.raises(InvalidTransitionError):
        asyncio.run(
            services.lifecycle.update_status(session["id"], connection.user.id, RecordingStatus.PAUSED)
        )
    assert db.get_session(session["id"])["status"] == "completed"


def test_manual_update_cannot_target_processing(services, connection):
    session = services.registry.create_session(connection, "microphone", "Demo")
    with pytest.raises(InvalidTransitionError):
        asyncio.run(
            services.lifecycle.update_status(
                session["id"], connection.user.id, RecordingStatus.PROCESSING
            )
        )


def test_session_of_another_user_is_not_found(services, connection, other_user):
    session = services.registry.create_session(connection, "microphone", "Demo")
    with pytest.raises(NotFoundError):
        services.lifecycle.require_session(session["id"], other_user.id)


def test_discard_deletes_session(services, connection, db):
    session = services.registry.create_session(connection, "microphone", "Demo")
    db.insert_transcript(session["id"], "hola", 0, 0.9)

    services.lifecycle.discard(session["id"], connection.user.id)

    assert db.get_session(session["id"]) is None
    assert db.list_transcripts(session["id"]) == []
    assert services.registry.members(session["id"]) == set()


def test_discard_rejected_while_processing(services, connection, db):
    session = services.registry.create_session(connection, "microphone", "Demo")
    db.update_session(session["id"], status="processing")
    with pytest.raises(InvalidTransitionError):
        services.lifecycle.discard(session["id"], connection.user.id)
