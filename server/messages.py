import json
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from sessions.models import SourceKind


class Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class StartRecordingData(Payload):
    source_kind: SourceKind = SourceKind.MICROPHONE
    title: str | None = Field(default=None, max_length=200)


class AudioChunkData(Payload):
    session_id: str = Field(min_length=1)
    encoded_audio: str
    timestamp_offset: float = Field(ge=0)


class UpdateStatusData(Payload):
    session_id: str = Field(min_length=1)
    status: Literal["recording", "paused"]


class StopRecordingData(Payload):
    session_id: str = Field(min_length=1)
    duration_seconds: float = Field(default=0, ge=0)


class SessionRef(Payload):
    session_id: str = Field(min_length=1)


class Frame(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int | str | None = None


class StartRecording(Frame):
    event: Literal["start-recording"]
    data: StartRecordingData = Field(default_factory=StartRecordingData)


class AudioChunk(Frame):
    event: Literal["audio-chunk"]
    data: AudioChunkData


class UpdateStatus(Frame):
    event: Literal["update-status"]
    data: UpdateStatusData


class StopRecording(Frame):
    event: Literal["stop-recording"]
    data: StopRecordingData


class GetSession(Frame):
    event: Literal["get-session"]
    data: SessionRef


class DeleteSession(Frame):
    event: Literal["delete-session"]
    data: SessionRef


class Ping(Frame):
    event: Literal["ping"]
    data: dict = Field(default_factory=dict)


ClientMessage = Annotated[
    Union[StartRecording, AudioChunk, UpdateStatus, StopRecording, GetSession, DeleteSession, Ping],
    Field(discriminator="event"),
]

_client_message = TypeAdapter(ClientMessage)


def parse_client_message(raw: str | bytes) -> ClientMessage:
    """Validate one client frame; raises pydantic.ValidationError."""
    return _client_message.validate_json(raw)


def peek_ack_id(raw: str | bytes) -> int | str | None:
    """Best-effort read of the ack id from a frame that failed validation."""
    try:
        frame = json.loads(raw)
    except ValueError:
        return None
    if isinstance(frame, dict) and isinstance(frame.get("id"), (int, str)):
        return frame["id"]
    return None


def describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    if location:
        return f"Mensaje invalido ({location}): {first['msg']}"
    return f"Mensaje invalido: {first['msg']}"
