"""Pydantic models for the execution WebSocket protocol."""

from typing import Annotated, Literal

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter

from execution.profiles import ProfileName

def _session_id():
    return Field(default=None, validation_alias=AliasChoices("session_id", "sessionId"))


class StartMessage(BaseModel):
    event: Literal["start"]
    profile: ProfileName = ProfileName.PYTHON


class UpsertMessage(BaseModel):
    event: Literal["upsert"]
    session_id: str | None = _session_id()
    files: dict[str, str]


class RunMessage(BaseModel):
    event: Literal["run"]
    session_id: str | None = _session_id()


class InputMessage(BaseModel):
    event: Literal["input"]
    session_id: str | None = _session_id()
    text: str


class StopMessage(BaseModel):
    event: Literal["stop"]
    session_id: str | None = _session_id()


ClientMessage = Annotated[
    StartMessage | UpsertMessage | RunMessage | InputMessage | StopMessage,
    Field(discriminator="event"),
]

client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)
