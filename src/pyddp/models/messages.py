"""Validated views of the protocol messages the engine consumes.

Transports deliver decoded messages as plain mappings. The engine validates
them into these models at its boundary; unknown keys are kept.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DdpMessage(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    msg: str = ""


class _DocumentMessage(DdpMessage):
    collection: str
    id: Any

    @field_validator("collection")
    @classmethod
    def _non_empty_collection(cls, value: str) -> str:
        if not value:
            raise ValueError("collection must be non-empty")
        return value


class AddedMessage(_DocumentMessage):
    msg: str = "added"
    fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("fields", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class ChangedMessage(_DocumentMessage):
    msg: str = "changed"
    fields: dict[str, Any] | None = None
    cleared: list[str] | None = None


class RemovedMessage(_DocumentMessage):
    msg: str = "removed"


class ResultMessage(DdpMessage):
    msg: str = "result"
    id: Any
    result: Any = None
    error: Any = None


class ReadyMessage(DdpMessage):
    msg: str = "ready"
    subs: list[Any] = Field(default_factory=list)


class NosubMessage(DdpMessage):
    msg: str = "nosub"
    id: Any
    error: Any = None
