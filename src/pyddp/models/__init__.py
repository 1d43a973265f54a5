"""Message and notification models."""

from pyddp.models.changes import ChangeEvent, Document, FieldChanges, FilteredChange
from pyddp.models.messages import (
    AddedMessage,
    ChangedMessage,
    DdpMessage,
    NosubMessage,
    ReadyMessage,
    RemovedMessage,
    ResultMessage,
)

__all__ = [
    "AddedMessage",
    "ChangeEvent",
    "ChangedMessage",
    "DdpMessage",
    "Document",
    "FieldChanges",
    "FilteredChange",
    "NosubMessage",
    "ReadyMessage",
    "RemovedMessage",
    "ResultMessage",
]
