"""Local mirror of server-published collections.

This is the only component allowed to mutate mirrored documents. Each
``apply_*`` call performs one diff and returns a record describing it, which
the dispatcher turns into listener notifications.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from pyddp.models.changes import Document
from pyddp.models.messages import AddedMessage, ChangedMessage, RemovedMessage

_logger = logging.getLogger(__name__)

ID_KEY = "id"


@dataclass(frozen=True, slots=True)
class AddedRecord:
    collection: str
    document: Document
    index: int
    documents: list[Document]
    field_names: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ChangedRecord:
    collection: str
    prev: Document
    document: Document
    index: int
    documents: list[Document]
    fields: dict[str, bool] = field(default_factory=dict)
    fields_changed: dict[str, Any] = field(default_factory=dict)
    fields_removed: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RemovedRecord:
    collection: str
    document: Document
    index: int
    documents: list[Document]


MutationRecord = AddedRecord | ChangedRecord | RemovedRecord


def _find_index(documents: list[Document], doc_id: Any) -> int:
    for index, doc in enumerate(documents):
        if doc.get(ID_KEY) == doc_id:
            return index
    return -1


class LocalStore:
    """Per-collection ordered documents keyed by ``id``.

    Documents keep arrival order; the store never re-sorts them.
    """

    def __init__(self) -> None:
        self.collections: dict[str, list[Document]] = {}

    def _documents(self, collection: str) -> list[Document]:
        documents = self.collections.get(collection)
        if documents is None:
            documents = []
            self.collections[collection] = documents
        return documents

    def get(self, collection: str, doc_id: Any) -> Document | None:
        documents = self.collections.get(collection, [])
        index = _find_index(documents, doc_id)
        return documents[index] if index > -1 else None

    def apply_added(self, message: AddedMessage) -> AddedRecord:
        documents = self._documents(message.collection)
        stale = _find_index(documents, message.id)
        if stale > -1:
            # Orphan of an earlier subscription; replaced silently.
            del documents[stale]
            _logger.debug("Replacing stale document %s/%s", message.collection, message.id)

        document: Document = {ID_KEY: message.id}
        document.update(copy.deepcopy(message.fields))
        documents.append(document)
        return AddedRecord(
            collection=message.collection,
            document=document,
            index=len(documents) - 1,
            documents=documents,
            field_names=tuple(message.fields),
        )

    def apply_changed(self, message: ChangedMessage) -> MutationRecord:
        documents = self._documents(message.collection)
        index = _find_index(documents, message.id)
        if index < 0:
            _logger.debug("changed for unknown document %s/%s, treating as added", message.collection, message.id)
            return self.apply_added(
                AddedMessage(collection=message.collection, id=message.id, fields=message.fields or {})
            )

        document = documents[index]
        prev = copy.deepcopy(document)
        fields: dict[str, bool] = {}
        fields_changed: dict[str, Any] = {}
        fields_removed: list[str] = []

        if message.fields:
            fields_changed = message.fields
            for key in message.fields:
                fields[key] = True
            document.update(copy.deepcopy(message.fields))
        if message.cleared:
            fields_removed = list(message.cleared)
            for key in message.cleared:
                fields[key] = False
                document.pop(key, None)

        return ChangedRecord(
            collection=message.collection,
            prev=prev,
            document=document,
            index=index,
            documents=documents,
            fields=fields,
            fields_changed=fields_changed,
            fields_removed=fields_removed,
        )

    def apply_removed(self, message: RemovedMessage) -> RemovedRecord | None:
        documents = self._documents(message.collection)
        index = _find_index(documents, message.id)
        if index < 0:
            return None
        document = documents.pop(index)
        return RemovedRecord(
            collection=message.collection,
            document=document,
            index=index,
            documents=documents,
        )

    def document_count(self) -> int:
        return sum(len(documents) for documents in self.collections.values())

    def snapshot(self) -> dict[str, list[Document]]:
        """Deep copy of every collection."""
        return copy.deepcopy(self.collections)
