"""Change dispatch registry.

Listeners are kept in registration order under stable integer handle ids,
so dispatch order is deterministic and removal is O(1). A listener removed
while a diff is being dispatched is not called for the rest of that diff.
"""

from __future__ import annotations

import copy
import itertools
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pyddp.models.changes import ChangeEvent, Document, FieldChanges, FilteredChange
from pyddp.store import AddedRecord, ChangedRecord, MutationRecord, RemovedRecord

Predicate = Callable[[Document, int, list[Document]], Any]
ChangeCallback = Callable[[Any], None]


@dataclass(slots=True)
class ChangeListener:
    collection: str
    callback: ChangeCallback
    predicate: Predicate | None = None


class ChangeDispatcher:
    def __init__(self) -> None:
        self._listeners: dict[int, ChangeListener] = {}
        self._next_id = itertools.count(1)

    def __len__(self) -> int:
        return len(self._listeners)

    def register(self, listener: ChangeListener) -> int:
        handle_id = next(self._next_id)
        self._listeners[handle_id] = listener
        return handle_id

    def unregister(self, handle_id: int) -> None:
        self._listeners.pop(handle_id, None)

    def clear(self) -> None:
        self._listeners.clear()

    def _listeners_for(self, collection: str) -> list[tuple[int, ChangeListener]]:
        return [(hid, listener) for hid, listener in self._listeners.items() if listener.collection == collection]

    def __contains__(self, handle_id: object) -> bool:
        return handle_id in self._listeners

    def _still_registered(self, handle_id: int) -> bool:
        return handle_id in self._listeners

    def dispatch(self, record: MutationRecord | None) -> None:
        """Notify listeners of the collection touched by *record*."""
        if record is None:
            return
        if isinstance(record, AddedRecord):
            self._dispatch_added(record)
        elif isinstance(record, ChangedRecord):
            self._dispatch_changed(record)
        elif isinstance(record, RemovedRecord):
            self._dispatch_removed(record)

    def _dispatch_added(self, record: AddedRecord) -> None:
        fields = dict.fromkeys(record.field_names, True)
        for handle_id, listener in self._listeners_for(record.collection):
            if not self._still_registered(handle_id):
                continue
            added = copy.deepcopy(record.document)
            if listener.predicate is None:
                listener.callback(ChangeEvent(added=added))
            elif listener.predicate(added, record.index, record.documents):
                listener.callback(
                    FilteredChange(
                        prev=None,
                        next=added,
                        fields=dict(fields),
                        fields_changed=added,
                        fields_removed=[],
                    )
                )

    def _dispatch_changed(self, record: ChangedRecord) -> None:
        for handle_id, listener in self._listeners_for(record.collection):
            if not self._still_registered(handle_id):
                continue
            prev = copy.deepcopy(record.prev)
            next_doc = copy.deepcopy(record.document)
            if listener.predicate is None:
                listener.callback(
                    ChangeEvent(
                        changed=FieldChanges(
                            prev=prev,
                            next=next_doc,
                            fields=dict(record.fields),
                            fields_changed=copy.deepcopy(record.fields_changed),
                            fields_removed=list(record.fields_removed),
                        )
                    )
                )
                continue
            prev_passed = bool(listener.predicate(prev, record.index, record.documents))
            next_passed = bool(listener.predicate(next_doc, record.index, record.documents))
            if prev_passed or next_passed:
                listener.callback(
                    FilteredChange(
                        prev=prev,
                        next=next_doc,
                        fields=dict(record.fields),
                        fields_changed=copy.deepcopy(record.fields_changed),
                        fields_removed=list(record.fields_removed),
                        predicate_passed=(prev_passed, next_passed),
                    )
                )

    def _dispatch_removed(self, record: RemovedRecord) -> None:
        # The removed document is handed over as-is, without copying.
        for handle_id, listener in self._listeners_for(record.collection):
            if not self._still_registered(handle_id):
                continue
            if listener.predicate is None:
                listener.callback(ChangeEvent(removed=record.document))
            elif listener.predicate(record.document, record.index, record.documents):
                listener.callback(FilteredChange(prev=record.document, next=None))
