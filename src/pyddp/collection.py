"""Point-in-time and reactive views over one mirrored collection."""

from __future__ import annotations

import copy
import functools
import math
from collections.abc import Callable, Mapping
from typing import Any

from pyddp import _codec
from pyddp._emitter import Transport
from pyddp.dispatch import ChangeCallback, ChangeDispatcher, ChangeListener, Predicate
from pyddp.models.changes import Document
from pyddp.reactive import ChangeObserver, ReactiveCollection
from pyddp.store import ID_KEY, LocalStore

Comparator = Callable[[Document, Document], int]
SortKey = Callable[[Document], Any]


class Collection:
    """Named view over the local store.

    Usage::

        tasks = client.collection("tasks").filter(lambda doc, i, docs: not doc.get("done"))
        tasks.fetch(sort=lambda a, b: a["rank"] - b["rank"], limit=10)
    """

    def __init__(self, name: str, store: LocalStore, dispatcher: ChangeDispatcher, transport: Transport) -> None:
        self.name = name
        self._store = store
        self._dispatcher = dispatcher
        self._transport = transport
        self._filter: Predicate | None = None

    def filter(self, predicate: Predicate | None = None) -> Collection:
        """Restrict fetches, reactive views and change observers.

        Views already created keep the filter they were created with.
        """
        self._filter = predicate
        return self

    def fetch(
        self,
        sort: Comparator | None = None,
        key: SortKey | None = None,
        skip: int | None = None,
        limit: int | float | None = None,
    ) -> list[Document]:
        """Return a deep copy of the matching documents.

        Steps always run in this order: filter, sort, skip, limit. ``sort``
        is a ``cmp``-style comparator, ``key`` a sort key; both sorts are
        stable.
        """
        if sort is not None and key is not None:
            raise TypeError("Pass either sort or key, not both")

        documents = copy.deepcopy(self._store.collections.get(self.name, []))
        if self._filter is not None:
            documents = [doc for index, doc in enumerate(documents) if self._filter(doc, index, documents)]
        if sort is not None:
            documents.sort(key=functools.cmp_to_key(sort))
        elif key is not None:
            documents.sort(key=key)
        if isinstance(skip, int) and not isinstance(skip, bool):
            documents = documents[skip:]
        if limit is not None and limit != math.inf:
            documents = documents[: int(limit)]
        return documents

    def reactive(
        self,
        sort: Comparator | None = None,
        key: SortKey | None = None,
        skip: int | None = None,
        limit: int | float | None = None,
    ) -> ReactiveCollection:
        return ReactiveCollection(self, self._dispatcher, sort=sort, key=key, skip=skip, limit=limit)

    def on_change(self, callback: ChangeCallback, predicate: Predicate | None = None) -> ChangeObserver:
        """Observe diffs on this collection.

        An explicit *predicate* takes precedence over the collection filter.
        With neither, *callback* receives :class:`~pyddp.models.ChangeEvent`;
        otherwise it receives :class:`~pyddp.models.FilteredChange`.
        """
        listener = ChangeListener(collection=self.name, callback=callback, predicate=predicate or self._filter)
        return ChangeObserver(self._dispatcher, listener)

    def import_data(self, data: str | bytes | Mapping[str, Any]) -> None:
        """Emit ``added`` messages for this collection's documents in *data*."""
        decoded = _codec.decode(data) if isinstance(data, (str, bytes)) else data
        if not isinstance(decoded, Mapping):
            raise TypeError("import data must map collection names to document lists")
        documents = list(decoded.get(self.name) or ())
        for index, doc in enumerate(documents):
            if self._filter is not None and not self._filter(doc, index, documents):
                continue
            fields = {k: v for k, v in doc.items() if k != ID_KEY}
            self._transport.emit(
                "added",
                {"msg": "added", "id": doc.get(ID_KEY), "collection": self.name, "fields": fields},
            )

    def export_data(self, format: str = "string") -> str | dict[str, list[Document]]:
        exported = {self.name: self.fetch()}
        if format == "string":
            return _codec.encode(exported)
        if format == "raw":
            return exported
        raise ValueError(f"Unknown export format {format!r}; expected 'string' or 'raw'")
