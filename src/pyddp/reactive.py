"""Change observers and materialized reactive query results."""

from __future__ import annotations

import copy
import itertools
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

from pyddp.dispatch import ChangeDispatcher, ChangeListener
from pyddp.models.changes import Document

if TYPE_CHECKING:
    from pyddp.collection import Collection, Comparator, SortKey

DataCallback = Callable[[list[Document]], None]


class ListenerRegistry(Protocol):
    def register(self, listener: Any) -> int: ...

    def unregister(self, handle_id: int) -> None: ...

    def __contains__(self, handle_id: object) -> bool: ...


class ChangeObserver:
    """Handle for one listener in a listener registry.

    The registry is the client's change dispatcher for collection observers,
    or a :class:`ReactiveCollection` for callbacks on a reactive view.
    """

    def __init__(self, dispatcher: ListenerRegistry, listener: ChangeListener | DataCallback) -> None:
        self._dispatcher = dispatcher
        self.listener = listener
        self._handle_id: int | None = None
        self.start()

    @property
    def is_active(self) -> bool:
        return self._handle_id is not None and self._handle_id in self._dispatcher

    def start(self) -> None:
        if not self.is_active:
            self._handle_id = self._dispatcher.register(self.listener)

    def stop(self) -> None:
        if self._handle_id is not None:
            self._dispatcher.unregister(self._handle_id)
            self._handle_id = None


class ReactiveCollection:
    """Query result that stays current as the mirrored collection changes.

    The result is recomputed with :meth:`Collection.fetch` after every diff
    on the collection; ``on_change`` callbacks fire only when it differs
    from the previous result.
    """

    def __init__(
        self,
        collection: Collection,
        dispatcher: ChangeDispatcher,
        *,
        sort: Comparator | None = None,
        key: SortKey | None = None,
        skip: int | None = None,
        limit: int | float | None = None,
    ) -> None:
        self._collection = collection
        self._settings: dict[str, Any] = {"sort": sort, "key": key, "skip": skip, "limit": limit}
        self._callbacks: dict[int, DataCallback] = {}
        self._next_id = itertools.count(1)
        self._data: list[Document] = []
        self._observer = ChangeObserver(
            dispatcher,
            ChangeListener(collection=collection.name, callback=lambda _change: self._recompute()),
        )
        self._recompute()

    def register(self, callback: DataCallback) -> int:
        handle_id = next(self._next_id)
        self._callbacks[handle_id] = callback
        return handle_id

    def unregister(self, handle_id: int) -> None:
        self._callbacks.pop(handle_id, None)

    def __contains__(self, handle_id: object) -> bool:
        return handle_id in self._callbacks

    def _recompute(self) -> None:
        data = self._collection.fetch(**self._settings)
        if data == self._data:
            return
        self._data = data
        for handle_id, callback in list(self._callbacks.items()):
            if handle_id in self._callbacks:
                callback(self.data())

    def data(self) -> list[Document]:
        return copy.deepcopy(self._data)

    def one(self) -> Document | None:
        return copy.deepcopy(self._data[0]) if self._data else None

    def count(self) -> int:
        return len(self._data)

    def settings(self, **settings: Any) -> None:
        """Update any of ``sort``, ``key``, ``skip``, ``limit`` and recompute."""
        unknown = set(settings) - set(self._settings)
        if unknown:
            raise TypeError(f"Unknown reactive settings: {sorted(unknown)}")
        self._settings.update(settings)
        self._recompute()

    def on_change(self, callback: DataCallback) -> ChangeObserver:
        """Call *callback* with a copy of the new result whenever it changes."""
        return ChangeObserver(self, callback)

    @property
    def is_active(self) -> bool:
        return self._observer.is_active

    def stop(self) -> None:
        self._observer.stop()

    def start(self) -> None:
        self._observer.start()
        self._recompute()
