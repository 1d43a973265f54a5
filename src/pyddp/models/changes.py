"""Notification payloads delivered to change listeners.

Listeners without a predicate receive a :class:`ChangeEvent` in which
exactly one of ``added``/``changed``/``removed`` is set. Listeners with a
predicate receive a :class:`FilteredChange`.

Known quirks kept for compatibility:

* ``added`` and ``changed`` payloads carry deep copies, while ``removed``
  carries the document object that was just taken out of the store.
* A predicate listener is told about an added document with the
  :class:`FilteredChange` shape (``prev=None``), not with ``ChangeEvent``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

Document = dict[str, Any]


@dataclass(frozen=True, slots=True)
class FieldChanges:
    """Before/after state of one ``changed`` diff.

    ``fields`` maps every touched field to ``True`` (set) or ``False``
    (cleared). ``fields_changed`` holds the raw new values as sent by the
    server; ``fields_removed`` lists the cleared names.
    """

    prev: Document
    next: Document
    fields: dict[str, bool] = field(default_factory=dict)
    fields_changed: dict[str, Any] = field(default_factory=dict)
    fields_removed: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    added: Document | None = None
    changed: FieldChanges | None = None
    removed: Document | None = None


@dataclass(frozen=True, slots=True)
class FilteredChange:
    """Change seen through a predicate.

    ``predicate_passed`` is ``(prev_passed, next_passed)`` on ``changed``
    diffs, letting observers tell entering, leaving and staying apart. It is
    ``None`` for additions and removals.
    """

    prev: Document | None
    next: Document | None
    fields: dict[str, bool] = field(default_factory=dict)
    fields_changed: dict[str, Any] = field(default_factory=dict)
    fields_removed: list[str] = field(default_factory=list)
    predicate_passed: tuple[bool, bool] | None = None

    @property
    def entered(self) -> bool:
        if self.predicate_passed is None:
            return self.prev is None and self.next is not None
        return not self.predicate_passed[0] and self.predicate_passed[1]

    @property
    def left(self) -> bool:
        if self.predicate_passed is None:
            return self.prev is not None and self.next is None
        return self.predicate_passed[0] and not self.predicate_passed[1]
