"""Instance layout: slot tables and shared class-level cells."""

from __future__ import annotations

import threading
from typing import Any, Iterable

from ..declarations import FieldDecl
from ..errors import InvalidDeclaration


class FieldSlot:
    """Position of one instance field inside an instance's slot array."""

    def __init__(self, index: int, owner: str, decl: FieldDecl):
        self.index = index
        self.owner = owner
        self.decl = decl

    @property
    def name(self):
        return self.decl.name

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"Slot({self.index}:{self.owner}.{self.name})"


class SharedCell:
    """One class-level storage cell, keyed by its declaring class."""

    def __init__(self, owner: str, decl: FieldDecl):
        self.owner = owner
        self.decl = decl
        self._lock = threading.RLock()
        self._value = decl.initial_value()

    @property
    def name(self):
        return self.decl.name

    def get(self):
        with self._lock:
            return self._value

    def set(self, value):
        with self._lock:
            self._value = value

    def update(self, fn):
        """Apply ``fn`` to the current value atomically and store the result."""

        with self._lock:
            self._value = fn(self._value)
            return self._value

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"SharedCell({self.owner}.{self.name})"


class SlotLayout:
    """Deterministic slot table: inherited slots first, then declared order."""

    def __init__(self, slots: Iterable[FieldSlot] = ()):
        self.slots: list[FieldSlot] = list(slots)
        self._index = {(s.owner, s.name): s for s in self.slots}

    def __len__(self):
        return len(self.slots)

    def __iter__(self):
        return iter(self.slots)

    def slot_for(self, owner: str, name: str) -> FieldSlot | None:
        return self._index.get((owner, name))

    def owned_by(self, owner: str) -> list[FieldSlot]:
        return [s for s in self.slots if s.owner == owner]

    def param_slots(self) -> list[FieldSlot]:
        return [s for s in self.slots if s.decl.is_param]

    def extend(self, owner: str, fields: Iterable[FieldDecl]) -> "SlotLayout":
        """Return a new layout with ``owner``'s instance fields appended."""

        slots = list(self.slots)
        for decl in fields:
            if decl.is_shared:
                continue
            if (owner, decl.name) in self._index:
                raise InvalidDeclaration(owner, f"field {decl.name!r} laid out twice")
            slots.append(FieldSlot(len(slots), owner, decl))
        return SlotLayout(slots)

    def allocate(self) -> list[Any]:
        return [None] * len(self.slots)


def build_layout(parent_layout, class_name, class_fields, role_fields):
    """Lay out a class: parent slots, own fields, then each role's fields.

    ``role_fields`` is a sequence of ``(role_name, fields)`` pairs in the order
    the class consumes the roles. Constructor keys must be unique across the
    whole layout.
    """

    layout = parent_layout if parent_layout is not None else SlotLayout()
    layout = layout.extend(class_name, class_fields)
    for role_name, fields in role_fields:
        layout = layout.extend(role_name, fields)

    keys = {}
    for slot in layout.param_slots():
        key = slot.decl.key
        previous = keys.get(key)
        if previous is not None:
            raise InvalidDeclaration(
                class_name,
                f"constructor key {key!r} used by both {previous.owner}.{previous.name} "
                f"and {slot.owner}.{slot.name}",
            )
        keys[key] = slot
    return layout


def allocate_shared_cells(class_name, fields) -> dict[str, SharedCell]:
    """Allocate one cell per shared field declared directly by ``class_name``."""

    return {f.name: SharedCell(class_name, f) for f in fields if f.is_shared}


__all__ = [
    "FieldSlot",
    "SharedCell",
    "SlotLayout",
    "allocate_shared_cells",
    "build_layout",
]
