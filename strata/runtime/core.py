"""Core runtime data structures for Strata."""

from __future__ import annotations

from collections import deque
from typing import Any, Iterable, Optional

from ..constants import JOURNAL_LIMIT
from ..declarations import ClassDecl, MethodDecl, RoleDecl, display_version
from ..errors import ReleasedHandle
from .layout import SharedCell, SlotLayout


class Journal:
    """Bounded log of runtime events, one short string per entry.

    Only the most recent ``limit`` entries are kept.
    """

    def __init__(self, limit: int = JOURNAL_LIMIT):
        self.entries: deque[str] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self.entries.maxlen

    def record(self, entry: str) -> None:
        self.entries.append(entry)

    def tail(self, limit: int = 10) -> list[str]:
        return list(self.entries)[-limit:] if limit else []

    def clear(self) -> None:
        self.entries.clear()

    def __iter__(self):
        return iter(self.entries)

    def __len__(self):
        return len(self.entries)


class MethodImpl:
    """One entry of a dispatch list: a method body and who declared it."""

    def __init__(self, owner: str, owner_kind: str, decl: MethodDecl):
        self.owner = owner
        self.owner_kind = owner_kind
        self.decl = decl

    @property
    def name(self):
        return self.decl.name

    @property
    def scope(self):
        return self.decl.scope

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<{self.owner}::{self.name} [{self.scope}]>"


class LinearizedClass:
    """A class resolved against its ancestors and roles, ready to instantiate."""

    def __init__(
        self,
        decl: ClassDecl,
        parent: Optional["LinearizedClass"],
        roles: Iterable[RoleDecl],
        layout: SlotLayout,
        cells: dict[str, SharedCell],
        methods: dict[str, tuple[MethodImpl, ...]],
    ):
        self.decl = decl
        self.name = decl.name
        self.version = decl.version
        self.parent = parent
        self.roles = tuple(roles)
        self.layout = layout
        self.cells = cells
        self.methods = methods
        self.abstract = decl.abstract
        self.mro: tuple[LinearizedClass, ...] = (self,) + (parent.mro if parent else ())
        self.chain: tuple[str, ...] = tuple(c.name for c in self.mro)

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"LinearizedClass({self.label})"

    @property
    def label(self):
        return f"{self.name}@{display_version(self.version)}"

    def dispatch_list(self, method_name: str) -> tuple[MethodImpl, ...]:
        return self.methods.get(method_name, ())

    def isa(self, name: str) -> bool:
        return name in self.chain

    def does(self, role_name: str) -> bool:
        return any(role.name == role_name for cls in self.mro for role in cls.roles)

    def shared_cell(self, owner: str, name: str) -> SharedCell | None:
        """Find the cell ``owner``'s code sees for shared field ``name``.

        ``owner`` must declare the field itself. The walk then goes from this
        (most specific) class toward ``owner`` and returns the first declared
        cell, so a subclass redeclaring the field shadows the owner's cell for
        its own subtree only.
        """

        owner_cls = next((cls for cls in self.mro if cls.name == owner), None)
        if owner_cls is None or name not in owner_cls.cells:
            return None
        for cls in self.mro:
            cell = cls.cells.get(name)
            if cell is not None:
                return cell
        return None

    def visible_cells(self) -> dict[tuple[str, str], SharedCell]:
        """Every shared cell reachable from this class, keyed by (owner, name)."""

        cells = {}
        for cls in self.mro:
            for name, cell in cls.cells.items():
                cells[(cls.name, name)] = cell
        return cells

    def hooks(self, kind: str):
        """Yield ``(owner_class, hook)`` pairs, root first for ADJUST, own class first otherwise."""

        order = reversed(self.mro) if kind == "ADJUST" else iter(self.mro)
        for cls in order:
            for hook in cls.decl.hooks_of(kind):
                yield cls, hook


class ClassRef:
    """Immutable reference to a linearized class, used as a class-value invocant."""

    __slots__ = ("_cls",)

    def __init__(self, cls: LinearizedClass):
        object.__setattr__(self, "_cls", cls)

    def __setattr__(self, name, value):
        raise AttributeError("ClassRef is immutable")

    @property
    def linearized(self) -> LinearizedClass:
        return self._cls

    @property
    def name(self):
        return self._cls.name

    @property
    def version(self):
        return self._cls.version

    def __eq__(self, other):
        return isinstance(other, ClassRef) and other._cls is self._cls

    def __hash__(self):
        return id(self._cls)

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<class {self._cls.label}>"


class Instance:
    """Slot storage for one object. Only the runtime reads or writes slots."""

    def __init__(self, cls: LinearizedClass, slots: list[Any], serial: int):
        self.cls = cls
        self._slots = slots
        self.serial = serial
        self.refcount = 0
        self.state = "constructing"

    @property
    def label(self):
        return f"{self.cls.name}#{self.serial}"

    @property
    def class_ref(self) -> ClassRef:
        return ClassRef(self.cls)

    @property
    def is_alive(self) -> bool:
        return self.state in ("constructing", "live")

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<{self.label} {self.state} refs={self.refcount}>"


class InstanceHandle:
    """Owning reference to an instance.

    Each live handle holds one reference. Releasing the last one runs the
    destruction protocol immediately; leaving a ``with`` block releases the
    handle.
    """

    def __init__(self, runtime, instance: Instance):
        self._runtime = runtime
        self._instance = instance
        self._released = False
        instance.refcount += 1

    @property
    def instance(self) -> Instance:
        if self._released:
            raise ReleasedHandle(self._instance.label)
        return self._instance

    @property
    def is_released(self) -> bool:
        return self._released

    @property
    def label(self):
        return self._instance.label

    def invoke(self, method_name, *args):
        return self._runtime.invoke(self, method_name, *args)

    def retain(self) -> "InstanceHandle":
        return self._runtime.retain(self)

    def release(self) -> None:
        self._runtime.release(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self._released:
            self.release()
        return False

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        status = "released" if self._released else "owned"
        return f"<handle {self._instance.label} {status}>"


__all__ = [
    "ClassRef",
    "Instance",
    "InstanceHandle",
    "Journal",
    "LinearizedClass",
    "MethodImpl",
]
