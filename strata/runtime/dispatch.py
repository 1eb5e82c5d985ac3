"""Method resolution tables and invocation."""

from __future__ import annotations

from typing import Any

from ..constants import CONSTRUCTOR_METHOD
from ..errors import (
    AmbiguousRoleMethod,
    ArityMismatch,
    FieldNotAccessible,
    InstanceDestroyed,
    InstanceMethodOnClass,
    MethodNotFound,
    MissingOverrideTarget,
    MissingRequiredMethod,
    NoNextMethod,
)
from .core import ClassRef, Instance, InstanceHandle, LinearizedClass, MethodImpl


def build_method_table(decl, parent, roles):
    """Layer own methods, role methods and the inherited table.

    Returns ``(table, shadowed)`` where ``table`` maps each method name to its
    dispatch list (innermost first) and ``shadowed`` lists the names that a
    non-override method hides from an ancestor.
    """

    own = {m.name: MethodImpl(decl.name, "class", m) for m in decl.all_methods}

    from_roles: dict[str, list[MethodImpl]] = {}
    for role in roles:
        for method in role.all_methods:
            from_roles.setdefault(method.name, []).append(MethodImpl(role.name, "role", method))

    for name, impls in from_roles.items():
        if len(impls) > 1 and name not in own:
            raise AmbiguousRoleMethod(impls[0].owner, impls[1].owner, name)

    inherited = parent.methods if parent is not None else {}

    shadowed = []
    for impl in list(own.values()) + [i for impls in from_roles.values() for i in impls]:
        if impl.decl.overrides:
            if impl.name not in inherited:
                raise MissingOverrideTarget(impl.name, decl.name)
        elif impl.name in inherited:
            shadowed.append(f"{impl.owner}::{impl.name}")

    names = list(own)
    names.extend(n for n in from_roles if n not in own)
    names.extend(n for n in inherited if n not in own and n not in from_roles)

    table = {}
    for name in names:
        chain = []
        if name in own:
            chain.append(own[name])
        chain.extend(from_roles.get(name, ()))
        chain.extend(inherited.get(name, ()))
        table[name] = tuple(chain)

    for role in roles:
        for required in role.requires:
            if required not in table:
                raise MissingRequiredMethod(role.name, required, decl.name)

    return table, shadowed


class CallContext:
    """What a method or hook body sees of the runtime.

    ``self`` is bound only for instance-scoped bodies; ``cls`` is always the
    most specific class of the invocant. Both are read-only. Field access is
    limited to fields declared by the body's own class or role.
    """

    def __init__(
        self,
        runtime,
        owner: str,
        cls: LinearizedClass,
        instance: Instance | None,
        *,
        method_name: str | None = None,
        chain: tuple[MethodImpl, ...] = (),
        position: int = 0,
        invocant: Instance | None = None,
    ):
        self._runtime = runtime
        self._owner = owner
        self._cls = cls
        self._instance = instance
        self._invocant = invocant if invocant is not None else instance
        self._method_name = method_name
        self._chain = chain
        self._cursor = position

    @property
    def self(self) -> Instance | None:
        return self._instance

    @property
    def cls(self) -> ClassRef:
        return ClassRef(self._cls)

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def method_name(self) -> str | None:
        return self._method_name

    @property
    def runtime(self):
        return self._runtime

    def next(self, *args):
        """Call the next implementation down this method's dispatch list."""

        self._cursor += 1
        if self._cursor >= len(self._chain):
            raise NoNextMethod(self._owner, self._method_name)
        return call_at(
            self._runtime, self._cls, self._invocant, self._chain, self._cursor, args
        )

    @property
    def has_next(self) -> bool:
        return self._cursor + 1 < len(self._chain)

    def _slot(self, name):
        if self._instance is None:
            return None
        return self._cls.layout.slot_for(self._owner, name)

    def field(self, name: str) -> Any:
        slot = self._slot(name)
        if slot is not None:
            return self._instance._slots[slot.index]
        cell = self._cls.shared_cell(self._owner, name)
        if cell is None:
            raise FieldNotAccessible(self._owner, name)
        return cell.get()

    def set_field(self, name: str, value: Any) -> None:
        slot = self._slot(name)
        if slot is not None:
            if slot.decl.container == "sequence":
                value = list(value)
            self._instance._slots[slot.index] = value
            return
        cell = self._cls.shared_cell(self._owner, name)
        if cell is None:
            raise FieldNotAccessible(self._owner, name)
        cell.set(value)

    def update_field(self, name: str, fn):
        """Read-modify-write a field; shared cells are updated under their lock."""

        slot = self._slot(name)
        if slot is not None:
            value = fn(self._instance._slots[slot.index])
            self._instance._slots[slot.index] = value
            return value
        cell = self._cls.shared_cell(self._owner, name)
        if cell is None:
            raise FieldNotAccessible(self._owner, name)
        return cell.update(fn)

    def push(self, name: str, *values) -> int:
        """Append to a sequence field and return its new length."""

        slot = self._slot(name)
        if slot is None or slot.decl.container != "sequence":
            raise FieldNotAccessible(self._owner, name)
        items = self._instance._slots[slot.index]
        items.extend(values)
        return len(items)

    def invoke(self, target, method_name, *args):
        return self._runtime.invoke(target, method_name, *args)

    def new(self, class_name, *arg_pairs):
        return self._runtime.instantiate(class_name, *arg_pairs)


def call_at(runtime, cls, invocant, chain, position, args):
    """Run the implementation at ``position`` of ``chain``."""

    impl = chain[position]
    if impl.scope == "instance" and invocant is None:
        raise InstanceMethodOnClass(cls.name, impl.name)
    if len(args) != impl.decl.arity:
        raise ArityMismatch(impl.name, impl.decl.arity, len(args))
    bound = invocant if impl.scope == "instance" else None
    ctx = CallContext(
        runtime,
        impl.owner,
        cls,
        bound,
        method_name=impl.name,
        chain=chain,
        position=position,
        invocant=invocant,
    )
    return impl.decl.body(ctx, *args)


def unpack_target(target):
    """Return ``(linearized_class, instance_or_None)`` for an invocant."""

    if isinstance(target, InstanceHandle):
        instance = target.instance
        return instance.cls, instance
    if isinstance(target, Instance):
        return target.cls, target
    if isinstance(target, ClassRef):
        return target.linearized, None
    if isinstance(target, LinearizedClass):
        return target, None
    raise TypeError(f"Cannot invoke a method on {type(target).__name__}")


def resolve(cls: LinearizedClass, method_name: str, dispatch_scope: str | None = None):
    """Return the dispatch list for ``method_name``, innermost first."""

    chain = cls.dispatch_list(method_name)
    if not chain:
        raise MethodNotFound(cls.name, method_name)
    if dispatch_scope in ("class", "common") and chain[0].scope == "instance":
        raise InstanceMethodOnClass(cls.name, method_name)
    return chain


def invoke(runtime, target, method_name, args):
    cls, instance = unpack_target(target)
    if instance is not None and not instance.is_alive:
        raise InstanceDestroyed(instance.label, method_name)

    if method_name == CONSTRUCTOR_METHOD:
        if instance is not None:
            raise MethodNotFound(cls.name, method_name)
        return runtime.new(ClassRef(cls), args)

    chain = resolve(cls, method_name)
    return call_at(runtime, cls, instance, chain, 0, tuple(args))


__all__ = [
    "CallContext",
    "build_method_table",
    "call_at",
    "unpack_target",
]
