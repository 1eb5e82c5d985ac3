"""Construction and destruction protocols."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..constants import ALTERNATE_ARGS_METHOD
from ..errors import (
    AbstractInstantiation,
    DuplicateConstructorArgument,
    InstanceDestroyed,
    InvalidConstructorArguments,
    MissingRequiredField,
    ReleasedHandle,
    UnexpectedConstructorArgument,
)
from .core import ClassRef, Instance, InstanceHandle, LinearizedClass
from .dispatch import CallContext, call_at


def normalize_arg_pairs(class_name: str, arg_pairs) -> list[tuple[str, Any]]:
    """Check a flat ``key, value, key, value`` sequence and pair it up."""

    if isinstance(arg_pairs, (Mapping, str, bytes)):
        raise InvalidConstructorArguments(class_name, "expected a flat key/value sequence")
    items = list(arg_pairs)
    if len(items) == 1:
        raise InvalidConstructorArguments(
            class_name, f"got a single {type(items[0]).__name__} instead of key/value pairs"
        )
    if len(items) % 2:
        raise InvalidConstructorArguments(class_name, "odd number of key/value elements")

    pairs = []
    seen = set()
    for key, value in zip(items[::2], items[1::2]):
        if not isinstance(key, str):
            raise InvalidConstructorArguments(class_name, f"key {key!r} is not a string")
        if key in seen:
            raise DuplicateConstructorArgument(class_name, key)
        seen.add(key)
        pairs.append((key, value))
    return pairs


def _flatten(pairs):
    flat = []
    for key, value in pairs:
        flat.extend((key, value))
    return flat


def _apply_alternate_args(runtime, cls: LinearizedClass, pairs):
    chain = cls.dispatch_list(ALTERNATE_ARGS_METHOD)
    if not chain:
        return pairs
    transformed = call_at(runtime, cls, None, chain, 0, (_flatten(pairs),))
    return normalize_arg_pairs(cls.name, transformed)


def resolve_field_values(cls: LinearizedClass, pairs) -> list[Any]:
    """Validate every parameter, then evaluate values for every slot.

    Nothing with side effects runs until all validation has passed.
    """

    supplied = dict(pairs)
    known_keys = {slot.decl.key for slot in cls.layout.param_slots()}
    unexpected = [key for key, _ in pairs if key not in known_keys]
    if unexpected:
        raise UnexpectedConstructorArgument(cls.name, unexpected)

    for slot in cls.layout.param_slots():
        decl = slot.decl
        if decl.param == "required-param" and decl.key not in supplied:
            raise MissingRequiredField(cls.name, decl.key)
        if decl.container == "sequence" and decl.key in supplied:
            if not isinstance(supplied[decl.key], (list, tuple)):
                raise InvalidConstructorArguments(
                    cls.name, f"{decl.key!r} expects a sequence value"
                )

    values = cls.layout.allocate()
    for slot in cls.layout:
        decl = slot.decl
        if decl.is_param and decl.key in supplied:
            value = supplied[decl.key]
            if decl.container == "sequence":
                value = list(value)
        else:
            value = decl.initial_value()
        values[slot.index] = value
    return values


def construct(runtime, cls: LinearizedClass, arg_pairs) -> InstanceHandle:
    if cls.abstract:
        raise AbstractInstantiation(cls.name)

    pairs = normalize_arg_pairs(cls.name, arg_pairs)
    pairs = _apply_alternate_args(runtime, cls, pairs)
    values = resolve_field_values(cls, pairs)

    instance = Instance(cls, values, runtime.next_serial())
    handle = InstanceHandle(runtime, instance)
    runtime.journal.record(f"new:{instance.label}")

    try:
        for owner, hook in cls.hooks("ADJUST"):
            runtime.journal.record(f"ADJUST:{owner.name}:{instance.label}")
            hook.body(CallContext(runtime, owner.name, cls, instance))
    except Exception:
        _discard(runtime, instance, handle)
        raise

    instance.state = "live"
    runtime.track(instance)
    return handle


def _discard(runtime, instance, handle):
    slots = instance._slots
    instance.state = "destroyed"
    instance._slots = []
    instance.refcount = 0
    handle._released = True
    runtime.journal.record(f"abort:{instance.label}")
    for value in slots:
        for owned in _owned_handles(value):
            if not owned.is_released:
                release(runtime, owned)


def _owned_handles(value):
    if isinstance(value, InstanceHandle):
        yield value
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _owned_handles(item)


def destruct(runtime, instance: Instance) -> None:
    """Run DESTRUCT hooks own-class-first, then drop owned references."""

    if instance.state in ("destructing", "destroyed"):
        return
    instance.state = "destructing"

    first_error = None
    for owner, hook in instance.cls.hooks("DESTRUCT"):
        runtime.journal.record(f"DESTRUCT:{owner.name}:{instance.label}")
        try:
            hook.body(CallContext(runtime, owner.name, instance.cls, instance))
        except Exception as exc:
            runtime.journal.record(f"error:DESTRUCT:{owner.name}:{instance.label}:{exc}")
            if first_error is None:
                first_error = exc

    slots = instance._slots
    instance._slots = []
    instance.state = "destroyed"
    runtime.untrack(instance)
    runtime.journal.record(f"destroyed:{instance.label}")

    for value in slots:
        for owned in _owned_handles(value):
            if not owned.is_released:
                release(runtime, owned)

    if first_error is not None:
        raise first_error


def retain(runtime, handle: InstanceHandle) -> InstanceHandle:
    instance = handle.instance
    if not instance.is_alive:
        raise InstanceDestroyed(instance.label)
    return InstanceHandle(runtime, instance)


def release(runtime, handle: InstanceHandle) -> None:
    if handle.is_released:
        raise ReleasedHandle(handle.label)
    instance = handle.instance
    handle._released = True
    instance.refcount -= 1
    runtime.journal.record(f"release:{instance.label}:refs={instance.refcount}")
    if instance.refcount == 0:
        destruct(runtime, instance)


__all__ = [
    "construct",
    "destruct",
    "normalize_arg_pairs",
    "resolve_field_values",
]
