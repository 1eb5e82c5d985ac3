"""Structured class and role declarations handed to the runtime by a front-end."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
import re
from typing import Any, Callable

from .constants import (
    CONTAINER_KINDS,
    FIELD_SCOPES,
    HOOK_KINDS,
    METHOD_SCOPE_ALIASES,
    METHOD_SCOPES,
    PARAM_POLICIES,
    RESERVED_METHODS,
    UNVERSIONED,
)
from .errors import InvalidDeclaration

VERSION_PATTERN = re.compile(r"^\d+(\.\d+)*$")

PARAM_ALIASES = {
    "required": "required-param",
    "optional": "optional-param-with-default",
    "none": "not-a-param",
}


def version_key(version):
    """Return a comparable tuple for a dotted numeric version string."""

    text = UNVERSIONED if version is None else str(version).strip()
    if not VERSION_PATTERN.match(text):
        raise ValueError(f"Invalid version string: {version!r}")
    parts = [int(p) for p in text.split(".")]
    while len(parts) > 1 and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def display_version(version):
    return UNVERSIONED if version is None else str(version)


def _callable_name(fn):
    if fn is None:
        return None
    return getattr(fn, "__qualname__", None) or repr(fn)


def _set(obj, name, value):
    object.__setattr__(obj, name, value)


def _normalize_version(owner, version):
    if version is None:
        return None
    text = str(version).strip()
    try:
        version_key(text)
    except ValueError:
        raise InvalidDeclaration(owner, f"invalid version {version!r}") from None
    return text


@dataclass(frozen=True)
class FieldDecl:
    """A named unit of per-instance or per-class storage."""

    name: str
    scope: str = "instance"
    param: str = "not-a-param"
    default: Any = None
    container: str = "scalar"
    param_name: str | None = None
    reader: bool | str | None = None
    writer: bool | str | None = None

    def __post_init__(self):
        name = (self.name or "").strip()
        if not name:
            raise InvalidDeclaration("<field>", "field requires a name")
        _set(self, "name", name)

        scope = (self.scope or "").strip().lower()
        if scope not in FIELD_SCOPES:
            raise InvalidDeclaration(name, f"unknown field scope {self.scope!r}")
        _set(self, "scope", scope)

        param = (self.param or "").strip().lower()
        param = PARAM_ALIASES.get(param, param)
        if param not in PARAM_POLICIES:
            raise InvalidDeclaration(name, f"unknown parameter policy {self.param!r}")
        _set(self, "param", param)

        container = (self.container or "").strip().lower()
        if container not in CONTAINER_KINDS:
            raise InvalidDeclaration(name, f"unknown container kind {self.container!r}")
        _set(self, "container", container)

        if scope == "shared":
            if container != "scalar":
                raise InvalidDeclaration(name, "shared fields must be scalar")
            if param != "not-a-param":
                raise InvalidDeclaration(name, "shared fields cannot be constructor parameters")
        if param == "required-param" and self.default is not None:
            raise InvalidDeclaration(name, "a required parameter cannot have a default")
        if self.param_name is not None:
            if param == "not-a-param":
                raise InvalidDeclaration(name, "param_name given for a field that is not a parameter")
            _set(self, "param_name", self.param_name.strip() or name)

    @property
    def is_shared(self) -> bool:
        return self.scope == "shared"

    @property
    def is_param(self) -> bool:
        return self.param != "not-a-param"

    @property
    def key(self) -> str | None:
        """Constructor key consumed by this field, if it is a parameter."""

        if not self.is_param:
            return None
        return self.param_name or self.name

    @property
    def reader_name(self) -> str | None:
        if not self.reader:
            return None
        return self.name if self.reader is True else str(self.reader)

    @property
    def writer_name(self) -> str | None:
        if not self.writer:
            return None
        return f"set_{self.name}" if self.writer is True else str(self.writer)

    def initial_value(self):
        """Evaluate the default for a fresh cell or slot.

        A callable default is called; any other default is deep-copied so no
        two cells or slots share a mutable value.
        """

        if callable(self.default):
            value = self.default()
        else:
            value = copy.deepcopy(self.default)
        if self.container == "sequence":
            return list(value) if value is not None else []
        return value

    def accessors(self) -> list["MethodDecl"]:
        """Methods generated by the ``reader``/``writer`` attributes."""

        generated = []
        scope = "class" if self.is_shared else "instance"
        field_name = self.name

        if self.reader_name:

            def read(ctx):
                value = ctx.field(field_name)
                return list(value) if isinstance(value, list) else value

            read.__qualname__ = f"reader<{field_name}>"
            generated.append(MethodDecl(self.reader_name, (), read, scope=scope))

        if self.writer_name:

            def write(ctx, value):
                ctx.set_field(field_name, value)
                return ctx.cls if ctx.self is None else ctx.self

            write.__qualname__ = f"writer<{field_name}>"
            generated.append(MethodDecl(self.writer_name, ("value",), write, scope=scope))

        return generated

    def to_dict(self):
        default = self.default
        if callable(default):
            default = f"<thunk {_callable_name(default)}>"
        return {
            "name": self.name,
            "scope": self.scope,
            "param": self.param,
            "key": self.key,
            "container": self.container,
            "default": default,
            "reader": self.reader_name,
            "writer": self.writer_name,
        }


@dataclass(frozen=True)
class MethodDecl:
    """A method with a fixed-arity signature and an opaque body.

    The body is called as ``body(ctx, *args)`` where ``ctx`` is the
    :class:`~strata.runtime.dispatch.CallContext` of the invocation.
    """

    name: str
    params: tuple | list | None
    body: Callable
    scope: str = "instance"
    overrides: bool = False

    def __post_init__(self):
        name = (self.name or "").strip()
        if not name:
            raise InvalidDeclaration("<method>", "method requires a name")
        _set(self, "name", name)
        if name in RESERVED_METHODS:
            raise InvalidDeclaration(name, "method name is reserved by the runtime")
        if self.params is None:
            raise InvalidDeclaration(name, "methods must declare a parameter list")
        _set(self, "params", tuple(p.strip() for p in self.params))
        scope = (self.scope or "").strip().lower()
        scope = METHOD_SCOPE_ALIASES.get(scope, scope)
        if scope not in METHOD_SCOPES:
            raise InvalidDeclaration(name, f"unknown dispatch scope {self.scope!r}")
        _set(self, "scope", scope)
        if not callable(self.body):
            raise InvalidDeclaration(name, "method body must be callable")
        _set(self, "overrides", bool(self.overrides))

    @property
    def arity(self):
        return len(self.params)

    def to_dict(self):
        return {
            "name": self.name,
            "params": list(self.params),
            "scope": self.scope,
            "overrides": self.overrides,
            "body": _callable_name(self.body),
        }


@dataclass(frozen=True)
class HookDecl:
    """An ADJUST or DESTRUCT lifecycle hook, called as ``body(ctx)``."""

    kind: str
    body: Callable

    def __post_init__(self):
        kind = (self.kind or "").strip().upper()
        if kind not in HOOK_KINDS:
            raise InvalidDeclaration(kind or "<hook>", f"unknown hook kind {self.kind!r}")
        _set(self, "kind", kind)
        if not callable(self.body):
            raise InvalidDeclaration(kind, "hook body must be callable")

    def to_dict(self):
        return {"kind": self.kind, "body": _callable_name(self.body)}


@dataclass(frozen=True)
class ParentRef:
    name: str
    min_version: str | None = None

    def __post_init__(self):
        name = (self.name or "").strip()
        if not name:
            raise InvalidDeclaration("<parent>", "parent reference requires a name")
        _set(self, "name", name)
        _set(self, "min_version", _normalize_version(name, self.min_version))


def _check_unique(owner, kind, names):
    seen = set()
    for name in names:
        if name in seen:
            raise InvalidDeclaration(owner, f"duplicate {kind} {name!r}")
        seen.add(name)


def _all_methods(owner, methods, fields):
    combined = list(methods)
    for fdecl in fields:
        combined.extend(fdecl.accessors())
    _check_unique(owner, "method", [m.name for m in combined])
    return tuple(combined)


@dataclass(frozen=True)
class RoleDecl:
    """A composable bundle of methods and instance fields."""

    name: str
    version: str | None = None
    methods: tuple = ()
    fields: tuple = ()
    requires: tuple = ()
    all_methods: tuple = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        name = (self.name or "").strip()
        if not name:
            raise InvalidDeclaration("<role>", "role requires a name")
        _set(self, "name", name)
        _set(self, "version", _normalize_version(name, self.version))
        _set(self, "methods", tuple(self.methods))
        _set(self, "fields", tuple(self.fields))
        _set(self, "requires", tuple(r.strip() for r in self.requires))
        for fdecl in self.fields:
            if fdecl.is_shared:
                raise InvalidDeclaration(name, f"roles cannot declare shared field {fdecl.name!r}")
        _check_unique(name, "field", [f.name for f in self.fields])
        _set(self, "all_methods", _all_methods(name, self.methods, self.fields))

    @property
    def kind(self):
        return "role"

    def to_dict(self):
        return {
            "kind": "role",
            "name": self.name,
            "version": display_version(self.version),
            "fields": [f.to_dict() for f in self.fields],
            "methods": [m.to_dict() for m in self.all_methods],
            "requires": list(self.requires),
        }


@dataclass(frozen=True)
class ClassDecl:
    """A fully parsed class declaration."""

    name: str
    version: str | None = None
    parent: ParentRef | str | None = None
    roles: tuple = ()
    abstract: bool = False
    fields: tuple = ()
    methods: tuple = ()
    hooks: tuple = ()
    all_methods: tuple = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        name = (self.name or "").strip()
        if not name:
            raise InvalidDeclaration("<class>", "class requires a name")
        _set(self, "name", name)
        _set(self, "version", _normalize_version(name, self.version))
        if isinstance(self.parent, str):
            _set(self, "parent", ParentRef(self.parent))
        _set(self, "roles", tuple(r.strip() for r in self.roles))
        _set(self, "abstract", bool(self.abstract))
        _set(self, "fields", tuple(self.fields))
        _set(self, "methods", tuple(self.methods))
        _set(self, "hooks", tuple(self.hooks))
        _check_unique(name, "role", self.roles)
        _check_unique(name, "field", [f.name for f in self.fields])
        _set(self, "all_methods", _all_methods(name, self.methods, self.fields))

    @property
    def kind(self):
        return "class"

    def hooks_of(self, kind):
        return [h for h in self.hooks if h.kind == kind]

    def to_dict(self):
        parent = None
        if self.parent is not None:
            parent = {"name": self.parent.name, "min_version": self.parent.min_version}
        return {
            "kind": "class",
            "name": self.name,
            "version": display_version(self.version),
            "parent": parent,
            "roles": list(self.roles),
            "abstract": self.abstract,
            "fields": [f.to_dict() for f in self.fields],
            "methods": [m.to_dict() for m in self.all_methods],
            "hooks": [h.to_dict() for h in self.hooks],
        }


__all__ = [
    "ClassDecl",
    "FieldDecl",
    "HookDecl",
    "MethodDecl",
    "PARAM_ALIASES",
    "ParentRef",
    "RoleDecl",
    "display_version",
    "version_key",
]
