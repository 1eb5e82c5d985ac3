"""Read-only reflection over classes, roles and instances.

Reflection describes structure only. It never exposes field values, so it
cannot be used to reach around declared accessors.
"""

from __future__ import annotations

from ..declarations import ClassDecl, RoleDecl, display_version
from .core import ClassRef, Instance, InstanceHandle, LinearizedClass


class MetaObject:
    """A serializable, structural view of a runtime object."""

    def __init__(self, kind, data):
        self.kind = kind
        self.data = data

    def __repr__(self):  # pragma: no cover - debugging helper
        if self.kind == "Class":
            return f"<MetaClass {self.data.label} slots={len(self.data.layout)}>"
        if self.kind == "Role":
            return f"<MetaRole {self.data.name}>"
        if self.kind == "Instance":
            return f"<MetaInstance {self.data.label} [{self.data.state}]>"
        return f"<MetaObject {self.kind}>"

    def to_dict(self):
        """Return a JSON-safe representation."""
        if self.kind == "Class":
            return class_to_dict(self.data)
        if self.kind == "Role":
            return self.data.to_dict()
        if self.kind == "Instance":
            inst: Instance = self.data
            return {
                "class": inst.cls.name,
                "serial": inst.serial,
                "state": inst.state,
                "refcount": inst.refcount,
            }
        return {"kind": self.kind}


def class_to_dict(cls: LinearizedClass):
    return {
        "name": cls.name,
        "version": display_version(cls.version),
        "abstract": cls.abstract,
        "chain": list(cls.chain),
        "roles": [role.name for role in cls.roles],
        "slots": [
            {"index": s.index, "owner": s.owner, "name": s.name, "key": s.decl.key}
            for s in cls.layout
        ],
        "shared": [f"{owner}.{name}" for owner, name in cls.visible_cells()],
        "methods": {
            name: [
                {"owner": impl.owner, "scope": impl.scope, "overrides": impl.decl.overrides}
                for impl in chain
            ]
            for name, chain in sorted(cls.methods.items())
        },
    }


def reflect(obj):
    """Produce a MetaObject view of any Strata structure."""

    if isinstance(obj, InstanceHandle):
        obj = obj.instance
    if isinstance(obj, ClassRef):
        obj = obj.linearized
    if isinstance(obj, LinearizedClass):
        return MetaObject("Class", obj)
    if isinstance(obj, RoleDecl):
        return MetaObject("Role", obj)
    if isinstance(obj, ClassDecl):
        return MetaObject("Declaration", obj)
    if isinstance(obj, Instance):
        return MetaObject("Instance", obj)
    return MetaObject("Value", obj)


def list_meta_ops():
    return {
        "reflect": "Return a MetaObject view of a class, role or instance",
        "class_to_dict": "Describe a linearized class as plain data",
        "list_meta_ops": "List available reflective primitives",
    }


__all__ = [
    "MetaObject",
    "class_to_dict",
    "list_meta_ops",
    "reflect",
]
