"""Linearization: turn a class declaration into a ready-to-use class."""

from __future__ import annotations

from ..declarations import ClassDecl, RoleDecl
from ..errors import InvalidDeclaration, VersionConstraintViolated, VersionTooLow
from .core import LinearizedClass
from .dispatch import build_method_table
from .layout import allocate_shared_cells, build_layout


def resolve_roles(store, decl: ClassDecl) -> list[RoleDecl]:
    roles = []
    for name in decl.roles:
        role = store.lookup(name)
        if not isinstance(role, RoleDecl):
            raise InvalidDeclaration(decl.name, f"{name} is a class and cannot be consumed as a role")
        roles.append(role)
    return roles


def resolve_parent(registry, decl: ClassDecl) -> LinearizedClass | None:
    ref = decl.parent
    if ref is None:
        return None
    if registry.store.kind_of(ref.name) == "role":
        raise InvalidDeclaration(decl.name, f"{ref.name} is a role and cannot be a parent")
    try:
        return registry.get(ref.name, ref.min_version)
    except VersionTooLow as exc:
        raise VersionConstraintViolated(ref.name, exc.required, exc.actual) from None


def linearize(decl: ClassDecl, parent: LinearizedClass | None, roles: list[RoleDecl]):
    """Build the linearized form of ``decl`` on top of an already linearized parent.

    Returns ``(linearized, shadowed)``; ``shadowed`` names the methods that hide
    an inherited implementation without the override marker. A role an
    ancestor already consumes is not composed again; its slots and methods
    come through the parent.
    """

    fresh = [role for role in roles if parent is None or not parent.does(role.name)]
    layout = build_layout(
        parent.layout if parent is not None else None,
        decl.name,
        decl.fields,
        [(role.name, role.fields) for role in fresh],
    )
    methods, shadowed = build_method_table(decl, parent, fresh)
    cells = allocate_shared_cells(decl.name, decl.fields)
    return LinearizedClass(decl, parent, roles, layout, cells, methods), shadowed


__all__ = ["linearize", "resolve_parent", "resolve_roles"]
