"""Append-only store of registered class and role declarations."""

from __future__ import annotations

from ..declarations import ClassDecl, RoleDecl, display_version, version_key
from ..errors import DuplicateDeclaration, InvalidDeclaration, UnknownClass, VersionTooLow


class DeclarationStore:
    """Declarations keyed by name and version.

    A name belongs to exactly one kind: once ``Point`` is registered as a
    class, registering a role called ``Point`` is rejected.
    """

    def __init__(self):
        self._entries: dict[str, dict[tuple, ClassDecl | RoleDecl]] = {}
        self._kinds: dict[str, str] = {}

    def register(self, decl: ClassDecl | RoleDecl) -> None:
        if not isinstance(decl, (ClassDecl, RoleDecl)):
            raise TypeError(f"Cannot register {type(decl).__name__}; expected a ClassDecl or RoleDecl")
        kind = self._kinds.get(decl.name)
        if kind is not None and kind != decl.kind:
            raise InvalidDeclaration(decl.name, f"name already registered as a {kind}")
        versions = self._entries.setdefault(decl.name, {})
        key = version_key(decl.version)
        if key in versions:
            raise DuplicateDeclaration(decl.name, display_version(decl.version))
        versions[key] = decl
        self._kinds[decl.name] = decl.kind

    def withdraw(self, decl: ClassDecl | RoleDecl) -> None:
        """Remove a declaration whose registration failed validation."""

        versions = self._entries.get(decl.name, {})
        key = version_key(decl.version)
        if versions.get(key) is decl:
            del versions[key]
        if not versions:
            self._entries.pop(decl.name, None)
            self._kinds.pop(decl.name, None)

    def lookup(self, name: str, min_version: str | None = None) -> ClassDecl | RoleDecl:
        """Return the highest registered version of ``name`` at or above ``min_version``."""

        versions = self._entries.get(name)
        if not versions:
            raise UnknownClass(name)
        best = max(versions)
        if min_version is not None and best < version_key(min_version):
            raise VersionTooLow(name, min_version, display_version(versions[best].version))
        return versions[best]

    def kind_of(self, name: str) -> str | None:
        return self._kinds.get(name)

    def __contains__(self, name):
        return name in self._entries

    def names(self, kind=None):
        return sorted(n for n, k in self._kinds.items() if kind is None or k == kind)

    def declarations(self, kind=None):
        """Yield every registered declaration, ordered by name then version."""

        for name in self.names(kind):
            for key in sorted(self._entries[name]):
                yield self._entries[name][key]


__all__ = ["DeclarationStore"]
