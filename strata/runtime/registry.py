"""Class registry and the runtime facade exposed to front-ends."""

from __future__ import annotations

from ..declarations import ClassDecl, RoleDecl, display_version, version_key
from ..errors import CyclicInheritance, InvalidDeclaration
from . import dispatch as _dispatch
from . import lifecycle as _lifecycle
from .core import ClassRef, Instance, InstanceHandle, Journal, LinearizedClass
from .linearizer import linearize, resolve_parent, resolve_roles
from .store import DeclarationStore


class ClassRegistry:
    """Lazily linearized classes, memoized by name and version."""

    def __init__(self, store: DeclarationStore, journal: Journal):
        self.store = store
        self.journal = journal
        self._classes: dict[tuple[str, tuple], LinearizedClass] = {}
        self._in_progress: list[str] = []

    def get(self, name: str, min_version: str | None = None) -> LinearizedClass:
        decl = self.store.lookup(name, min_version)
        if not isinstance(decl, ClassDecl):
            raise InvalidDeclaration(name, "roles cannot be linearized or instantiated")
        return self.linearize(decl)

    def linearize(self, decl: ClassDecl) -> LinearizedClass:
        key = (decl.name, version_key(decl.version))
        cached = self._classes.get(key)
        if cached is not None:
            return cached
        if decl.name in self._in_progress:
            start = self._in_progress.index(decl.name)
            raise CyclicInheritance(self._in_progress[start:] + [decl.name])

        self._in_progress.append(decl.name)
        try:
            parent = resolve_parent(self, decl)
            roles = resolve_roles(self.store, decl)
            cls, shadowed = linearize(decl, parent, roles)
        finally:
            self._in_progress.pop()

        self._classes[key] = cls
        self.journal.record(f"linearize:{cls.label}:{' -> '.join(cls.chain)}")
        for name in shadowed:
            self.journal.record(f"warn:shadow:{name}")
        return cls

    def forget(self, decl: ClassDecl) -> None:
        self._classes.pop((decl.name, version_key(decl.version)), None)

    def is_linearized(self, name, version=None) -> bool:
        return (name, version_key(version)) in self._classes

    def classes(self) -> list[LinearizedClass]:
        return [self._classes[k] for k in sorted(self._classes)]


class ObjectRuntime:
    """In-process object model: registration, instantiation, dispatch, release."""

    def __init__(self):
        self.journal = Journal()
        self.store = DeclarationStore()
        self.registry = ClassRegistry(self.store, self.journal)
        self._serial = 0
        self._live: dict[int, Instance] = {}

    # -- registration -------------------------------------------------------

    def register_class(self, decl: ClassDecl, *, defer: bool = False) -> None:
        """Register a class; unless ``defer`` is set, linearize it right away."""

        if not isinstance(decl, ClassDecl):
            raise TypeError("register_class expects a ClassDecl")
        self.store.register(decl)
        self.journal.record(f"register:class:{decl.name}@{display_version(decl.version)}")
        if defer:
            return
        try:
            self.registry.linearize(decl)
        except Exception as exc:
            self.store.withdraw(decl)
            self.registry.forget(decl)
            self.journal.record(f"reject:{decl.name}:{type(exc).__name__}")
            raise

    def register_role(self, decl: RoleDecl) -> None:
        if not isinstance(decl, RoleDecl):
            raise TypeError("register_role expects a RoleDecl")
        self.store.register(decl)
        self.journal.record(f"register:role:{decl.name}@{display_version(decl.version)}")

    # -- lookup -------------------------------------------------------------

    def linearize(self, name: str, min_version: str | None = None) -> LinearizedClass:
        return self.registry.get(name, min_version)

    def class_ref(self, name: str, min_version: str | None = None) -> ClassRef:
        return ClassRef(self.registry.get(name, min_version))

    def resolve(self, class_name: str, method_name: str, dispatch_scope: str | None = None):
        return _dispatch.resolve(self.registry.get(class_name), method_name, dispatch_scope)

    # -- lifecycle ----------------------------------------------------------

    def _as_class(self, target) -> LinearizedClass:
        if isinstance(target, ClassRef):
            return target.linearized
        if isinstance(target, LinearizedClass):
            return target
        return self.registry.get(target)

    def instantiate(self, class_name, *arg_pairs) -> InstanceHandle:
        """Construct an instance from flat ``key, value`` arguments."""

        return self.new(class_name, arg_pairs)

    def new(self, target, arg_pairs) -> InstanceHandle:
        return _lifecycle.construct(self, self._as_class(target), arg_pairs)

    def invoke(self, target, method_name: str, *args):
        if isinstance(target, str):
            target = self.class_ref(target)
        return _dispatch.invoke(self, target, method_name, args)

    def retain(self, handle: InstanceHandle) -> InstanceHandle:
        return _lifecycle.retain(self, handle)

    def release(self, handle: InstanceHandle) -> None:
        _lifecycle.release(self, handle)

    # -- bookkeeping --------------------------------------------------------

    def next_serial(self) -> int:
        self._serial += 1
        return self._serial

    def track(self, instance: Instance) -> None:
        self._live[instance.serial] = instance

    def untrack(self, instance: Instance) -> None:
        self._live.pop(instance.serial, None)

    @property
    def live_count(self) -> int:
        return len(self._live)

    def live_instances(self, class_name: str | None = None) -> list[str]:
        return [
            inst.label
            for inst in self._live.values()
            if class_name is None or inst.cls.isa(class_name)
        ]


DEFAULT_RUNTIME = ObjectRuntime()


def get_runtime() -> ObjectRuntime:
    return DEFAULT_RUNTIME


def reset_runtime() -> ObjectRuntime:
    """Replace the process-wide runtime with a fresh one."""

    global DEFAULT_RUNTIME
    DEFAULT_RUNTIME = ObjectRuntime()
    return DEFAULT_RUNTIME


def register_class(decl, *, defer=False):
    DEFAULT_RUNTIME.register_class(decl, defer=defer)


def register_role(decl):
    DEFAULT_RUNTIME.register_role(decl)


def instantiate(class_name, *arg_pairs):
    return DEFAULT_RUNTIME.instantiate(class_name, *arg_pairs)


def invoke(target, method_name, *args):
    return DEFAULT_RUNTIME.invoke(target, method_name, *args)


def release(handle):
    handle.release()


__all__ = [
    "ClassRegistry",
    "ObjectRuntime",
    "get_runtime",
    "instantiate",
    "invoke",
    "register_class",
    "register_role",
    "release",
    "reset_runtime",
]
