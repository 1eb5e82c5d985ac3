"""Error taxonomy for the Strata runtime.

Registration problems are ``ValueError`` subclasses (the declaration is bad),
construction and dispatch problems are ``RuntimeError`` subclasses (the
runtime was asked to do something it cannot). Every error keeps its payload
as attributes so callers can branch on it without parsing messages.
"""


class StrataError(Exception):
    """Base class for every error raised by the runtime."""


class RegistrationError(StrataError, ValueError):
    """A declaration could not be registered or linearized."""


class ConstructionError(StrataError, RuntimeError):
    """An instance could not be constructed."""


class DispatchError(StrataError, RuntimeError):
    """A method could not be dispatched."""


# -- registration -----------------------------------------------------------


class InvalidDeclaration(RegistrationError):
    def __init__(self, name, reason):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid declaration {name!r}: {reason}")


class DuplicateDeclaration(RegistrationError):
    def __init__(self, name, version):
        self.name = name
        self.version = version
        super().__init__(f"{name} version {version} is already registered")


class UnknownClass(RegistrationError):
    def __init__(self, name):
        self.name = name
        super().__init__(f"Unknown class or role {name!r}")


class VersionTooLow(RegistrationError):
    def __init__(self, name, required, actual):
        self.name = name
        self.required = required
        self.actual = actual
        super().__init__(
            f"{name} is registered at version {actual}, {required} or later required"
        )


class VersionConstraintViolated(RegistrationError):
    def __init__(self, parent_name, required, actual):
        self.parent_name = parent_name
        self.required = required
        self.actual = actual
        super().__init__(
            f"Parent {parent_name} version {actual} does not satisfy required {required}"
        )


class CyclicInheritance(RegistrationError):
    def __init__(self, chain):
        self.chain = tuple(chain)
        super().__init__("Cyclic inheritance: " + " -> ".join(self.chain))


class AmbiguousRoleMethod(RegistrationError):
    def __init__(self, role_a, role_b, method_name):
        self.role_a = role_a
        self.role_b = role_b
        self.method_name = method_name
        super().__init__(
            f"Method {method_name!r} is provided by both {role_a} and {role_b}; "
            "the class must declare its own"
        )


class MissingOverrideTarget(RegistrationError):
    def __init__(self, method_name, class_name=None):
        self.method_name = method_name
        self.class_name = class_name
        where = f" in {class_name}" if class_name else ""
        super().__init__(
            f"Method {method_name!r}{where} is marked as overriding but no ancestor defines it"
        )


class MissingRequiredMethod(RegistrationError):
    def __init__(self, role_name, method_name, class_name):
        self.role_name = role_name
        self.method_name = method_name
        self.class_name = class_name
        super().__init__(
            f"Role {role_name} requires method {method_name!r}, which {class_name} does not provide"
        )


# -- construction -----------------------------------------------------------


class AbstractInstantiation(ConstructionError):
    def __init__(self, class_name):
        self.class_name = class_name
        super().__init__(f"Cannot instantiate abstract class {class_name}")


class InvalidConstructorArguments(ConstructionError):
    def __init__(self, class_name, reason):
        self.class_name = class_name
        self.reason = reason
        super().__init__(f"Invalid constructor arguments for {class_name}: {reason}")


class DuplicateConstructorArgument(ConstructionError):
    def __init__(self, class_name, key):
        self.class_name = class_name
        self.key = key
        super().__init__(f"Constructor argument {key!r} given more than once to {class_name}")


class MissingRequiredField(ConstructionError):
    def __init__(self, class_name, param):
        self.class_name = class_name
        self.param = param
        super().__init__(f"Required parameter {param!r} missing for {class_name}")


class UnexpectedConstructorArgument(ConstructionError):
    def __init__(self, class_name, keys):
        self.class_name = class_name
        self.keys = tuple(keys)
        super().__init__(
            f"Unrecognised constructor arguments for {class_name}: {', '.join(self.keys)}"
        )


# -- dispatch ---------------------------------------------------------------


class MethodNotFound(DispatchError):
    def __init__(self, class_name, method_name):
        self.class_name = class_name
        self.method_name = method_name
        super().__init__(f"Can't locate method {method_name!r} via class {class_name}")


class NoNextMethod(DispatchError):
    def __init__(self, class_name, method_name):
        self.class_name = class_name
        self.method_name = method_name
        super().__init__(
            f"No next implementation of {method_name!r} after {class_name}"
        )


class InstanceMethodOnClass(DispatchError):
    def __init__(self, class_name, method_name):
        self.class_name = class_name
        self.method_name = method_name
        super().__init__(
            f"Instance method {method_name!r} of {class_name} invoked on a class"
        )


class ArityMismatch(DispatchError):
    def __init__(self, method_name, expected, actual):
        self.method_name = method_name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Method {method_name!r} takes {expected} argument(s), got {actual}"
        )


class FieldNotAccessible(DispatchError):
    def __init__(self, owner, field_name):
        self.owner = owner
        self.field_name = field_name
        super().__init__(f"{owner} has no field {field_name!r}")


class InstanceDestroyed(DispatchError):
    def __init__(self, label, method_name=None):
        self.label = label
        self.method_name = method_name
        what = f" ({method_name!r})" if method_name else ""
        super().__init__(f"Instance {label} is being or has been destroyed{what}")


class ReleasedHandle(DispatchError):
    def __init__(self, label):
        self.label = label
        super().__init__(f"Handle for {label} has already been released")


__all__ = [
    "AbstractInstantiation",
    "AmbiguousRoleMethod",
    "ArityMismatch",
    "ConstructionError",
    "CyclicInheritance",
    "DispatchError",
    "DuplicateConstructorArgument",
    "DuplicateDeclaration",
    "FieldNotAccessible",
    "InstanceDestroyed",
    "InstanceMethodOnClass",
    "InvalidConstructorArguments",
    "InvalidDeclaration",
    "MethodNotFound",
    "MissingOverrideTarget",
    "MissingRequiredField",
    "MissingRequiredMethod",
    "NoNextMethod",
    "RegistrationError",
    "ReleasedHandle",
    "StrataError",
    "UnexpectedConstructorArgument",
    "UnknownClass",
    "VersionConstraintViolated",
    "VersionTooLow",
]
