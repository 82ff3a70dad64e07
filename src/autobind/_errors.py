from __future__ import annotations


def type_name(tp: object) -> str:
    return getattr(tp, "__qualname__", None) or repr(tp)


class ContainerError(RuntimeError):
    """Base class for every failure raised by the container."""


class ResolveError(ContainerError):
    """Raised when a type has no usable registration.

    This covers unregistered types, unregistered qualifiers and ambiguous
    lookups where several registrations match without a qualifier.
    """

    def __init__(self, message: str, resolve_type: object) -> None:
        super().__init__(f"Exception while resolving type {type_name(resolve_type)}: {message}")
        self.resolve_type = resolve_type


class InstanceCreationError(ContainerError):
    """Raised when an instance cannot be constructed.

    Either no construction strategy is configured, no constructor is
    injectable, or a circular dependency was found while creating it.
    """


class RegistrationError(ContainerError):
    """Raised when a registration is reconfigured or used in an invalid state."""
