from __future__ import annotations

from dataclasses import dataclass
from enum import Flag, auto


class RegistrationOption(Flag):
    NONE = 0
    # Do not add a `concrete -> concrete` registration next to `abstract -> concrete`.
    DO_NOT_ADD_CONCRETE_TYPE_REGISTRATION = auto()


class ResolveOption(Flag):
    NONE = 0
    # Register the requested (or qualifier) type when nothing matches.
    REGISTER_BEFORE_RESOLVING = auto()
    # Return None (or an empty list) instead of raising ResolveError on a miss.
    NO_RESOLVE_EXCEPTION = auto()


@dataclass(frozen=True)
class PersistentOptions:
    """Options applied to every call made on a container until they are unset."""

    registration: RegistrationOption = RegistrationOption.NONE
    resolve: ResolveOption = ResolveOption.NONE
