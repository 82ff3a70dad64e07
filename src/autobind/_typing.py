from __future__ import annotations

import collections.abc
import inspect
import types
import typing
from typing import Any, Protocol, Union, cast, get_args, get_origin


_SEQUENCE_ORIGINS: dict[Any, type] = {
    list: list,
    tuple: tuple,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
}


def is_protocol(tp: object) -> bool:
    """Detect whether 'tp' is a typing.Protocol subclass (safe)."""
    if hasattr(typing, "is_protocol"):
        # https://docs.python.org/3/library/typing.html#typing.is_protocol
        return inspect.isclass(tp) and typing.is_protocol(tp)
    return inspect.isclass(tp) and issubclass(tp, cast("type", Protocol))


_NON_INJECTABLE_MODULES = frozenset({"builtins", "typing", "inspect"})


def is_injectable_class(tp: object) -> bool:
    """True for classes the container can look up.

    Builtins like int or str, `typing.Any` and the missing-annotation marker are not.
    """
    if tp is Any or tp is inspect.Parameter.empty:
        return False
    return inspect.isclass(tp) and getattr(tp, "__module__", "") not in _NON_INJECTABLE_MODULES


def unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """Split `X | None` (or `Optional[X]`) into `(X, True)`; other types come back as `(tp, False)`."""
    if get_origin(tp) in (Union, types.UnionType):
        args = [arg for arg in get_args(tp) if arg is not type(None)]
        if len(args) == 1 and len(get_args(tp)) == 2:  # noqa: PLR2004
            return args[0], True
    return tp, False


def sequence_element(tp: Any) -> tuple[type, Any] | None:
    """Return `(collection_type, element_type)` for `list[E]`, `tuple[E, ...]` and `Sequence[E]`."""
    collection = _SEQUENCE_ORIGINS.get(get_origin(tp))
    if collection is None:
        return None

    args = get_args(tp)
    if collection is tuple:
        if len(args) != 2 or args[1] is not Ellipsis:  # noqa: PLR2004
            return None
    elif len(args) != 1:
        return None

    return collection, args[0]
