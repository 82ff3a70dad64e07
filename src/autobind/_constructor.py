from __future__ import annotations

import inspect
import logging
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, get_overloads, get_type_hints

from ._errors import InstanceCreationError, RegistrationError, type_name
from ._options import ResolveOption
from ._typing import is_injectable_class, is_protocol, sequence_element, unwrap_optional


if TYPE_CHECKING:
    from collections.abc import Callable

    from ._container import Container
    from ._stack import ResolutionStack


logger = logging.getLogger(__name__)

_INJECTABLE_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
    inspect.Parameter.KEYWORD_ONLY,
)


@dataclass(frozen=True)
class InjectableParameter:
    name: str
    kind: inspect._ParameterKind
    annotation: Any
    optional: bool = False
    collection: type | None = None


@dataclass(frozen=True)
class InjectableConstructor:
    function: Callable[..., None]
    parameters: tuple[InjectableParameter, ...]


class ConstructorInjector:
    """Creates instances, supplying constructor arguments from the container.

    The declared `__init__` overloads are the candidate constructors, in
    declaration order (a class without overloads has just its `__init__`).
    If any of them takes no arguments the class is instantiated plainly.
    Otherwise the first candidate whose every required parameter is
    resolvable is called with the resolved arguments.
    """

    def __init__(self, container: Container, stack: ResolutionStack) -> None:
        self._container_ref = weakref.ref(container)
        self._stack = stack

    def construct(self, cls: type) -> object:
        if inspect.isabstract(cls) or is_protocol(cls):
            msg = f"Cannot create an instance of abstract type {type_name(cls)}. Register a concrete type for it."
            raise InstanceCreationError(msg)

        with self._stack.track(("construct", cls), type_name(cls)):
            constructor = select_constructor(cls)
            if constructor is None:
                return cls()

            logger.debug("Injecting constructor %s of %s", constructor.function.__qualname__, type_name(cls))
            args, kwargs = self._resolve_arguments(constructor)
            return cls(*args, **kwargs)

    def _resolve_arguments(self, constructor: InjectableConstructor) -> tuple[list[Any], dict[str, Any]]:
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for parameter in constructor.parameters:
            value = self._resolve_parameter(parameter)
            if parameter.kind is inspect.Parameter.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[parameter.name] = value

        return args, kwargs

    def _resolve_parameter(self, parameter: InjectableParameter) -> Any:
        container = self._container_ref()
        if container is None:
            msg = f"Cannot resolve constructor parameter '{parameter.name}': the container no longer exists."
            raise RegistrationError(msg)

        options = ResolveOption.NO_RESOLVE_EXCEPTION if parameter.optional else ResolveOption.NONE
        if parameter.collection is not None:
            return parameter.collection(container.resolve_all(parameter.annotation, options=options))
        return container.resolve(parameter.annotation, options=options)


def select_constructor(cls: type) -> InjectableConstructor | None:
    """Pick the constructor to inject, or None when the class should be instantiated without arguments."""
    init = cls.__init__
    if init is object.__init__ or not inspect.isfunction(init):
        return None

    candidates = list(get_overloads(init)) or [init]
    analysed = [_analyse(candidate, cls) for candidate in candidates]

    if any(parameters == () for parameters in analysed):
        return None

    for candidate, parameters in zip(candidates, analysed, strict=True):
        if parameters is not None:
            return InjectableConstructor(function=candidate, parameters=parameters)

    msg = (
        f"Cannot create an instance of type {type_name(cls)}: no constructor found whose parameters "
        "are all injectable types. Annotate every required parameter with a registered class."
    )
    raise InstanceCreationError(msg)


def _analyse(function: Callable[..., None], cls: type) -> tuple[InjectableParameter, ...] | None:
    """Injectable parameters of one constructor, or None when some required parameter is not resolvable."""
    try:
        signature = inspect.signature(function)
    except (TypeError, ValueError):
        return None

    hints = _get_init_type_hints(function, cls)
    parameters: list[InjectableParameter] = []

    # Skip `self`
    for p in list(signature.parameters.values())[1:]:
        if p.kind not in _INJECTABLE_KINDS or p.default is not inspect.Parameter.empty:
            continue

        if p.name not in hints:
            return None

        annotation, optional = unwrap_optional(hints[p.name])
        sequence = sequence_element(annotation)
        if sequence is not None:
            collection, annotation = sequence
        else:
            collection = None

        if not is_injectable_class(annotation):
            return None

        parameters.append(
            InjectableParameter(
                name=p.name,
                kind=p.kind,
                annotation=annotation,
                optional=optional,
                collection=collection,
            )
        )

    return tuple(parameters)


def _get_init_type_hints(function: Callable[..., None], cls: type) -> dict[str, Any]:
    try:
        hints = get_type_hints(function)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)
        hints = {}

    return hints
