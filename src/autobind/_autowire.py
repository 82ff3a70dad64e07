"""Member autowiring.

Dependencies are declared on class-level annotations with ``Autowire``::

    class HybridCar:
        fuel_engine: Annotated[Engine, Autowire(FuelEngine)]
        electric_engine: Annotated[Engine | None, Autowire(ElectricEngine)]
        wheels: Annotated[list[Wheel], Autowire()]
        antenna: Annotated[Antenna, Autowire(new_instance=True)]

The qualifier of ``fuel_engine`` selects the ``FuelEngine`` registration among
all registrations of ``Engine``. ``electric_engine`` is optional because of
``| None`` (``Autowire(optional=True)`` is equivalent) and stays unset when
nothing is registered. ``wheels`` receives every registered ``Wheel``.
``antenna`` always gets a fresh instance, whatever the registered scope.
"""

from __future__ import annotations

import logging
import threading
import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any, NamedTuple, get_args, get_origin, get_type_hints

from ._errors import ResolveError, type_name
from ._factory import InstanceFactoryParameters, Lifetime
from ._options import ResolveOption
from ._typing import sequence_element, unwrap_optional


if TYPE_CHECKING:
    from ._container import Container


logger = logging.getLogger(__name__)


class Autowire(NamedTuple):
    """Marks an annotated class member as a dependency to be autowired.

    Use inside ``typing.Annotated``. The class itself (``Annotated[T, Autowire]``)
    is accepted as shorthand for ``Autowire()``.
    """

    qualifier: type | None = None
    optional: bool = False
    new_instance: bool = False


@dataclass(frozen=True)
class DependencyDeclaration:
    name: str
    target_type: Any
    qualifier: type | None = None
    optional: bool = False
    new_instance: bool = False
    # Set for members that receive every implementation of `target_type`.
    collection: type | None = None


_declarations: weakref.WeakKeyDictionary[type, tuple[DependencyDeclaration, ...]] = weakref.WeakKeyDictionary()
_declarations_lock = threading.Lock()


def dependency_declarations(cls: type) -> tuple[DependencyDeclaration, ...]:
    """Declared dependencies of `cls`, including those of its base classes.

    Computed on first use and cached per class.
    """
    with _declarations_lock:
        declarations = _declarations.get(cls)
    if declarations is not None:
        return declarations

    declarations = _collect_declarations(cls)
    with _declarations_lock:
        return _declarations.setdefault(cls, declarations)


def _collect_declarations(cls: type) -> tuple[DependencyDeclaration, ...]:
    try:
        # Walks the MRO from the base classes down, so inherited members come first.
        hints = get_type_hints(cls, include_extras=True)
    except NameError as exc:
        msg = f"Cannot evaluate the annotation '{exc.name}' declared on {type_name(cls)} or one of its bases"
        raise ResolveError(msg, cls) from exc
    except TypeError as exc:
        msg = f"Invalid annotation declared on {type_name(cls)} or one of its bases: {exc}"
        raise ResolveError(msg, cls) from exc

    declarations = []
    for name, hint in hints.items():
        if get_origin(hint) is not Annotated:
            continue

        marker = _find_marker(hint.__metadata__)
        if marker is None:
            continue

        target_type, optional = unwrap_optional(get_args(hint)[0])
        sequence = sequence_element(target_type)
        collection = None
        if sequence is not None:
            collection, target_type = sequence

        declarations.append(
            DependencyDeclaration(
                name=name,
                target_type=target_type,
                qualifier=marker.qualifier,
                optional=optional or marker.optional,
                new_instance=marker.new_instance,
                collection=collection,
            )
        )

    return tuple(declarations)


def _find_marker(metadata: tuple[Any, ...]) -> Autowire | None:
    for item in metadata:
        if item is Autowire:
            return Autowire()
        if isinstance(item, Autowire):
            return item
    return None


def _is_populated(instance: object, name: str) -> bool:
    value = getattr(instance, name, None)
    if value is None:
        return False
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    return True


class Autowirer:
    """Assigns resolved dependencies to the declared members of an instance.

    Members that already hold a value are left alone. This is what stops
    singleton cycles: the second visit finds the member populated.
    """

    def __init__(self, container: Container) -> None:
        self._container = container

    def autowire(self, instance: object) -> None:
        cls = type(instance)
        logger.debug("Autowiring members of [%s@%#x]", type_name(cls), id(instance))

        for declaration in dependency_declarations(cls):
            if not _is_populated(instance, declaration.name):
                self._autowire_member(instance, declaration)

    def _autowire_member(self, instance: object, declaration: DependencyDeclaration) -> None:
        if declaration.collection is not None:
            options = ResolveOption.NO_RESOLVE_EXCEPTION if declaration.optional else ResolveOption.NONE
            instances = self._container.resolve_all(declaration.target_type, options=options)
            setattr(instance, declaration.name, declaration.collection(instances))
            logger.debug(
                "Autowired all registered instances of super type %s to [%s@%#x].%s",
                type_name(declaration.target_type),
                type_name(type(instance)),
                id(instance),
                declaration.name,
            )
            return

        if declaration.new_instance:
            value = self._create_new_instance(declaration)
        else:
            options = ResolveOption.NO_RESOLVE_EXCEPTION if declaration.optional else ResolveOption.NONE
            value = self._container.resolve(declaration.target_type, declaration.qualifier, options=options)
            if value is None:
                # Optional and unregistered: leave the member unset.
                return

        setattr(instance, declaration.name, value)
        logger.debug(
            "Autowired instance [%s@%#x] to [%s@%#x].%s",
            type_name(type(value)),
            id(value),
            type_name(type(instance)),
            id(instance),
            declaration.name,
        )

    def _create_new_instance(self, declaration: DependencyDeclaration) -> object:
        instance_type = declaration.qualifier or declaration.target_type
        factory = self._container.create_instance_factory(InstanceFactoryParameters(instance_type, Lifetime.TRANSIENT))

        with factory.stack.track(("new_instance", instance_type), type_name(instance_type)):
            instance = factory.get_instance()
            self._container.autowire(instance)
        return instance
