"""Application contexts: declarative groups of component factory methods.

Example::

    class AppContext(ApplicationContext):
        settings: Annotated[Settings, Autowire()]

        @component
        def database(self) -> Database:
            return Database(self.settings.dsn)

        @component
        @register_by_type(Engine)
        def engine(self) -> FuelEngine:
            return FuelEngine()

        @component
        @prototype
        def request(self) -> Request:
            return Request()

    container.register_context(AppContext)
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar, get_type_hints

from ._errors import RegistrationError, type_name
from ._factory import Lifetime


if TYPE_CHECKING:
    from collections.abc import Callable

    from ._container import Container

    F = TypeVar("F", bound=Callable[..., Any])

_MARKER_ATTRIBUTE = "__autobind_component__"


class ApplicationContext:
    def register_dependencies(self, container: Container) -> None:
        """Register dependencies that are not expressed as component factory methods.

        Called by `Container.register_context` before the components are registered.
        """


@dataclass
class ComponentMarker:
    is_component: bool = False
    prototype: bool = False
    register_by: type | None = None


@dataclass(frozen=True)
class ComponentFactory:
    method: Callable[[], object]
    instance_type: type
    lifetime: Lifetime
    register_by: type | None = None


def _marker(function: Any) -> ComponentMarker:
    marker = getattr(function, _MARKER_ATTRIBUTE, None)
    if marker is None:
        marker = ComponentMarker()
        setattr(function, _MARKER_ATTRIBUTE, marker)
    return marker


def component(function: F) -> F:
    """Mark a public context method as a factory method producing a component."""
    _marker(function).is_component = True
    return function


def prototype(function: F) -> F:
    """Give the component a new-instance scope: the factory method runs on every resolve."""
    _marker(function).prototype = True
    return function


def register_by_type(registered_type: type) -> Callable[[F], F]:
    """Register the component by the given super type instead of its own type."""

    def decorator(function: F) -> F:
        _marker(function).register_by = registered_type
        return function

    return decorator


def component_factories(context: ApplicationContext) -> list[ComponentFactory]:
    """Collect the component factory methods of a context, in declaration order."""
    members: dict[str, Any] = {}
    for cls in reversed(type(context).__mro__):
        members.update(vars(cls))

    factories = []
    for name, member in members.items():
        if name.startswith("_") or not inspect.isfunction(member):
            continue

        marker = getattr(member, _MARKER_ATTRIBUTE, None)
        if marker is None or not marker.is_component:
            continue

        instance_type = get_type_hints(member).get("return")
        if not inspect.isclass(instance_type):
            msg = (
                f"Component factory method {type_name(type(context))}.{name} must declare the class it returns "
                f"as its return annotation, got {instance_type!r}"
            )
            raise RegistrationError(msg)

        factories.append(
            ComponentFactory(
                method=getattr(context, name),
                instance_type=instance_type,
                lifetime=Lifetime.TRANSIENT if marker.prototype else Lifetime.SINGLETON,
                register_by=marker.register_by,
            )
        )

    return factories
