"""Dependency injection container with autowiring.

Register concrete types under abstract types, resolve them by type (and
qualifier), and let the container populate annotated members and
constructor parameters of the object graph.

Exports:
- `Container`: registry of registrations; register / resolve / resolve_all / autowire.
- `Registration`: fluent scoping via `single_instance()`, `new_instance()`,
  `existing_instance(obj)`.
- `Autowire`: `typing.Annotated` marker declaring an autowired member.
- `ApplicationContext`, `component`, `prototype`, `register_by_type`:
  declarative groups of component factory methods.
- `RegistrationOption`, `ResolveOption`: option flags for registering and resolving.
"""

from ._autowire import Autowire, Autowirer, DependencyDeclaration, dependency_declarations
from ._constructor import ConstructorInjector
from ._container import Container
from ._context import ApplicationContext, component, prototype, register_by_type
from ._errors import ContainerError, InstanceCreationError, RegistrationError, ResolveError
from ._factory import InstanceFactory, InstanceFactoryParameters, Lifetime
from ._options import PersistentOptions, RegistrationOption, ResolveOption
from ._registration import InstantiationContext, Registration


__all__ = [
    "ApplicationContext",
    "Autowire",
    "Autowirer",
    "ConstructorInjector",
    "Container",
    "ContainerError",
    "DependencyDeclaration",
    "InstanceCreationError",
    "InstanceFactory",
    "InstanceFactoryParameters",
    "InstantiationContext",
    "Lifetime",
    "PersistentOptions",
    "Registration",
    "RegistrationError",
    "RegistrationOption",
    "ResolveError",
    "ResolveOption",
    "component",
    "dependency_declarations",
    "prototype",
    "register_by_type",
]
