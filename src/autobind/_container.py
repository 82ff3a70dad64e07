from __future__ import annotations

import inspect
import logging
import threading
from dataclasses import replace
from typing import TYPE_CHECKING, Any, TypeVar, overload

from ._autowire import Autowirer
from ._constructor import ConstructorInjector
from ._context import ApplicationContext, component_factories
from ._errors import ResolveError, type_name
from ._factory import InstanceFactory, InstanceFactoryParameters, Lifetime
from ._options import PersistentOptions, RegistrationOption, ResolveOption
from ._registration import Registration, concrete_type_list
from ._stack import ResolutionStack
from ._typing import is_protocol


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")
C = TypeVar("C", bound=ApplicationContext)


class Container:
    """Dependency container.

    - register concrete types under abstract types, or factory methods
    - resolve single instances (optionally by qualifier) or all implementations
    - scopes: singleton / new instance / existing instance
    - autowire annotated members and inject constructors

    The container may be shared between threads. Only registry updates and
    singleton creation are locked, so autowiring can re-enter the container.
    """

    def __init__(self) -> None:
        self._registrations: dict[type, list[Registration]] = {}
        self._lock = threading.RLock()
        self._options = PersistentOptions()
        self._stack = ResolutionStack()
        self._constructor = ConstructorInjector(self, self._stack)
        self._autowirer = Autowirer(self)

    @property
    def persistent_options(self) -> PersistentOptions:
        return self._options

    def set_persistent_registration_options(self, options: RegistrationOption) -> None:
        """Apply `options` to every following `register` call. Replaces previously set options."""
        self._options = replace(self._options, registration=options)

    def unset_persistent_registration_options(self) -> None:
        self._options = replace(self._options, registration=RegistrationOption.NONE)

    def set_persistent_resolve_options(self, options: ResolveOption) -> None:
        """Apply `options` to every following `resolve`/`resolve_all` call. Replaces previously set options."""
        self._options = replace(self._options, resolve=options)

    def unset_persistent_resolve_options(self) -> None:
        self._options = replace(self._options, resolve=ResolveOption.NONE)

    def create_instance_factory(self, parameters: InstanceFactoryParameters) -> InstanceFactory:
        """Create a factory that constructs through this container's constructor injection."""
        return InstanceFactory(parameters, constructor=self._constructor.construct, stack=self._stack)

    @overload
    def register(
        self,
        abstract_type: type[T],
        concrete_type: type[T] | None = ...,
        *,
        factory: None = ...,
        lifetime: Lifetime = ...,
        options: RegistrationOption = ...,
    ) -> Registration: ...

    @overload
    def register(
        self,
        abstract_type: type[T],
        concrete_type: type[T] | None = ...,
        *,
        factory: Callable[[], T],
        lifetime: Lifetime = ...,
        options: RegistrationOption = ...,
    ) -> Registration: ...

    def register(
        self,
        abstract_type: type,
        concrete_type: type | None = None,
        *,
        factory: Callable[[], Any] | None = None,
        lifetime: Lifetime = Lifetime.SINGLETON,
        options: RegistrationOption = RegistrationOption.NONE,
    ) -> Registration:
        """Register a concrete type under an abstract type.

        Example:
          container.register(Engine, FuelEngine)
          container.register(Antenna).new_instance()
          container.register(Database, factory=lambda: Database("sqlite://"))

        Registering the same pair again replaces the previous registration. Unless
        `DO_NOT_ADD_CONCRETE_TYPE_REGISTRATION` is given, the concrete type is also
        registered under itself, sharing the factory, so it resolves to the same
        singleton.
        """
        if concrete_type is None:
            concrete_type = abstract_type

        if not inspect.isclass(abstract_type) or not inspect.isclass(concrete_type):
            msg = f"Only classes can be registered, got {abstract_type!r} -> {concrete_type!r}"
            raise TypeError(msg)

        self._validate_impl(cls=abstract_type, impl=concrete_type)
        options |= self._options.registration

        instance_factory = self.create_instance_factory(
            InstanceFactoryParameters(concrete_type, lifetime, factory_method=factory),
        )
        registration = Registration(abstract_type, concrete_type, instance_factory, self)

        with self._lock:
            self._put(registration)
            if (
                abstract_type is not concrete_type
                and RegistrationOption.DO_NOT_ADD_CONCRETE_TYPE_REGISTRATION not in options
            ):
                concrete_registration = Registration(concrete_type, concrete_type, instance_factory, self)
                self._put(concrete_registration.link_to(registration))
            else:
                self._drop_link(concrete_type, abstract_type)

        logger.debug("Registered %s as %s (%s)", type_name(concrete_type), type_name(abstract_type), lifetime.value)
        return registration

    def register_instance(self, abstract_type: type[T], instance: T) -> Registration:
        """Register a pre-built instance (always singleton)."""
        return self.register(abstract_type, type(instance)).existing_instance(instance)

    def _put(self, registration: Registration) -> None:
        # Copy on write: readers take the list without holding the lock.
        candidates = list(self._registrations.get(registration.registered_type, ()))
        for index, existing in enumerate(candidates):
            if existing.instance_type is registration.instance_type:
                candidates[index] = registration
                break
        else:
            candidates.append(registration)
        self._registrations[registration.registered_type] = candidates

    def _drop_link(self, concrete_type: type, abstract_type: type) -> None:
        # A concrete-type alias left behind by an earlier registration of the same pair.
        candidates = self._registrations.get(concrete_type, [])
        kept = [
            candidate
            for candidate in candidates
            if candidate.linked_registration is None
            or candidate.linked_registration.registered_type is not abstract_type
        ]
        if len(kept) == len(candidates):
            return
        if kept:
            self._registrations[concrete_type] = kept
        else:
            del self._registrations[concrete_type]

    def _candidates(self, resolve_type: type) -> list[Registration]:
        with self._lock:
            return self._registrations.get(resolve_type, [])

    def remove_registration(self, abstract_type: type) -> None:
        """Remove every registration of `abstract_type`. Concrete-type entries are left in place."""
        with self._lock:
            self._registrations.pop(abstract_type, None)

    def clear_all_registrations(self) -> None:
        with self._lock:
            self._registrations.clear()

    def is_registered(self, abstract_type: type) -> bool:
        return bool(self._candidates(abstract_type))

    def resolve(
        self,
        resolve_type: type[T],
        qualifier: type | None = None,
        *,
        options: ResolveOption = ResolveOption.NONE,
    ) -> T:
        """Resolve an instance of `resolve_type`.

        - Without a qualifier exactly one registration must exist.
        - With a qualifier the registration whose concrete type is the qualifier is used.
        - Freshly created instances are autowired before they are returned.

        With `NO_RESOLVE_EXCEPTION` a miss returns None instead of raising `ResolveError`.
        """
        options |= self._options.resolve
        qualifier_type = qualifier if qualifier is not None else resolve_type

        registration = self._find_registration(resolve_type, qualifier_type, options)
        if registration is None:
            return None  # type: ignore[return-value]

        instance = registration.get_instance()
        self._check_instance(resolve_type, registration, instance)
        return instance  # type: ignore[return-value]

    def _find_registration(
        self,
        resolve_type: type,
        qualifier_type: type,
        options: ResolveOption,
    ) -> Registration | None:
        candidates = self._candidates(resolve_type)

        if not candidates and ResolveOption.REGISTER_BEFORE_RESOLVING in options:
            return self._register_on_miss(resolve_type, qualifier_type)

        if not candidates:
            if ResolveOption.NO_RESOLVE_EXCEPTION in options:
                return None
            msg = "Type not registered."
            raise ResolveError(msg, resolve_type)

        if qualifier_type is resolve_type:
            if len(candidates) > 1:
                msg = f"Multiple qualified candidates available: {concrete_type_list(candidates)}. Please use a qualifier."
                raise ResolveError(msg, resolve_type)
            return candidates[0]

        for candidate in candidates:
            if candidate.instance_type is qualifier_type:
                return candidate

        if ResolveOption.REGISTER_BEFORE_RESOLVING in options:
            return self._register_on_miss(resolve_type, qualifier_type)

        if ResolveOption.NO_RESOLVE_EXCEPTION in options:
            return None
        msg = f"Qualifier type {type_name(qualifier_type)} is not registered."
        raise ResolveError(msg, resolve_type)

    def _register_on_miss(self, resolve_type: type, qualifier_type: type) -> Registration:
        with self._lock:
            # Another thread may have registered it in the meantime.
            for candidate in self._registrations.get(resolve_type, ()):
                if candidate.instance_type is qualifier_type:
                    return candidate
            return self.register(resolve_type, qualifier_type)

    def resolve_all(self, resolve_type: type[T], *, options: ResolveOption = ResolveOption.NONE) -> list[T]:
        """Resolve one instance of every concrete type registered under `resolve_type`.

        With `NO_RESOLVE_EXCEPTION` an unregistered type gives an empty list.
        """
        options |= self._options.resolve
        candidates = self._candidates(resolve_type)

        if not candidates:
            if ResolveOption.NO_RESOLVE_EXCEPTION in options:
                return []
            msg = "Type not registered."
            raise ResolveError(msg, resolve_type)

        instances = []
        for registration in candidates:
            instance = registration.get_instance()
            self._check_instance(resolve_type, registration, instance)
            instances.append(instance)
        return instances

    def autowire(self, instance: object) -> None:
        """Autowire the annotated members of `instance` using this container."""
        self._autowirer.autowire(instance)

    @overload
    def register_context(self, context: type[C]) -> C: ...

    @overload
    def register_context(self, context: C) -> C: ...

    def register_context(self, context: type[C] | C) -> C:
        """Register the components of an application context, then autowire the context.

        Each `@component` method becomes a factory-method registration of its
        return type (or of the `@register_by_type` super type): singleton by
        default, new instance when marked `@prototype`.
        """
        if inspect.isclass(context):
            context = context()
        if not isinstance(context, ApplicationContext):
            msg = f"Expected an ApplicationContext, got {type(context).__name__}"
            raise TypeError(msg)

        context.register_dependencies(self)

        for factory in component_factories(context):
            self.register(
                factory.register_by or factory.instance_type,
                factory.instance_type,
                factory=factory.method,
                lifetime=factory.lifetime,
            )

        self.register(ApplicationContext, type(context)).existing_instance(context)
        self.autowire(context)
        return context

    def _check_instance(self, resolve_type: type, registration: Registration, instance: object) -> None:
        # Factory methods are not checked at register time; constructed types were.
        if instance is None or is_protocol(resolve_type) or isinstance(instance, resolve_type):
            return
        msg = f"Resolved instance {type(instance).__name__} is not an instance of {type_name(resolve_type)}"
        if registration.instance_factory is not None and registration.instance_factory.parameters.factory_method:
            msg += " (check the return value of its factory method)"
        raise TypeError(msg)

    def _validate_impl(self, cls: type, impl: type) -> None:
        """Validate that 'impl' implements 'cls'.

        - For normal classes/ABCs: require issubclass(impl, cls).
        - For Protocols: check nominal via MRO; otherwise require every protocol member.
        """
        if not is_protocol(cls):
            if not issubclass(impl, cls):
                msg = f"Implementation {impl.__name__} must be a subclass of {cls.__name__}"
                raise TypeError(msg)
            return

        if cls in getattr(impl, "__mro__", ()):
            return

        missing = [
            name
            for name, member in cls.__dict__.items()
            if not name.startswith("_") and inspect.isfunction(member) and not hasattr(impl, name)
        ]
        if missing:
            msg = (
                f"Implementation {impl.__name__} does not structurally conform to protocol "
                f"{cls.__name__}: missing members: {', '.join(missing)}"
            )
            raise TypeError(msg)
