from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from ._errors import InstanceCreationError, RegistrationError, type_name
from ._factory import Lifetime


if TYPE_CHECKING:
    from collections.abc import Iterable

    from ._container import Container
    from ._factory import InstanceFactory


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstantiationContext:
    """Per-resolution switches. Bootstrap code may disable autowiring of the returned instance."""

    autowire_instance: bool = True


class Registration:
    """Binds a registered (abstract) type to a concrete type and the factory that creates it.

    A registration linked to another one is an alias: it resolves through the
    linked registration and never uses its own factory.
    """

    def __init__(
        self,
        registered_type: type,
        instance_type: type,
        instance_factory: InstanceFactory | None,
        originating_container: Container | None,
    ) -> None:
        self._registered_type = registered_type
        self._instance_type = instance_type
        self._instance_factory = instance_factory
        self._container_ref = weakref.ref(originating_container) if originating_container is not None else None
        self._linked_registration: Registration | None = None

    @property
    def registered_type(self) -> type:
        return self._registered_type

    @property
    def instance_type(self) -> type:
        return self._instance_type

    @property
    def instance_factory(self) -> InstanceFactory | None:
        return self._instance_factory

    @property
    def originating_container(self) -> Container | None:
        return self._container_ref() if self._container_ref is not None else None

    @property
    def linked_registration(self) -> Registration | None:
        return self._linked_registration

    def link_to(self, registration: Registration) -> Registration:
        self._linked_registration = registration
        return self

    def get_instance(self, context: InstantiationContext | None = None) -> object:
        if self._linked_registration is not None:
            return self._linked_registration.get_instance(context)

        if context is None:
            context = InstantiationContext()
        elif not isinstance(context, InstantiationContext):
            msg = f"Expected an InstantiationContext, got {type(context).__name__}"
            raise TypeError(msg)

        factory = self._instance_factory
        if factory is None:
            msg = f"No instance factory defined for registration of type {type_name(self._registered_type)}"
            raise InstanceCreationError(msg)

        if factory.parameters.creates_singleton:
            instance, created = factory.obtain_instance()
            if created:
                try:
                    if context.autowire_instance:
                        self._autowire(instance)
                except BaseException:
                    factory.discard_instance()
                    raise
                factory.mark_ready()
            return instance

        # A fresh instance per call: a cycle through this registration would never end.
        with factory.stack.track(("autowire", factory), type_name(self._instance_type)):
            instance, _ = factory.obtain_instance()
            if context.autowire_instance:
                self._autowire(instance)
        return instance

    def _autowire(self, instance: object) -> None:
        container = self.originating_container
        if container is None:
            msg = (
                f"The originating container of the registration for {type_name(self._registered_type)} "
                "no longer exists. There is no way to resolve autowire dependencies."
            )
            raise RegistrationError(msg)
        container.autowire(instance)

    def _set_parameters(self, **changes: object) -> Registration:
        factory = self._target().instance_factory
        if factory is None:
            msg = f"No instance factory defined for registration of type {type_name(self._registered_type)}"
            raise RegistrationError(msg)
        factory.parameters = replace(factory.parameters, **changes)  # type: ignore[arg-type]
        scope = "existing instance" if factory.parameters.existing_instance is not None else factory.parameters.lifetime.value
        logger.debug("Scoped %r as %s", self, scope)
        return self

    def _target(self) -> Registration:
        registration = self
        while registration._linked_registration is not None:  # noqa: SLF001
            registration = registration._linked_registration  # noqa: SLF001
        return registration

    def single_instance(self) -> Registration:
        """Scope the registration to return the same instance every time it is resolved."""
        return self._set_parameters(lifetime=Lifetime.SINGLETON, existing_instance=None)

    def new_instance(self) -> Registration:
        """Scope the registration to return a new instance every time it is resolved."""
        return self._set_parameters(lifetime=Lifetime.TRANSIENT, existing_instance=None)

    def existing_instance(self, instance: object) -> Registration:
        """Scope the registration to return the given instance every time it is resolved."""
        if instance is None:
            msg = "An existing instance registration needs an instance, got None."
            raise ValueError(msg)
        return self._set_parameters(lifetime=Lifetime.SINGLETON, existing_instance=instance)

    def __repr__(self) -> str:
        return f"Registration({type_name(self._registered_type)} -> {type_name(self._instance_type)})"


def concrete_type_list(registrations: Iterable[Registration]) -> str:
    return ", ".join(type_name(registration.instance_type) for registration in registrations)
