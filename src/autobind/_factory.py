from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ._errors import InstanceCreationError, RegistrationError, type_name
from ._stack import ResolutionStack


if TYPE_CHECKING:
    from collections.abc import Callable


logger = logging.getLogger(__name__)


class Lifetime(Enum):
    SINGLETON = "singleton"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class InstanceFactoryParameters:
    instance_type: type | None = None
    lifetime: Lifetime = Lifetime.SINGLETON
    existing_instance: object | None = None
    factory_method: Callable[[], object] | None = None

    @property
    def creates_singleton(self) -> bool:
        # An existing instance is always handed out as-is.
        return self.existing_instance is not None or self.lifetime is Lifetime.SINGLETON


class InstanceFactory:
    """Produces instances for a registration according to its parameters.

    - existing instance: returned unconditionally
    - singleton: created once (factory method or constructor), then cached
    - transient: created on every call, never cached

    Instances are returned without autowiring; that is up to the caller.
    """

    def __init__(
        self,
        parameters: InstanceFactoryParameters | None = None,
        *,
        constructor: Callable[[type], object] | None = None,
        stack: ResolutionStack | None = None,
    ) -> None:
        self._parameters = parameters or InstanceFactoryParameters()
        self._constructor = constructor
        self._stack = stack if stack is not None else ResolutionStack()
        self._lock = threading.RLock()
        self._instance: object | None = None
        self._has_instance = False
        self._ready = threading.Event()
        self._creator: int | None = None
        self._used = False

    @property
    def parameters(self) -> InstanceFactoryParameters:
        return self._parameters

    @parameters.setter
    def parameters(self, parameters: InstanceFactoryParameters) -> None:
        with self._lock:
            if self._used:
                current = self._parameters.instance_type
                msg = (
                    f"Cannot change the scope of {type_name(current)} after it has been resolved. "
                    "Configure the registration before resolving it, or register it again."
                )
                raise RegistrationError(msg)
            self._parameters = parameters

    @property
    def stack(self) -> ResolutionStack:
        return self._stack

    def get_instance(self) -> object:
        instance, created = self.obtain_instance()
        if created:
            self.mark_ready()
        return instance

    def obtain_instance(self) -> tuple[object, bool]:
        """Return the instance together with whether this call constructed it.

        A newly created singleton is published at once so that its creating
        thread can re-enter it while autowiring. Other threads wait until
        `mark_ready` (or `discard_instance`) is called for it.
        """
        parameters = self._parameters

        if parameters.existing_instance is not None:
            self._used = True
            return parameters.existing_instance, False

        if not parameters.creates_singleton:
            instance = self._create(parameters)
            self._used = True
            return instance, True

        while True:
            if not self._has_instance:
                with self._lock:
                    # Another thread may have finished construction while we waited.
                    if not self._has_instance:
                        return self._create_singleton(parameters), True

            ready = self._ready
            if self._creator != threading.get_ident():
                ready.wait()
            if self._has_instance:
                return self._instance, False

    def _create_singleton(self, parameters: InstanceFactoryParameters) -> object:
        instance = self._create(parameters)
        self._ready = threading.Event()
        self._creator = threading.get_ident()
        self._instance = instance
        self._has_instance = True
        self._used = True
        return instance

    def mark_ready(self) -> None:
        """Release threads waiting for the singleton created by this thread."""
        self._creator = None
        self._ready.set()

    def discard_instance(self) -> None:
        """Drop a singleton whose setup failed, so the next call creates it again."""
        with self._lock:
            self._instance = None
            self._has_instance = False
            self._creator = None
            self._ready.set()

    def _create(self, parameters: InstanceFactoryParameters) -> object:
        factory_method = parameters.factory_method
        if factory_method is not None:
            label = getattr(factory_method, "__qualname__", repr(factory_method))
        else:
            label = type_name(parameters.instance_type)

        with self._stack.track(("create", self), label):
            if factory_method is not None:
                logger.debug("Creating instance of %s using factory method %s", type_name(parameters.instance_type), label)
                return factory_method()

            if parameters.instance_type is None:
                msg = "Instance type is not defined, cannot create instance without knowing its type."
                raise InstanceCreationError(msg)

            logger.debug("Creating new instance of type %s", label)
            if self._constructor is None:
                return parameters.instance_type()
            return self._constructor(parameters.instance_type)
