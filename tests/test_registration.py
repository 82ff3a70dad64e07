import gc
import logging
import unittest
from typing import Annotated

import pytest

from autobind import (
    Autowire,
    Container,
    InstanceCreationError,
    InstanceFactory,
    InstanceFactoryParameters,
    InstantiationContext,
    Lifetime,
    Registration,
    RegistrationError,
)


class Dependency: ...


class Component:
    dependency: Annotated[Dependency, Autowire()]


class TestInstanceFactory(unittest.TestCase):
    def test_factory_without_strategy_raises(self):
        factory = InstanceFactory()
        with pytest.raises(InstanceCreationError):
            factory.get_instance()

    def test_singleton_factory_caches_instance(self):
        factory = InstanceFactory(InstanceFactoryParameters(Dependency, Lifetime.SINGLETON))
        instance, created = factory.obtain_instance()
        again, created_again = factory.obtain_instance()

        assert isinstance(instance, Dependency)
        assert created
        assert again is instance
        assert not created_again

    def test_transient_factory_creates_every_time(self):
        factory = InstanceFactory(InstanceFactoryParameters(Dependency, Lifetime.TRANSIENT))
        assert factory.get_instance() is not factory.get_instance()

    def test_existing_instance_is_returned_and_not_marked_created(self):
        existing = Dependency()
        factory = InstanceFactory(InstanceFactoryParameters(Dependency, Lifetime.TRANSIENT, existing_instance=existing))

        assert factory.parameters.creates_singleton
        assert factory.obtain_instance() == (existing, False)

    def test_factory_method_is_used(self):
        made = Dependency()
        factory = InstanceFactory(InstanceFactoryParameters(Dependency, factory_method=lambda: made))
        assert factory.get_instance() is made

    def test_parameters_cannot_change_after_first_instance(self):
        factory = InstanceFactory(InstanceFactoryParameters(Dependency))
        factory.parameters = InstanceFactoryParameters(Dependency, Lifetime.TRANSIENT)
        factory.get_instance()

        with pytest.raises(RegistrationError):
            factory.parameters = InstanceFactoryParameters(Dependency, Lifetime.SINGLETON)


class TestRegistration(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()
        self.cont.register(Dependency)

    def test_registration_properties(self):
        registration = self.cont.register(Component)

        assert registration.registered_type is Component
        assert registration.instance_type is Component
        assert registration.originating_container is self.cont
        assert registration.linked_registration is None

    def test_get_instance_autowires_new_instances(self):
        registration = self.cont.register(Component)
        component = registration.get_instance()
        assert isinstance(component.dependency, Dependency)

    def test_get_instance_without_autowiring(self):
        registration = self.cont.register(Component)
        component = registration.get_instance(InstantiationContext(autowire_instance=False))
        assert not hasattr(component, "dependency")

    def test_get_instance_rejects_wrong_context(self):
        registration = self.cont.register(Component)
        with pytest.raises(TypeError):
            registration.get_instance(object())

    def test_linked_registration_delegates(self):
        target = self.cont.register(Component)
        alias = Registration(Component, Component, None, self.cont).link_to(target)

        assert alias.get_instance() is target.get_instance()

    def test_concrete_registration_is_linked_to_abstract_registration(self):
        class Base: ...

        class Impl(Base): ...

        abstract = self.cont.register(Base, Impl)
        (concrete,) = self.cont._registrations[Impl]

        assert concrete.linked_registration is abstract
        assert concrete.instance_factory is abstract.instance_factory

    def test_registration_without_factory_raises(self):
        registration = Registration(Component, Component, None, self.cont)
        with pytest.raises(InstanceCreationError):
            registration.get_instance()

    def test_registration_outliving_container_cannot_autowire(self):
        container = Container()
        registration = container.register(Component)
        del container
        gc.collect()

        assert registration.originating_container is None
        with pytest.raises(RegistrationError):
            registration.get_instance()

    def test_registration_outliving_container_can_skip_autowiring(self):
        container = Container()
        registration = container.register(Component)
        del container
        gc.collect()

        component = registration.get_instance(InstantiationContext(autowire_instance=False))
        assert isinstance(component, Component)

    def test_scope_methods_are_fluent(self):
        registration = self.cont.register(Component)
        assert registration.new_instance() is registration
        assert registration.single_instance() is registration
        assert registration.existing_instance(Component()) is registration


def test_existing_instance_scope_is_logged(caplog):
    cont = Container()
    with caplog.at_level(logging.DEBUG, logger="autobind._registration"):
        cont.register(Component).existing_instance(Component())

    assert "as existing instance" in caplog.text


def test_discarded_singleton_is_created_again():
    factory = InstanceFactory(InstanceFactoryParameters(Dependency))
    first, created = factory.obtain_instance()
    assert created

    factory.discard_instance()
    second, created_again = factory.obtain_instance()
    factory.mark_ready()

    assert created_again
    assert second is not first
    assert factory.get_instance() is second
