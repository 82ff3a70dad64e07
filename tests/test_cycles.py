import threading
import unittest
from typing import Annotated

import pytest

from autobind import Autowire, Container, InstanceCreationError


class Husband:
    wife: Annotated["Wife", Autowire()]


class Wife:
    husband: Annotated[Husband, Autowire()]


class Ouroboros:
    ouroboros: Annotated["Ouroboros", Autowire()]


class Node:
    child: Annotated["Node", Autowire(new_instance=True)]


class Chicken:
    def __init__(self, egg: "Egg"):
        self.egg = egg


class Egg:
    def __init__(self, chicken: Chicken):
        self.chicken = chicken


class Lonely: ...


class TestSingletonCycles(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_singleton_cycle_is_fully_autowired(self):
        self.cont.register(Husband)
        self.cont.register(Wife)

        husband = self.cont.resolve(Husband)
        wife = self.cont.resolve(Wife)

        assert husband.wife is wife
        assert wife.husband is husband

    def test_singleton_self_reference(self):
        self.cont.register(Ouroboros)
        snake = self.cont.resolve(Ouroboros)
        assert snake.ouroboros is snake

    def test_existing_instance_cycle(self):
        husband = Husband()
        self.cont.register_instance(Husband, husband)
        self.cont.register(Wife)

        self.cont.autowire(husband)
        assert husband.wife.husband is husband


class TestNewInstanceCycles(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_new_instance_cycle_raises(self):
        self.cont.register(Husband).new_instance()
        self.cont.register(Wife).new_instance()

        with pytest.raises(InstanceCreationError) as ctx:
            self.cont.resolve(Husband)
        assert "Circular dependency detected: Husband -> Wife -> Husband" in str(ctx.value)

    def test_new_instance_on_one_side_raises(self):
        self.cont.register(Husband).new_instance()
        self.cont.register(Wife)

        with pytest.raises(InstanceCreationError):
            self.cont.resolve(Husband)

    def test_new_instance_self_reference_raises(self):
        self.cont.register(Ouroboros).new_instance()
        with pytest.raises(InstanceCreationError):
            self.cont.resolve(Ouroboros)

    def test_assign_new_instance_self_reference_raises(self):
        with pytest.raises(InstanceCreationError):
            self.cont.autowire(Node())

    def test_container_is_usable_after_cycle_failure(self):
        self.cont.register(Ouroboros).new_instance()
        self.cont.register(Lonely)

        with pytest.raises(InstanceCreationError):
            self.cont.resolve(Ouroboros)

        assert isinstance(self.cont.resolve(Lonely), Lonely)


class TestConstructorCycles(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_constructor_cycle_between_singletons_raises(self):
        self.cont.register(Chicken)
        self.cont.register(Egg)

        with pytest.raises(InstanceCreationError) as ctx:
            self.cont.resolve(Chicken)
        assert "Circular dependency detected: Chicken -> Egg -> Chicken" in str(ctx.value)

    def test_constructor_cycle_between_new_instances_raises(self):
        self.cont.register(Chicken).new_instance()
        self.cont.register(Egg).new_instance()

        with pytest.raises(InstanceCreationError):
            self.cont.resolve(Egg)

    def test_factory_method_resolving_itself_raises(self):
        self.cont.register(Lonely, factory=lambda: self.cont.resolve(Lonely))

        with pytest.raises(InstanceCreationError):
            self.cont.resolve(Lonely)

    def test_cycle_detection_is_per_thread(self):
        self.cont.register(Chicken)
        self.cont.register(Egg)
        errors = []

        def resolve():
            try:
                self.cont.resolve(Egg)
            except InstanceCreationError as e:
                errors.append(e)

        threads = [threading.Thread(target=resolve) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == 4
