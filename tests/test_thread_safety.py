import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Annotated

import pytest

from autobind import Autowire, Container


class SlowService:
    created = 0
    created_lock = threading.Lock()

    def __init__(self):
        time.sleep(0.01)
        with SlowService.created_lock:
            SlowService.created += 1


class Consumer:
    service: Annotated[SlowService, Autowire()]


def test_concurrent_first_resolution_creates_one_singleton():
    SlowService.created = 0
    c = Container()
    c.register(SlowService)

    barrier = threading.Barrier(16)

    def resolve():
        barrier.wait()
        return c.resolve(SlowService)

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(lambda _: resolve(), range(16)))

    assert SlowService.created == 1
    assert all(r is results[0] for r in results)


def test_concurrent_transient_resolution_creates_distinct_instances():
    SlowService.created = 0
    c = Container()
    c.register(SlowService).new_instance()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: c.resolve(SlowService), range(8)))

    assert SlowService.created == 8
    assert len({id(r) for r in results}) == 8


def test_concurrent_autowiring_shares_singleton():
    SlowService.created = 0
    c = Container()
    c.register(SlowService)
    c.register(Consumer).new_instance()

    with ThreadPoolExecutor(max_workers=8) as pool:
        consumers = list(pool.map(lambda _: c.resolve(Consumer), range(8)))

    assert SlowService.created == 1
    assert all(consumer.service is consumers[0].service for consumer in consumers)


def test_concurrent_registration_and_resolution():
    c = Container()

    def register_and_resolve(i):
        cls = type(f"Service{i}", (), {})
        c.register(cls)
        return isinstance(c.resolve(cls), cls)

    with ThreadPoolExecutor(max_workers=8) as pool:
        assert all(pool.map(register_and_resolve, range(50)))


class SlowDependency:
    started = threading.Event()

    def __init__(self):
        SlowDependency.started.set()
        time.sleep(0.2)


class WiredService:
    dependency: Annotated[SlowDependency, Autowire()]


def test_concurrent_resolution_waits_for_singleton_autowiring():
    SlowDependency.started.clear()
    c = Container()
    c.register(WiredService)
    c.register(SlowDependency).new_instance()

    with ThreadPoolExecutor(max_workers=1) as pool:
        first = pool.submit(c.resolve, WiredService)
        assert SlowDependency.started.wait(timeout=5)

        # The first thread is still autowiring the singleton.
        second = c.resolve(WiredService)
        assert second.dependency is not None
        assert second is first.result()


class FailingDependency:
    def __init__(self):
        msg = "boom"
        raise RuntimeError(msg)


class ServiceWithFailingDependency:
    dependency: Annotated[FailingDependency, Autowire()]


def test_singleton_is_created_again_after_failed_autowiring():
    c = Container()
    c.register(ServiceWithFailingDependency)
    c.register(FailingDependency)

    with pytest.raises(RuntimeError):
        c.resolve(ServiceWithFailingDependency)

    c.remove_registration(FailingDependency)
    c.register_instance(FailingDependency, object.__new__(FailingDependency))

    service = c.resolve(ServiceWithFailingDependency)
    assert isinstance(service.dependency, FailingDependency)
