from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from ._errors import InstanceCreationError


if TYPE_CHECKING:
    from collections.abc import Hashable, Iterator


class ResolutionStack(threading.local):
    """Per-thread stack of the creations and autowirings currently in progress.

    Entering a key that is already on the stack means the object graph loops
    back onto something that is still being built.
    """

    def __init__(self) -> None:
        self._keys: list[Hashable] = []
        self._labels: list[str] = []

    @contextmanager
    def track(self, key: Hashable, label: str) -> Iterator[None]:
        if key in self._keys:
            chain = " -> ".join(_collapse([*self._labels, label]))
            msg = f"Circular dependency detected: {chain}"
            raise InstanceCreationError(msg)

        self._keys.append(key)
        self._labels.append(label)
        try:
            yield
        finally:
            self._keys.pop()
            self._labels.pop()


def _collapse(labels: list[str]) -> list[str]:
    # Creating and then constructing or autowiring the same type pushes its label twice in a row.
    collapsed: list[str] = []
    for label in labels:
        if not collapsed or collapsed[-1] != label:
            collapsed.append(label)
    return collapsed
