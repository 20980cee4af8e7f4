import itertools
from typing import Callable, Dict, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

Listener = Callable[[T], None]


class Subscription:
    """Disposer handle returned by `ListenerRegistry.subscribe`.

    Calling it (or `close`) removes the listener. Repeated calls are no-ops.
    """

    def __init__(self, registry: "ListenerRegistry", key: int) -> None:
        self._registry = registry
        self._key = key
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        if self._active:
            self._registry._remove(self._key)
            self._active = False

    def __call__(self) -> None:
        self.close()


class ListenerRegistry(Generic[T]):
    """Arena of listeners keyed by subscription handle.

    Listeners are called synchronously in registration order. A listener that
    raises is logged and skipped, the remaining listeners still receive the value.
    Listeners added or removed during an emit take effect from the next emit.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: Dict[int, Listener] = {}
        self._keys = itertools.count()

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, callback: Listener) -> Subscription:
        """Register a listener.

        Parameters
        ----------
        callback : Callable[[T], None]
            Function called with every emitted value.

        Returns
        -------
        Subscription
            Handle that unregisters this listener only.
        """
        key = next(self._keys)
        self._listeners[key] = callback
        return Subscription(self, key)

    def emit(self, value: T) -> None:
        """Deliver a value to every registered listener."""
        for callback in list(self._listeners.values()):
            try:
                callback(value)
            except Exception:
                logger.exception(f"🟠 {self.name} listener {callback!r} failed")

    def _remove(self, key: int) -> None:
        self._listeners.pop(key, None)
