"""Read-only, indexed view of LocalStorage objects."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from .types import LocalStorage, resource
from .util import key_func


class NotFoundError(LookupError):
    """The requested object does not exist."""

    def __init__(self, resource_name: str, name: str) -> None:
        super().__init__(f'{resource_name} "{name}" not found')
        self.resource = resource_name
        self.name = name


class LocalStorageLister:
    """LocalStorage objects keyed by name; returned objects are shared."""

    def __init__(self, items: Iterable[LocalStorage] = ()) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, LocalStorage] = {}
        for ls in items:
            self.add(ls)

    def add(self, ls: LocalStorage) -> None:
        """Insert or replace an object in the index."""
        key = key_func(ls)
        with self._lock:
            self._items[key] = ls

    def delete(self, name: str) -> None:
        """Drop an object from the index; absent names are ignored."""
        with self._lock:
            self._items.pop(name, None)

    def list(self) -> list[LocalStorage]:
        with self._lock:
            return list(self._items.values())

    def get(self, name: str) -> LocalStorage:
        with self._lock:
            try:
                return self._items[name]
            except KeyError:
                raise NotFoundError(resource("localstorage"), name) from None