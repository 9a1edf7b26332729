"""In-memory clients for LocalStorage objects and cluster nodes."""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .lister import NotFoundError
from .types import LocalStorage, LocalStorageList, resource

_LOCALSTORAGES = resource("localstorages")
_NODES = "nodes"


class AlreadyExistsError(Exception):
    """An object with the same name already exists."""

    def __init__(self, resource_name: str, name: str) -> None:
        super().__init__(f'{resource_name} "{name}" already exists')
        self.resource = resource_name
        self.name = name


@dataclass
class Node:
    """A cluster node with its labels and annotations."""

    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


def _matches(labels: Mapping[str, str], selector: Mapping[str, str] | None) -> bool:
    if not selector:
        return True
    return all(labels.get(key) == value for key, value in selector.items())


class InMemoryLocalStorageClient:
    """Stores LocalStorage objects; every call works on copies."""

    def __init__(self, objects: Iterable[LocalStorage] = ()) -> None:
        self._lock = threading.Lock()
        self._objects: dict[str, LocalStorage] = {}
        for ls in objects:
            self.create(ls)

    def create(self, ls: LocalStorage) -> LocalStorage:
        name = ls.metadata.name
        with self._lock:
            if name in self._objects:
                raise AlreadyExistsError(_LOCALSTORAGES, name)
            self._objects[name] = ls.deep_copy()
            return ls.deep_copy()

    def update(self, ls: LocalStorage) -> LocalStorage:
        """Replace the stored object with the same name."""
        name = ls.metadata.name
        with self._lock:
            if name not in self._objects:
                raise NotFoundError(_LOCALSTORAGES, name)
            self._objects[name] = ls.deep_copy()
            return ls.deep_copy()

    def update_status(self, ls: LocalStorage) -> LocalStorage:
        """Replace only the status of the stored object with the same name."""
        name = ls.metadata.name
        with self._lock:
            stored = self._objects.get(name)
            if stored is None:
                raise NotFoundError(_LOCALSTORAGES, name)
            stored.status = copy.deepcopy(ls.status)
            return stored.deep_copy()

    def delete(self, name: str) -> None:
        with self._lock:
            if self._objects.pop(name, None) is None:
                raise NotFoundError(_LOCALSTORAGES, name)

    def get(self, name: str) -> LocalStorage:
        with self._lock:
            stored = self._objects.get(name)
            if stored is None:
                raise NotFoundError(_LOCALSTORAGES, name)
            return stored.deep_copy()

    def list(self, label_selector: Mapping[str, str] | None = None) -> LocalStorageList:
        """List objects whose labels hold every pair in ``label_selector``."""
        with self._lock:
            items = [
                ls.deep_copy()
                for ls in self._objects.values()
                if _matches(ls.metadata.labels, label_selector)
            ]
        return LocalStorageList(items=items)


class InMemoryNodeClient:
    """Stores cluster nodes; every call works on copies."""

    def __init__(self, nodes: Iterable[Node] = ()) -> None:
        self._lock = threading.Lock()
        self._nodes: dict[str, Node] = {}
        for node in nodes:
            self.add(node)

    def add(self, node: Node) -> None:
        with self._lock:
            if node.name in self._nodes:
                raise AlreadyExistsError(_NODES, node.name)
            self._nodes[node.name] = copy.deepcopy(node)

    def get(self, name: str) -> Node:
        with self._lock:
            node = self._nodes.get(name)
            if node is None:
                raise NotFoundError(_NODES, name)
            return copy.deepcopy(node)

    def list(self) -> list[Node]:
        with self._lock:
            return [copy.deepcopy(node) for node in self._nodes.values()]

    def update(self, node: Node) -> Node:
        with self._lock:
            if node.name not in self._nodes:
                raise NotFoundError(_NODES, node.name)
            self._nodes[node.name] = copy.deepcopy(node)
            return copy.deepcopy(node)