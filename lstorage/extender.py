"""Scheduler extender handlers: node filtering and node scoring."""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from typing import Any

from .lister import LocalStorageLister

log = logging.getLogger(__name__)

# Highest score an extender may give a node.
MAX_EXTENDER_PRIORITY = 10


def lookup(data: Mapping[str, Any], name: str) -> Any:
    """Return ``data[name]``, matching the key without regard to case.

    Exact matches win; ``None`` is returned when no key matches.
    """
    if name in data:
        return data[name]
    lowered = name.lower()
    for key, value in data.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


class Predicate:
    """Filters the candidate nodes for a pod."""

    def __init__(
        self,
        ls_lister: LocalStorageLister | None,
        pvc_lister: Any = None,
        sc_lister: Any = None,
    ) -> None:
        self.ls_lister = ls_lister
        self.pvc_lister = pvc_lister
        self.sc_lister = sc_lister

    def handler(self, args: Mapping[str, Any]) -> dict[str, Any]:
        """Return a filter result in wire shape; every candidate node passes."""
        pod = lookup(args, "pod")
        if pod is None:
            return {"error": "localstorage pod is nil"}

        log.info("ExtenderFilterResult for pod: %s", pod)
        result: dict[str, Any] = {}
        nodes = lookup(args, "nodes")
        if nodes is not None:
            result["nodes"] = nodes
        node_names = lookup(args, "nodenames")
        if node_names is not None:
            result["nodenames"] = node_names
        return result


def _node_name(node: Any) -> str:
    if not isinstance(node, Mapping):
        return ""
    metadata = lookup(node, "metadata")
    if not isinstance(metadata, Mapping):
        return ""
    name = lookup(metadata, "name")
    return name if isinstance(name, str) else ""


class Prioritize:
    """Scores the candidate nodes for a pod."""

    def __init__(
        self, ls_lister: LocalStorageLister | None, rng: random.Random | None = None
    ) -> None:
        self.ls_lister = ls_lister
        self._rng = rng if rng is not None else random.Random()

    def handler(self, args: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Give every node a random score from 0 to MAX_EXTENDER_PRIORITY.

        Raises ValueError when the arguments carry no node list.
        """
        nodes = lookup(args, "nodes")
        if not isinstance(nodes, Mapping):
            raise ValueError("extender arguments carry no node list")
        items = lookup(nodes, "items") or []

        priorities = [
            {
                "host": _node_name(node),
                "score": self._rng.randint(0, MAX_EXTENDER_PRIORITY),
            }
            for node in items
        ]
        log.info("hostPriorityList: %s", priorities)
        return priorities