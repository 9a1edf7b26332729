"""Lookups and bookkeeping that tie LocalStorage objects to cluster nodes."""

from __future__ import annotations

import logging

from .client import InMemoryLocalStorageClient, InMemoryNodeClient, Node
from .lister import LocalStorageLister
from .types import (
    ANNOTATION_KEY_NODE_ID,
    LABEL_STORAGE_NODE,
    DiskSpec,
    LocalStorage,
    LocalStorageSpec,
    ObjectMeta,
)

log = logging.getLogger(__name__)

# Annotation carrying the size a node offers for local volumes.
ANNOTATION_NODE_SIZE = "volume.caoyingjunz.io/node-size"
DEFAULT_NODE_SIZE = "500Gi"
DEFAULT_VOLUME_GROUP = "k8s"
DEFAULT_DISK_NAME = "test-disk"


def get_local_storage_by_node(lister: LocalStorageLister, node_name: str) -> LocalStorage:
    """Return the LocalStorage bound to ``node_name``; raise LookupError if none is."""
    for ls in lister.list():
        if ls.spec.node == node_name:
            return ls
    raise LookupError(f"failed to found localstorage with node {node_name}")


def create_local_storage(
    node_client: InMemoryNodeClient, ls_client: InMemoryLocalStorageClient
) -> None:
    """Create a LocalStorage for every labelled storage node that has none yet."""
    nodes = node_client.list()
    bound_nodes = {ls.spec.node for ls in ls_client.list().items}

    for node in nodes:
        if not node.labels or LABEL_STORAGE_NODE not in node.labels:
            continue
        if node.name in bound_nodes:
            continue
        log.info("creating localstorage for node %s", node.name)
        ls_client.create(
            LocalStorage(
                metadata=ObjectMeta(
                    name=f"ls-{node.name}",
                    annotations={ANNOTATION_NODE_SIZE: DEFAULT_NODE_SIZE},
                ),
                spec=LocalStorageSpec(
                    volume_group=DEFAULT_VOLUME_GROUP,
                    node=node.name,
                    disks=[DiskSpec(name=DEFAULT_DISK_NAME)],
                ),
            )
        )


def update_node_id_in_node(node: Node, node_id: str) -> Node:
    """Record ``node_id`` in the node's annotations when the key is already there.

    The annotations mapping is created if missing; the node is returned.
    """
    if node.annotations is None:
        node.annotations = {}
    if not is_node_id_in_node(node):
        return node
    node.annotations[ANNOTATION_KEY_NODE_ID] = node_id
    return node


def is_node_id_in_node(node: Node) -> bool:
    if node.annotations is None:
        return False
    return ANNOTATION_KEY_NODE_ID in node.annotations


def get_name_from_node(node: Node) -> str:
    """Return the node id recorded on the node, or an empty string."""
    if node.annotations is None:
        return ""
    return node.annotations.get(ANNOTATION_KEY_NODE_ID, "")