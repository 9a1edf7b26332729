"""LocalStorage resource model for the storage.caoyingjunz.io/v1 API."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Any

from .quantity import Quantity

GROUP_NAME = "storage.caoyingjunz.io"
VERSION = "v1"
API_VERSION = f"{GROUP_NAME}/{VERSION}"

# Node annotation that records the driver's node id.
ANNOTATION_KEY_NODE_ID = "csi.volume.caoyingjunz.io/nodeid"
ANNOTATION_KEY_MAINTENANCE = "storage.caoyingjunz.io/maintenance"
LABEL_STORAGE_NODE = "storage.caoyingjunz.io/node"


class Phase(str, enum.Enum):
    """Lifecycle phase of a LocalStorage object."""

    PENDING = "Pending"
    INITIATING = "Initiating"
    TERMINATING = "Terminating"
    EXTENDING = "Extending"
    MAINTAINING = "Maintaining"
    READY = "Ready"
    UNKNOWN = "Unknown"


def kind(kind: str) -> str:
    """Return the group-qualified kind, e.g. ``LocalStorage.<group>``."""
    return f"{kind}.{GROUP_NAME}"


def resource(resource: str) -> str:
    """Return the group-qualified resource, e.g. ``localstorages.<group>``."""
    return f"{resource}.{GROUP_NAME}"


@dataclass
class DiskSpec:
    name: str = ""
    # Filled in by the plugin.
    identifier: str = ""


@dataclass
class Volume:
    vol_name: str = ""
    vol_id: str = ""
    vol_path: str = ""
    vol_size: int = 0
    node_id: str = ""
    attached: bool = False


@dataclass
class ObjectMeta:
    name: str = ""
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    creation_timestamp: str | None = None
    deletion_timestamp: str | None = None


@dataclass
class LocalStorageSpec:
    volume_group: str = ""
    node: str = ""
    disks: list[DiskSpec] | None = None


@dataclass
class LocalStorageStatus:
    phase: Phase | None = None
    allocatable: Quantity | None = None
    capacity: Quantity | None = None
    volumes: list[Volume] = field(default_factory=list)
    conditions: str = ""


def _compact(pairs: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in pairs.items() if value}


def _volume_to_dict(volume: Volume) -> dict[str, Any]:
    return _compact(
        {
            "volName": volume.vol_name,
            "volId": volume.vol_id,
            "volPath": volume.vol_path,
            "volSize": volume.vol_size,
            "nodeId": volume.node_id,
            "attached": volume.attached,
        }
    )


def _volume_from_dict(data: dict[str, Any]) -> Volume:
    return Volume(
        vol_name=data.get("volName", ""),
        vol_id=data.get("volId", ""),
        vol_path=data.get("volPath", ""),
        vol_size=int(data.get("volSize", 0)),
        node_id=data.get("nodeId", ""),
        attached=bool(data.get("attached", False)),
    )


def _meta_to_dict(meta: ObjectMeta) -> dict[str, Any]:
    return _compact(
        {
            "name": meta.name,
            "namespace": meta.namespace,
            "uid": meta.uid,
            "resourceVersion": meta.resource_version,
            "creationTimestamp": meta.creation_timestamp,
            "deletionTimestamp": meta.deletion_timestamp,
            "labels": dict(meta.labels),
            "annotations": dict(meta.annotations),
            "finalizers": list(meta.finalizers),
        }
    )


def _meta_from_dict(data: dict[str, Any]) -> ObjectMeta:
    return ObjectMeta(
        name=data.get("name", ""),
        namespace=data.get("namespace", ""),
        uid=data.get("uid", ""),
        resource_version=data.get("resourceVersion", ""),
        labels=dict(data.get("labels") or {}),
        annotations=dict(data.get("annotations") or {}),
        finalizers=list(data.get("finalizers") or []),
        creation_timestamp=data.get("creationTimestamp"),
        deletion_timestamp=data.get("deletionTimestamp"),
    )


def _spec_to_dict(spec: LocalStorageSpec) -> dict[str, Any]:
    disks = [
        _compact({"name": disk.name, "identifier": disk.identifier})
        for disk in spec.disks or []
    ]
    return _compact({"volumeGroup": spec.volume_group, "node": spec.node, "disks": disks})


def _spec_from_dict(data: dict[str, Any]) -> LocalStorageSpec:
    raw_disks = data.get("disks")
    disks = None
    if raw_disks is not None:
        disks = [
            DiskSpec(name=disk.get("name", ""), identifier=disk.get("identifier", ""))
            for disk in raw_disks
        ]
    return LocalStorageSpec(
        volume_group=data.get("volumeGroup", ""),
        node=data.get("node", ""),
        disks=disks,
    )


def _quantity_from(raw: Any) -> Quantity | None:
    if raw is None or raw == "":
        return None
    return Quantity.parse(str(raw))


def _status_to_dict(status: LocalStorageStatus) -> dict[str, Any]:
    return _compact(
        {
            "phase": status.phase.value if status.phase else None,
            "allocatable": str(status.allocatable) if status.allocatable is not None else None,
            "capacity": str(status.capacity) if status.capacity is not None else None,
            "volumes": [_volume_to_dict(volume) for volume in status.volumes],
            "conditions": status.conditions,
        }
    )


def _status_from_dict(data: dict[str, Any]) -> LocalStorageStatus:
    raw_phase = data.get("phase")
    return LocalStorageStatus(
        phase=Phase(raw_phase) if raw_phase else None,
        allocatable=_quantity_from(data.get("allocatable")),
        capacity=_quantity_from(data.get("capacity")),
        volumes=[_volume_from_dict(volume) for volume in data.get("volumes") or []],
        conditions=data.get("conditions", ""),
    )


@dataclass
class LocalStorage:
    """A cluster-scoped LocalStorage object bound to one node."""

    api_version: str = API_VERSION
    kind: str = "LocalStorage"
    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: LocalStorageSpec = field(default_factory=LocalStorageSpec)
    status: LocalStorageStatus = field(default_factory=LocalStorageStatus)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the JSON shape used by the API server."""
        result = _compact({"apiVersion": self.api_version, "kind": self.kind})
        result["metadata"] = _meta_to_dict(self.metadata)
        result["spec"] = _spec_to_dict(self.spec)
        result["status"] = _status_to_dict(self.status)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocalStorage:
        """Build an object from its JSON shape; raises ValueError on bad values."""
        return cls(
            api_version=data.get("apiVersion", ""),
            kind=data.get("kind", ""),
            metadata=_meta_from_dict(data.get("metadata") or {}),
            spec=_spec_from_dict(data.get("spec") or {}),
            status=_status_from_dict(data.get("status") or {}),
        )

    def deep_copy(self) -> LocalStorage:
        """Return an independent copy of this object."""
        return copy.deepcopy(self)


@dataclass
class LocalStorageList:
    items: list[LocalStorage] = field(default_factory=list)
    api_version: str = API_VERSION
    kind: str = "LocalStorageList"
    resource_version: str = ""