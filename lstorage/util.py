"""Helpers for inspecting and changing LocalStorage objects."""

from __future__ import annotations

from typing import Any

from .types import LocalStorage, ObjectMeta, Phase, Volume

# Finalizer that protects a LocalStorage object from premature deletion.
LS_PROTECTION_FINALIZER = "caoyingjunz.io/ls-protection"


def assigned_localstorage(ls: LocalStorage, node_id: str) -> bool:
    """Tell whether ``ls`` is bound to ``node_id`` and awaits the plugin."""
    if ls.spec.node != node_id:
        return False
    return is_pending_status(ls) or ls.status.phase == Phase.MAINTAINING


def is_pending_status(ls: LocalStorage) -> bool:
    return ls.status.phase == Phase.PENDING


def add_volume(ls: LocalStorage, volume: Volume) -> None:
    """Append ``volume`` unless a volume with the same id is already present."""
    if contains_volume(ls, volume.vol_id):
        return
    ls.status.volumes = [*(ls.status.volumes or []), volume]


def remove_volume(ls: LocalStorage, vol_id: str) -> Volume:
    """Remove the volume with ``vol_id`` and return it.

    An empty Volume is returned when no such volume exists.
    """
    removed = Volume()
    kept = []
    for volume in ls.status.volumes or []:
        if volume.vol_id == vol_id:
            removed = volume
        else:
            kept.append(volume)
    ls.status.volumes = kept
    return removed


def contains_volume(ls: LocalStorage, vol_id: str) -> bool:
    return any(volume.vol_id == vol_id for volume in ls.status.volumes or [])


def add_finalizer(ls: LocalStorage, finalizer: str) -> bool:
    """Add ``finalizer`` if absent; return whether the list changed."""
    if finalizer in ls.metadata.finalizers:
        return False
    ls.metadata.finalizers = [*ls.metadata.finalizers, finalizer]
    return True


def remove_finalizer(ls: LocalStorage, finalizer: str) -> bool:
    """Remove every occurrence of ``finalizer``; return whether the list changed."""
    kept = [entry for entry in ls.metadata.finalizers if entry != finalizer]
    updated = len(kept) != len(ls.metadata.finalizers)
    ls.metadata.finalizers = kept
    return updated


def contains_finalizer(ls: LocalStorage, finalizer: str) -> bool:
    return finalizer in ls.metadata.finalizers


def key_func(obj: Any) -> str:
    """Return the cache key of an object: ``namespace/name`` or just ``name``.

    Tombstones, objects carrying ``key`` and ``obj`` attributes, yield their
    recorded key. Anything without object metadata raises TypeError.
    """
    tomb_key = getattr(obj, "key", None)
    if isinstance(tomb_key, str) and hasattr(obj, "obj"):
        return tomb_key
    meta = getattr(obj, "metadata", None)
    if not isinstance(meta, ObjectMeta):
        raise TypeError(f"object has no meta: {obj!r}")
    if meta.namespace:
        return f"{meta.namespace}/{meta.name}"
    return meta.name