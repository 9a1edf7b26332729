"""Persistent, JSON-backed cache of the volumes known to the plugin."""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from typing import Any


class CacheError(Exception):
    """The volume store could not be read or written."""


class VolumeNotFoundError(CacheError, LookupError):
    """No volume matches the requested id or name."""


@dataclass(frozen=True)
class Volume:
    vol_name: str = ""
    vol_id: str = ""
    vol_path: str = ""
    vol_size: int = 0
    node_id: str = ""
    attached: bool = False


# On-disk key, attribute name, expected type.
_FIELDS = (
    ("VolName", "vol_name", str),
    ("VolID", "vol_id", str),
    ("VolPath", "vol_path", str),
    ("VolSize", "vol_size", int),
    ("NodeID", "node_id", str),
    ("Attached", "attached", bool),
)


def _volume_to_json(volume: Volume) -> dict[str, Any]:
    return {key: getattr(volume, attr) for key, attr, _ in _FIELDS}


def _volume_from_json(data: Any) -> Volume:
    if not isinstance(data, dict):
        raise TypeError(f"volume entry must be an object, got {type(data).__name__}")
    values = {}
    for key, attr, kind in _FIELDS:
        if key not in data or data[key] is None:
            continue
        value = data[key]
        if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
            raise TypeError(f"field {key} must be {kind.__name__}")
        values[attr] = value
    return Volume(**values)


class VolumeCache:
    """Volumes keyed by id, written through to a JSON file on every change."""

    def __init__(self, store_file: str | os.PathLike[str]) -> None:
        self._store_file = os.fspath(store_file)
        self._lock = threading.Lock()
        self._volumes: dict[str, Volume] = {}
        self._restore()

    def _restore(self) -> None:
        with self._lock:
            self._volumes = {}
            try:
                with open(self._store_file, encoding="utf-8") as handle:
                    text = handle.read()
            except FileNotFoundError:
                # First start: nothing recorded yet.
                return
            except OSError as exc:
                raise CacheError(f"error reading state file: {exc}") from exc

            try:
                raw = json.loads(text)
                if raw is None:
                    return
                if not isinstance(raw, dict):
                    raise TypeError("store must hold an object of volumes")
                self._volumes = {
                    vol_id: _volume_from_json(entry) for vol_id, entry in raw.items()
                }
            except (ValueError, TypeError) as exc:
                raise CacheError(
                    f"error encoding volumes and snapshots from store file "
                    f"{self._store_file!r}: {exc}"
                ) from exc

    def _dump(self) -> None:
        payload = {vol_id: _volume_to_json(self._volumes[vol_id]) for vol_id in sorted(self._volumes)}
        data = json.dumps(payload, separators=(",", ":"))
        try:
            fd = os.open(self._store_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o660)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(data)
        except OSError as exc:
            raise CacheError(f"error writing store file: {exc}") from exc

    def get_volume_by_id(self, vol_id: str) -> Volume:
        with self._lock:
            try:
                return self._volumes[vol_id]
            except KeyError:
                raise VolumeNotFoundError(
                    f"volume id {vol_id} does not exist in the volumes list"
                ) from None

    def get_volume_by_name(self, vol_name: str) -> Volume:
        with self._lock:
            for volume in self._volumes.values():
                if volume.vol_name == vol_name:
                    return volume
        raise VolumeNotFoundError(
            f"volume name {vol_name} does not exist in the volumes list"
        )

    def get_volumes(self) -> list[Volume]:
        with self._lock:
            return list(self._volumes.values())

    def set_volume(self, volume: Volume) -> None:
        """Add or replace the volume with the same id and persist the store."""
        with self._lock:
            self._volumes[volume.vol_id] = volume
            self._dump()

    def delete_volume(self, vol_id: str) -> None:
        """Remove a volume; absent ids are ignored."""
        with self._lock:
            if vol_id not in self._volumes:
                return
            del self._volumes[vol_id]
            self._dump()