"""Endpoint parsing and volume directory setup for the plugin."""

from __future__ import annotations

import os


def parse_endpoint(ep: str) -> tuple[str, str]:
    """Split a ``unix://path`` endpoint into protocol and address.

    Raises ValueError for any other scheme or an empty address.
    """
    if ep.lower().startswith("unix://"):
        proto, addr = ep.split("://", 1)
        if addr:
            return proto, addr
    raise ValueError(f"invalid endpoint: {ep}")


def make_volume_dir(vol_dir: str | os.PathLike[str]) -> None:
    """Create ``vol_dir`` and its parents unless something already exists there."""
    try:
        os.stat(vol_dir)
    except FileNotFoundError:
        os.makedirs(vol_dir, mode=0o777, exist_ok=True)