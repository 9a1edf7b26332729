"""Graceful shutdown on SIGINT and SIGTERM."""

from __future__ import annotations

import os
import signal
import threading

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)

_install_lock = threading.Lock()
_installed = False


def setup_signal_handler() -> threading.Event:
    """Return an event set on the first SIGINT or SIGTERM.

    A second signal ends the process at once with exit code 1. Calling this
    more than once raises RuntimeError.
    """
    global _installed
    with _install_lock:
        if _installed:
            raise RuntimeError("signal handler has already been set up")
        _installed = True

    stop = threading.Event()
    received = 0

    def _handle(signum, frame):
        nonlocal received
        received += 1
        if received == 1:
            stop.set()
        else:
            os._exit(1)

    for sig in SHUTDOWN_SIGNALS:
        signal.signal(sig, _handle)
    return stop