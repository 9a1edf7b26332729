"""Controller that moves LocalStorage objects through their lifecycle phases."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Hashable
from typing import Any

from .client import InMemoryLocalStorageClient
from .lister import LocalStorageLister, NotFoundError
from .types import LocalStorage, Phase
from .util import is_pending_status, key_func
from .workqueue import RateLimitingQueue, ShutDownError

log = logging.getLogger(__name__)

MAX_RETRIES = 15
LOCALSTORAGE_MANAGER_USER_AGENT = "localstorage-manager"
EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"


class EventRecorder:
    """Keeps the events emitted for objects, newest last.

    Each event is a tuple of object key, event type, reason and message.
    """

    def __init__(self, component: str = LOCALSTORAGE_MANAGER_USER_AGENT) -> None:
        self.component = component
        self._lock = threading.Lock()
        self.events: list[tuple[str, str, str, str]] = []

    def eventf(self, obj: Any, event_type: str, reason: str, message: str) -> None:
        key = key_func(obj)
        log.info("Event(%s): type: %r reason: %r %s", key, event_type, reason, message)
        with self._lock:
            self.events.append((key, event_type, reason, message))


def _as_local_storage(obj: Any) -> LocalStorage | None:
    """Unwrap tombstones, objects with ``key`` and ``obj`` attributes."""
    if isinstance(obj, LocalStorage):
        return obj
    inner = getattr(obj, "obj", None)
    if hasattr(obj, "key") and isinstance(inner, LocalStorage):
        return inner
    return None


class StorageController:
    """Reacts to LocalStorage changes and updates their phase."""

    def __init__(
        self,
        lister: LocalStorageLister,
        client: InMemoryLocalStorageClient,
        recorder: EventRecorder | None = None,
    ) -> None:
        self.lister = lister
        self.client = client
        self.recorder = recorder if recorder is not None else EventRecorder()
        self.queue = RateLimitingQueue("localstorage")

    def add_storage(self, obj: Any) -> None:
        if not isinstance(obj, LocalStorage):
            log.error("expected localstorage in addStorage, but got %r", obj)
            return
        log.debug("Adding localstorage %s", obj.metadata.name)
        self._enqueue(obj)

    def update_storage(self, old: LocalStorage, cur: LocalStorage) -> None:
        log.debug("Updating localstorage %s", old.metadata.name)
        self._enqueue(cur)

    def delete_storage(self, obj: Any) -> None:
        ls = _as_local_storage(obj)
        if ls is None:
            if hasattr(obj, "key") and hasattr(obj, "obj"):
                log.error("tombstone contained object that is not a localstorage %r", obj)
            else:
                log.error("couldn't get object from tombstone %r", obj)
            return
        log.debug("Deleting localstorage %s", ls.metadata.name)
        self._enqueue(ls)

    def sync_storage(self, key: str) -> None:
        """Bring the object named ``key`` one step along its lifecycle.

        Raises whatever the client raises when an update fails.
        """
        start = time.monotonic()
        log.debug("Started syncing localstorage manager %s", key)
        try:
            try:
                cached = self.lister.get(key)
            except NotFoundError:
                log.debug("localstorage %s has been deleted", key)
                return
            ls = cached.deep_copy()

            if ls.metadata.deletion_timestamp is not None:
                if ls.status.phase != Phase.TERMINATING:
                    ls.status.phase = Phase.TERMINATING
                    self.client.update(ls)
                return

            if is_pending_status(ls):
                ls.status.phase = Phase.INITIATING
                self.client.update(ls)
                self.recorder.eventf(
                    ls,
                    EVENT_TYPE_NORMAL,
                    "initialize",
                    f"waiting for plugin to initialize {ls.metadata.name} localstorage",
                )
        finally:
            log.debug(
                "Finished syncing localstorage manager %s in %.3fs",
                key,
                time.monotonic() - start,
            )

    def process_next_work_item(self) -> bool:
        """Handle one queued key; return False once the queue is shut down."""
        try:
            key = self.queue.get()
        except ShutDownError:
            return False
        try:
            try:
                self.sync_storage(str(key))
            except Exception as exc:  # any failure is retried with back-off
                self._handle_err(exc, key)
            else:
                self._handle_err(None, key)
        finally:
            self.queue.done(key)
        return True

    def run(self, workers: int, stop_event: threading.Event) -> None:
        """Process the queue with ``workers`` threads until ``stop_event`` is set."""
        log.info("Starting Localstorage Manager")
        threads = [
            threading.Thread(target=self._worker, name=f"storage-worker-{index}", daemon=True)
            for index in range(workers)
        ]
        for thread in threads:
            thread.start()
        try:
            stop_event.wait()
        finally:
            self.queue.shut_down()
            for thread in threads:
                thread.join()
            log.info("Shutting down Localstorage Manager")

    def _worker(self) -> None:
        while self.process_next_work_item():
            pass

    def _handle_err(self, err: Exception | None, key: Hashable) -> None:
        if err is None:
            self.queue.forget(key)
            return
        if self.queue.num_requeues(key) < MAX_RETRIES:
            log.debug("Error syncing localstorage %s: %s", key, err)
            self.queue.add_rate_limited(key)
            return
        log.error("Dropping localstorage %s out of the queue: %s", key, err)
        self.queue.forget(key)

    def _key(self, ls: LocalStorage) -> str | None:
        try:
            return key_func(ls)
        except TypeError as exc:
            log.error("couldn't get key for object %r: %s", ls, exc)
            return None

    def _enqueue(self, ls: LocalStorage) -> None:
        key = self._key(ls)
        if key is not None:
            self.queue.add(key)

    def _enqueue_rate_limited(self, ls: LocalStorage) -> None:
        key = self._key(ls)
        if key is not None:
            self.queue.add_rate_limited(key)

    def _enqueue_after(self, ls: LocalStorage, after: float) -> None:
        key = self._key(ls)
        if key is not None:
            self.queue.add_after(key, after)