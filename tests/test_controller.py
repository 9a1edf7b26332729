import threading
import time
from types import SimpleNamespace

from lstorage.client import InMemoryLocalStorageClient
from lstorage.controller import EventRecorder, StorageController
from lstorage.lister import LocalStorageLister
from lstorage.types import LocalStorage, LocalStorageSpec, ObjectMeta, Phase


def _ls(name="ls-a", phase=Phase.PENDING, deleted=None):
    ls = LocalStorage(
        metadata=ObjectMeta(name=name, deletion_timestamp=deleted),
        spec=LocalStorageSpec(volume_group="k8s", node="node-a"),
    )
    ls.status.phase = phase
    return ls


def _controller(*objects, in_client=True):
    lister = LocalStorageLister(objects)
    client = InMemoryLocalStorageClient(objects if in_client else ())
    recorder = EventRecorder()
    return StorageController(lister, client, recorder), client, recorder


def test_add_storage_enqueues_key():
    controller, _, _ = _controller(_ls())
    controller.add_storage(_ls())
    assert len(controller.queue) == 1
    assert controller.queue.get() == "ls-a"


def test_add_storage_ignores_foreign_objects():
    controller, _, _ = _controller()
    controller.add_storage("not a localstorage")
    assert len(controller.queue) == 0


def test_update_storage_enqueues_current_object():
    controller, _, _ = _controller()
    controller.update_storage(_ls("old"), _ls("new"))
    assert controller.queue.get() == "new"


def test_delete_storage_unwraps_tombstone():
    controller, _, _ = _controller()
    controller.delete_storage(SimpleNamespace(key="ignored", obj=_ls("gone")))
    assert controller.queue.get() == "gone"


def test_delete_storage_rejects_bad_tombstone():
    controller, _, _ = _controller()
    controller.delete_storage(SimpleNamespace(key="x", obj="junk"))
    controller.delete_storage(42)
    assert len(controller.queue) == 0


def test_pending_storage_becomes_initiating_and_records_event():
    original = _ls()
    controller, client, recorder = _controller(original)
    controller.add_storage(original)
    assert controller.process_next_work_item() is True
    assert client.get("ls-a").status.phase == Phase.INITIATING
    assert recorder.events == [
        ("ls-a", "Normal", "initialize", "waiting for plugin to initialize ls-a localstorage")
    ]
    # The lister's object is never mutated.
    assert controller.lister.get("ls-a").status.phase == Phase.PENDING


def test_deleted_storage_becomes_terminating():
    controller, client, recorder = _controller(_ls(deleted="2021-01-01T00:00:00Z"))
    controller.sync_storage("ls-a")
    assert client.get("ls-a").status.phase == Phase.TERMINATING
    assert recorder.events == []


def test_ready_storage_is_left_alone():
    controller, client, recorder = _controller(_ls(phase=Phase.READY))
    controller.sync_storage("ls-a")
    assert client.get("ls-a").status.phase == Phase.READY
    assert recorder.events == []


def test_missing_storage_is_forgotten():
    controller, _, _ = _controller()
    controller.queue.add("missing")
    assert controller.process_next_work_item() is True
    assert controller.queue.num_requeues("missing") == 0


def test_failed_sync_is_requeued_with_backoff():
    controller, _, _ = _controller(_ls(), in_client=False)
    controller.queue.add("ls-a")
    assert controller.process_next_work_item() is True
    assert controller.queue.num_requeues("ls-a") == 1


def test_process_returns_false_after_shutdown():
    controller, _, _ = _controller()
    controller.queue.shut_down()
    assert controller.process_next_work_item() is False


def test_run_processes_until_stopped():
    controller, client, _ = _controller(_ls())
    stop = threading.Event()
    runner = threading.Thread(target=controller.run, args=(2, stop))
    runner.start()
    controller.add_storage(_ls())
    deadline = time.monotonic() + 5
    while client.get("ls-a").status.phase != Phase.INITIATING and time.monotonic() < deadline:
        time.sleep(0.01)
    stop.set()
    runner.join(timeout=5)
    assert client.get("ls-a").status.phase == Phase.INITIATING
    assert not runner.is_alive()
    assert controller.queue.shutting_down