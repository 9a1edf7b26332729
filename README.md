# lstorage

`lstorage` works with storage that lives on the disks of individual cluster
nodes. Each node is described by a `LocalStorage` resource. The resource
records the node it is bound to, its volume group, its disks, its capacity,
the size still allocatable and the volumes carved out of it.

The package has no third-party dependencies.

## Modules

- **`lstorage.types`**: the `LocalStorage` resource and its parts:
  `LocalStorageSpec`, `LocalStorageStatus`, `DiskSpec`, `Volume` and
  `ObjectMeta`. It also has `LocalStorageList` and the lifecycle `Phase`
  (Pending, Initiating, Terminating, Extending, Maintaining, Ready, Unknown).
  A resource converts to and from its JSON dictionary shape with `to_dict`
  and `LocalStorage.from_dict`, and copies with `deep_copy`. `kind()` and
  `resource()` qualify a name with the API group.
- **`lstorage.quantity`**: `Quantity`, an exact amount that parses and
  prints strings such as `500Gi`, `2k`, `100m` or `1e3`. It has `add` and
  `sub`, and also the `+` and `-` operators. `bytes_to_quantity` turns a byte
  count into a binary-SI quantity.
- **`lstorage.cache`**: `VolumeCache`, a thread-safe set of volumes keyed by
  id. Every change is written through to a JSON file. A missing file means
  that no volumes have been recorded yet. Looking up an unknown id or name
  raises `VolumeNotFoundError`. An unreadable or malformed store raises
  `CacheError`.
- **`lstorage.util`**: helpers that change or inspect a resource:
  - volumes: `add_volume`, `remove_volume`, `contains_volume`;
  - finalizers: `add_finalizer`, `remove_finalizer`, `contains_finalizer`,
    and the `LS_PROTECTION_FINALIZER` constant;
  - state: `assigned_localstorage`, `is_pending_status`;
  - cache keys: `key_func`.
- **`lstorage.lister`**: `LocalStorageLister`, an in-memory index of
  resources by name. `get` raises `NotFoundError` for an unknown name.
- **`lstorage.client`**: in-memory clients that work on copies.
  - `InMemoryLocalStorageClient` offers `create`, `update`, `update_status`,
    `delete`, `get` and `list` with an optional label selector.
  - `InMemoryNodeClient` offers `add`, `get`, `list` and `update` for `Node`
    objects.
  - `create` and `add` raise `AlreadyExistsError` when the name is taken.
- **`lstorage.storageutil`**: cluster-level helpers.
  - `get_local_storage_by_node` finds the resource bound to a node.
  - `create_local_storage` creates a resource named `ls-<node>` for every
    node labelled `storage.caoyingjunz.io/node` that has none yet. Each new
    resource has a size of `500Gi`, volume group `k8s` and one disk.
  - Node-annotation helpers: `is_node_id_in_node`, `update_node_id_in_node`
    and `get_name_from_node`.
- **`lstorage.webhook`**: the admission webhooks. Both return an
  `AdmissionResponse`.
  - `LocalstorageMutate.handle` adds the protection finalizer. On create it
    also sets the phase to Pending, drops unnamed disks and disk
    identifiers, and clears volumes. The response carries the changes as
    JSON Patch operations.
  - `LocalstorageValidator.handle` checks three things:
    - names are non-empty and at most 52 characters;
    - on create, the binding node is set, exists and is not already bound,
      and the volume group is set;
    - on update, the name, apiVersion, kind, node and volume group have not
      changed.
- **`lstorage.extender`**: the scheduler-extender handlers.
  - `Predicate.handler` passes every candidate node. It reports an error
    when the arguments carry no pod.
  - `Prioritize.handler` gives each node a random score from 0 to 10.
- **`lstorage.scheduler`**: `ScheduleExtender`, which serves the extender
  over HTTP. It answers `GET /version`, `POST /localstorage-scheduler/filter`
  and `POST /localstorage-scheduler/prioritize`.
- **`lstorage.workqueue`**: `RateLimitingQueue`, a de-duplicating work queue.
  It has delayed adds (`add_after`), per-item exponential back-off
  (`add_rate_limited`, `num_requeues`, `forget`) and `shut_down`. Once the
  queue is shut down and empty, `get` raises `ShutDownError`.
- **`lstorage.controller`**: `StorageController`, which moves resources
  through their phases. A pending resource becomes Initiating, and an
  `EventRecorder` records an event for it. A resource being deleted becomes
  Terminating. Failed syncs are retried up to 15 times.
- **`lstorage.signals`**: `setup_signal_handler()` returns a
  `threading.Event`. The event is set on the first SIGINT or SIGTERM; a
  second signal exits with code 1. The function may be called only once per
  process.
- **`lstorage.endpoint`**: two helpers.
  - `parse_endpoint` splits a `unix://` endpoint into protocol and address.
    It accepts only `unix://` endpoints with a non-empty address and raises
    `ValueError` for anything else.
  - `make_volume_dir` creates a volume directory if nothing exists there yet.

## Examples

Sizes:

```python
from lstorage.quantity import Quantity, bytes_to_quantity

total = Quantity.parse("500Gi")
used = bytes_to_quantity(10 * 1024 ** 3)
print(total.sub(used))  # 490Gi
```

Recording volumes on disk:

```python
from lstorage.cache import Volume, VolumeCache

store = VolumeCache("/tmp/localstorage.json")
store.set_volume(Volume(vol_name="pvc-1", vol_id="vol-1", vol_size=1024))
print(store.get_volume_by_name("pvc-1").vol_id)  # vol-1
```

Plugin endpoints:

```python
from lstorage.endpoint import parse_endpoint

proto, address = parse_endpoint("unix://tmp/csi.sock")
# proto == "unix", address == "tmp/csi.sock"
```

Running the storage controller until SIGINT or SIGTERM:

```python
from lstorage.client import InMemoryLocalStorageClient
from lstorage.controller import StorageController
from lstorage.lister import LocalStorageLister
from lstorage.signals import setup_signal_handler

controller = StorageController(LocalStorageLister(), InMemoryLocalStorageClient())
controller.run(workers=5, stop_event=setup_signal_handler())
```

Running the scheduler extender inside your own process:

```python
from lstorage.lister import LocalStorageLister
from lstorage.scheduler import ScheduleExtender

extender = ScheduleExtender(LocalStorageLister())
extender.run(":8090")
```

## What the package does not do

- There is no volume plugin. No identity, node or controller services create
  or delete volume directories, or charge volumes against a node's
  allocatable size.
- There is no command-line program. The controller and the scheduler
  extender are started from your own code, as shown above.
- The clients and the lister keep their objects in memory. Nothing here
  talks to a cluster API server or watches it for changes, so you must feed
  `StorageController.add_storage`, `update_storage` and `delete_storage`
  yourself.

## Testing

The test suite uses pytest. Install it with the `test` extra and run
`pytest`.