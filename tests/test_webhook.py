import copy
import json
from http import HTTPStatus

import pytest

from lstorage.client import InMemoryLocalStorageClient, InMemoryNodeClient, Node
from lstorage.types import (
    DiskSpec,
    LocalStorage,
    LocalStorageSpec,
    ObjectMeta,
    Phase,
    Volume,
)
from lstorage.util import LS_PROTECTION_FINALIZER
from lstorage.webhook import (
    LocalstorageMutate,
    LocalstorageValidator,
    Operation,
    ValidationError,
)


def make_ls(name="ls-node1", node="node1", volume_group="k8s"):
    return LocalStorage(
        metadata=ObjectMeta(name=name),
        spec=LocalStorageSpec(node=node, volume_group=volume_group),
    )


def raw_of(ls):
    return json.dumps(ls.to_dict()).encode()


def apply_patch(doc, patches):
    doc = copy.deepcopy(doc)
    for patch in patches:
        parts = [p.replace("~1", "/").replace("~0", "~") for p in patch["path"].split("/")[1:]]
        if not parts:
            doc = patch["value"]
            continue
        target = doc
        for part in parts[:-1]:
            target = target[part]
        if patch["op"] == "remove":
            del target[parts[-1]]
        else:
            target[parts[-1]] = patch["value"]
    return doc


@pytest.fixture
def validator():
    nodes = InMemoryNodeClient([Node(name="node1"), Node(name="node2")])
    ls_client = InMemoryLocalStorageClient([make_ls("ls-node2", "node2")])
    return LocalstorageValidator(nodes, ls_client)


def test_mutate_create_patch_round_trip():
    ls = make_ls()
    raw = {"apiVersion": ls.api_version, "kind": ls.kind, "metadata": {"name": "ls-node1"},
           "spec": {"node": "node1", "volumeGroup": "k8s"}}
    response = LocalstorageMutate().handle(Operation.CREATE, json.dumps(raw))
    assert response.allowed is True
    patched = LocalStorage.from_dict(apply_patch(raw, response.patches))
    assert patched.metadata.finalizers == [LS_PROTECTION_FINALIZER]
    assert patched.status.phase == Phase.PENDING
    assert patched.spec.node == "node1"


def test_mutate_unchanged_object_has_no_patches():
    ls = make_ls()
    ls.metadata.finalizers = [LS_PROTECTION_FINALIZER]
    ls.status.phase = Phase.READY
    response = LocalstorageMutate().handle("UPDATE", raw_of(ls))
    assert response.allowed is True
    assert response.patches == []


def test_mutate_skips_finalizer_when_deleting():
    ls = make_ls()
    ls.metadata.deletion_timestamp = "2021-01-01T00:00:00Z"
    raw = ls.to_dict()
    response = LocalstorageMutate().handle(Operation.UPDATE, json.dumps(raw))
    patched = LocalStorage.from_dict(apply_patch(raw, response.patches))
    assert patched.metadata.finalizers == []


def test_mutate_bad_json_is_bad_request():
    response = LocalstorageMutate().handle(Operation.CREATE, b"{not json")
    assert response.allowed is False
    assert response.code == HTTPStatus.BAD_REQUEST


def test_set_status_only_on_create():
    mutate = LocalstorageMutate()
    ls = make_ls()
    mutate.set_status(ls, Operation.UPDATE)
    assert ls.status.phase is None
    mutate.set_status(ls, Operation.CREATE)
    assert ls.status.phase == Phase.PENDING
    ls.status.phase = Phase.READY
    mutate.set_status(ls, Operation.CREATE)
    assert ls.status.phase == Phase.READY


def test_set_disks_drops_identifiers_and_unnamed():
    mutate = LocalstorageMutate()
    ls = make_ls()
    ls.spec.disks = [DiskSpec(name="sda", identifier="id-1"), DiskSpec(identifier="id-2")]
    mutate.set_disks(ls, Operation.CREATE)
    assert ls.spec.disks == [DiskSpec(name="sda")]


def test_set_disks_all_unnamed_becomes_none():
    mutate = LocalstorageMutate()
    ls = make_ls()
    ls.spec.disks = [DiskSpec(identifier="id-2")]
    mutate.set_disks(ls, Operation.CREATE)
    assert ls.spec.disks is None


def test_set_volumes_clears_on_create_only():
    mutate = LocalstorageMutate()
    ls = make_ls()
    ls.status.volumes = [Volume(vol_id="v1")]
    mutate.set_volumes(ls, Operation.UPDATE)
    assert [v.vol_id for v in ls.status.volumes] == ["v1"]
    mutate.set_volumes(ls, Operation.CREATE)
    assert ls.status.volumes == []


def test_default_applies_setters_in_order():
    mutate = LocalstorageMutate()
    seen = []
    mutate.default(make_ls(), Operation.CREATE, lambda ls, op: seen.append(1), lambda ls, op: seen.append(2))
    assert seen == [1, 2]


def test_set_finalizer_not_duplicated():
    mutate = LocalstorageMutate()
    ls = make_ls()
    mutate.set_finalizer(ls)
    mutate.set_finalizer(ls)
    assert ls.metadata.finalizers == [LS_PROTECTION_FINALIZER]


def test_validate_create_allowed(validator):
    response = validator.handle(Operation.CREATE, raw_of(make_ls()))
    assert response.allowed is True


def test_validate_create_node_missing(validator):
    response = validator.handle(Operation.CREATE, raw_of(make_ls(node="ghost")))
    assert response.allowed is False
    assert response.code == HTTPStatus.FORBIDDEN
    assert "not found in kubernetes" in response.message


def test_validate_create_node_already_bound(validator):
    response = validator.handle(Operation.CREATE, raw_of(make_ls(name="other", node="node2")))
    assert response.allowed is False
    assert response.message == "node (node2) already binded to the other localstorage"


def test_validate_create_empty_node(validator):
    with pytest.raises(ValidationError, match="binding node may not be empty"):
        validator.validate_create(make_ls(node=""))


def test_validate_create_empty_volume_group(validator):
    with pytest.raises(ValidationError, match="spec.volumeGroup may not be empty"):
        validator.validate_create(make_ls(volume_group=""))


def test_validate_name_errors(validator):
    response = validator.handle(Operation.CREATE, raw_of(make_ls(name="")))
    assert response.code == HTTPStatus.BAD_REQUEST
    with pytest.raises(ValidationError, match="no more than 52 characters"):
        validator.validate_name(make_ls(name="a" * 53))
    validator.validate_name(make_ls(name="a" * 52))
    assert validator.handle(Operation.DELETE, raw_of(make_ls(name="a" * 52))).allowed is True


def test_validate_update_immutable_node(validator):
    old = make_ls()
    cur = make_ls(node="node2")
    response = validator.handle(Operation.UPDATE, raw_of(cur), raw_of(old))
    assert response.allowed is False
    assert response.message == "spec.node: Invalid value: node2: field is immutable"


def test_validate_update_immutable_volume_group(validator):
    with pytest.raises(ValidationError, match="spec.volumeGroup: Invalid value: other"):
        validator.validate_update(make_ls(), make_ls(volume_group="other"))


def test_validate_update_kind_changed(validator):
    cur = make_ls()
    cur.kind = "Other"
    with pytest.raises(ValidationError, match="apiVersion, kind and name was changed"):
        validator.validate_update(make_ls(), cur)


def test_validate_update_unchanged_allowed(validator):
    response = validator.handle(Operation.UPDATE, raw_of(make_ls()), raw_of(make_ls()))
    assert response.allowed is True


def test_validate_update_missing_old_object(validator):
    response = validator.handle(Operation.UPDATE, raw_of(make_ls()), None)
    assert response.code == HTTPStatus.BAD_REQUEST
    assert response.allowed is False