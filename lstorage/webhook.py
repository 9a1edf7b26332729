"""Admission webhooks that default and validate LocalStorage objects."""

from __future__ import annotations

import enum
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from .client import InMemoryLocalStorageClient, InMemoryNodeClient
from .lister import NotFoundError
from .types import DiskSpec, LocalStorage, Phase
from .util import LS_PROTECTION_FINALIZER, add_finalizer, contains_finalizer

log = logging.getLogger(__name__)

DNS1035_LABEL_MAX_LENGTH = 63
MAX_NAME_LENGTH = DNS1035_LABEL_MAX_LENGTH - 11


class Operation(str, enum.Enum):
    """Admission request operation."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


class ValidationError(ValueError):
    """A LocalStorage object was rejected."""


@dataclass
class AdmissionResponse:
    """Outcome of an admission review.

    ``patches`` holds JSON Patch operations for mutating responses.
    """

    allowed: bool
    code: int = HTTPStatus.OK
    message: str = ""
    patches: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def errored(cls, code: int, error: Exception) -> AdmissionResponse:
        return cls(allowed=False, code=code, message=str(error))

    @classmethod
    def denied(cls, reason: str) -> AdmissionResponse:
        return cls(allowed=False, code=HTTPStatus.FORBIDDEN, message=reason)

    @classmethod
    def allowed_response(cls, message: str = "") -> AdmissionResponse:
        return cls(allowed=True, code=HTTPStatus.OK, message=message)


SetFunc = Callable[[LocalStorage, Operation], None]


def _parse_raw(raw: Any) -> dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        if not raw.strip():
            raise ValueError("there is no content to decode")
        raw = json.loads(raw)
    if not isinstance(raw, dict):
        raise ValueError("object must be a JSON object")
    return raw


def _decode(raw: Any) -> tuple[dict[str, Any], LocalStorage]:
    data = _parse_raw(raw)
    return data, LocalStorage.from_dict(data)


def _escape(key: str) -> str:
    return key.replace("~", "~0").replace("/", "~1")


def _diff(old: Any, new: Any, path: str) -> list[dict[str, Any]]:
    if isinstance(old, dict) and isinstance(new, dict):
        ops: list[dict[str, Any]] = []
        for key in old:
            if key not in new:
                ops.append({"op": "remove", "path": f"{path}/{_escape(key)}"})
        for key, value in new.items():
            child = f"{path}/{_escape(key)}"
            if key not in old:
                ops.append({"op": "add", "path": child, "value": value})
            else:
                ops.extend(_diff(old[key], value, child))
        return ops
    if old == new and type(old) is type(new):
        return []
    return [{"op": "replace", "path": path, "value": new}]


def _patch_response(original: dict[str, Any], mutated: dict[str, Any]) -> AdmissionResponse:
    response = AdmissionResponse.allowed_response()
    response.patches = _diff(original, mutated, "")
    return response


class LocalstorageMutate:
    """Fills in defaults and the protection finalizer on LocalStorage objects."""

    def handle(self, operation: Operation | str, raw: Any) -> AdmissionResponse:
        op = Operation(operation)
        try:
            original, ls = _decode(raw)
        except (ValueError, TypeError, AttributeError) as exc:
            return AdmissionResponse.errored(HTTPStatus.BAD_REQUEST, exc)
        log.info("Mutating localstorage %s for %s", ls.metadata.name, op.value)

        if ls.metadata.deletion_timestamp is None:
            self.set_finalizer(ls)

        self.default(ls, op, self.set_status, self.set_disks, self.set_volumes)

        try:
            mutated = json.loads(json.dumps(ls.to_dict()))
        except (TypeError, ValueError) as exc:
            return AdmissionResponse.errored(HTTPStatus.INTERNAL_SERVER_ERROR, exc)
        log.info("Mutated localstorage %s for %s", ls.metadata.name, op.value)
        return _patch_response(original, mutated)

    def default(self, ls: LocalStorage, op: Operation, *args: SetFunc) -> None:
        """Apply each setter in turn."""
        for setter in args:
            setter(ls, op)

    def set_status(self, ls: LocalStorage, op: Operation) -> None:
        if op == Operation.CREATE and not ls.status.phase:
            ls.status.phase = Phase.PENDING

    def set_disks(self, ls: LocalStorage, op: Operation) -> None:
        """On create, keep named disks only and drop their identifiers."""
        if op != Operation.CREATE or ls.spec.disks is None:
            return
        disks = [DiskSpec(name=disk.name) for disk in ls.spec.disks if disk.name]
        ls.spec.disks = disks or None

    def set_volumes(self, ls: LocalStorage, op: Operation) -> None:
        if op == Operation.CREATE and ls.status.volumes:
            ls.status.volumes = []

    def set_finalizer(self, ls: LocalStorage) -> None:
        if not contains_finalizer(ls, LS_PROTECTION_FINALIZER):
            add_finalizer(ls, LS_PROTECTION_FINALIZER)


class LocalstorageValidator:
    """Rejects LocalStorage objects that break naming or binding rules."""

    def __init__(
        self, node_client: InMemoryNodeClient, ls_client: InMemoryLocalStorageClient
    ) -> None:
        self.node_client = node_client
        self.ls_client = ls_client

    def handle(
        self, operation: Operation | str, raw: Any, old_raw: Any = None
    ) -> AdmissionResponse:
        op = Operation(operation)
        try:
            _, ls = _decode(raw)
        except (ValueError, TypeError, AttributeError) as exc:
            return AdmissionResponse.errored(HTTPStatus.BAD_REQUEST, exc)
        log.info("Validating localstorage %s for: %s", ls.metadata.name, op.value)

        try:
            self.validate_name(ls)
        except ValidationError as exc:
            return AdmissionResponse.errored(HTTPStatus.BAD_REQUEST, exc)

        try:
            if op == Operation.CREATE:
                self.validate_create(ls)
            elif op == Operation.UPDATE:
                try:
                    _, old = _decode(old_raw)
                except (ValueError, TypeError, AttributeError) as exc:
                    return AdmissionResponse.errored(HTTPStatus.BAD_REQUEST, exc)
                self.validate_update(old, ls)
            elif op == Operation.DELETE:
                self.validate_delete(ls)
        except ValidationError as exc:
            return AdmissionResponse.denied(str(exc))

        return AdmissionResponse.allowed_response()

    def validate_name(self, ls: LocalStorage) -> None:
        name = ls.metadata.name
        if not name:
            raise ValidationError(f"localstorage ({name}) name must be than 0 characters")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(
                f"localstorage ({name}) name must be no more than 52 characters"
            )

    def validate_create(self, ls: LocalStorage) -> None:
        log.debug("validate create name: %s", ls.metadata.name)
        self._validate_local_storage_node(ls)
        self._validate_volume_group(ls)

    def validate_update(self, old: LocalStorage, cur: LocalStorage) -> None:
        log.debug("validate update name: %s", cur.metadata.name)
        if (
            old.metadata.name != cur.metadata.name
            or old.api_version != cur.api_version
            or old.kind != cur.kind
        ):
            raise ValidationError("at least one of apiVersion, kind and name was changed")
        if old.spec.node != cur.spec.node:
            raise ValidationError(
                f"spec.node: Invalid value: {cur.spec.node}: field is immutable"
            )
        if old.spec.volume_group != cur.spec.volume_group:
            raise ValidationError(
                f"spec.volumeGroup: Invalid value: {cur.spec.volume_group}: field is immutable"
            )

    def validate_delete(self, ls: LocalStorage) -> None:
        log.debug("validate delete name: %s", ls.metadata.name)

    def _validate_local_storage_node(self, ls: LocalStorage) -> None:
        """The node must be set, exist, and not be bound to another object."""
        node_name = ls.spec.node
        if not node_name:
            raise ValidationError(
                f"localstraoge ({ls.metadata.name}) binding node may not be empty"
            )
        try:
            self.node_client.get(node_name)
        except NotFoundError:
            raise ValidationError(
                f"localstorage ({ls.metadata.name}) binding node ({node_name}) "
                "not found in kubernetes"
            ) from None
        except Exception as exc:
            raise ValidationError(
                f"failed to find binding node ({node_name}) object: {exc}"
            ) from exc

        try:
            existing = self.ls_client.list().items
        except Exception as exc:
            raise ValidationError(f"failed to list localstorage objects: {exc}") from exc
        if any(item.spec.node == node_name for item in existing):
            raise ValidationError(
                f"node ({node_name}) already binded to the other localstorage"
            )

    def _validate_volume_group(self, ls: LocalStorage) -> None:
        if not ls.spec.volume_group:
            raise ValidationError("spec.volumeGroup may not be empty")