"""Versioned manifests kept in an object store, with writer fencing."""

from __future__ import annotations

import copy
import dataclasses
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from skvstore.manifest import JsonManifestCodec, Manifest
from skvstore.types import (
    FencedError,
    InvalidDbStateError,
    InvalidDeletionError,
    ManifestMissingError,
    ManifestVersionExistsError,
)

_log = logging.getLogger(__name__)

_MANIFEST_SUFFIX = "manifest"


def _normalize(path: str) -> str:
    return "/".join(part for part in path.split("/") if part)


def _join(prefix: str, path: str) -> str:
    prefix, path = _normalize(prefix), _normalize(path)
    if not prefix:
        return path
    if not path:
        return prefix
    return f"{prefix}/{path}"


@dataclass(frozen=True)
class ObjectMeta:
    """Metadata of a stored object."""

    location: str
    last_modified: datetime
    size: int


class InMemoryObjectStore:
    """A thread-safe object store held in memory."""

    def __init__(self) -> None:
        self._objects: dict[str, tuple[bytes, datetime]] = {}
        self._lock = threading.Lock()

    def put_if_not_exists(self, path: str, data: bytes) -> None:
        """Store ``data``; raises FileExistsError if ``path`` is taken."""
        path = _normalize(path)
        with self._lock:
            if path in self._objects:
                raise FileExistsError(path)
            self._objects[path] = (bytes(data), datetime.now(timezone.utc))

    def get(self, path: str) -> bytes:
        """Return the object's bytes; raises FileNotFoundError if absent."""
        path = _normalize(path)
        with self._lock:
            try:
                return self._objects[path][0]
            except KeyError:
                raise FileNotFoundError(path) from None

    def delete(self, path: str) -> None:
        with self._lock:
            self._objects.pop(_normalize(path), None)

    def list(self, prefix: Optional[str] = None) -> list[ObjectMeta]:
        """All objects below ``prefix`` (everything when it is empty)."""
        prefix = _normalize(prefix or "")
        with self._lock:
            return [
                ObjectMeta(path, modified, len(data))
                for path, (data, modified) in sorted(self._objects.items())
                if not prefix or path.startswith(prefix + "/")
            ]


@dataclass(frozen=True)
class ManifestFileMetadata:
    """Metadata of one manifest file."""

    id: int
    location: str
    last_modified: datetime
    size: int


class ManifestStore:
    """Reads and writes numbered manifests below ``<root>/manifest``."""

    def __init__(self, root_path: str, object_store: Any) -> None:
        self._directory = _join(root_path, _MANIFEST_SUFFIX)
        self._object_store = object_store
        self._codec = JsonManifestCodec()

    def _manifest_path(self, manifest_id: int) -> str:
        return _join(self._directory, f"{manifest_id:020}.{_MANIFEST_SUFFIX}")

    def write_manifest(self, manifest_id: int, manifest: Manifest) -> None:
        """Write a manifest; raises ManifestVersionExistsError if the id exists."""
        try:
            self._object_store.put_if_not_exists(
                self._manifest_path(manifest_id), self._codec.encode(manifest)
            )
        except FileExistsError:
            raise ManifestVersionExistsError(
                f"manifest {manifest_id} already exists"
            ) from None

    def delete_manifest(self, manifest_id: int) -> None:
        """Delete a manifest other than the current one."""
        latest = self.read_latest_manifest()
        if latest is None:
            raise ManifestMissingError("no manifest exists")
        if latest[0] == manifest_id:
            raise InvalidDeletionError(f"manifest {manifest_id} is the active manifest")
        self._object_store.delete(self._manifest_path(manifest_id))

    @staticmethod
    def _parse_id(filename: str) -> int:
        stem, dot, extension = filename.rpartition(".")
        if not dot or extension != _MANIFEST_SUFFIX:
            raise InvalidDbStateError(f"not a manifest file: {filename}")
        head = stem.split(".")[0]
        if not head.isdigit():
            raise InvalidDbStateError(f"not a manifest file: {filename}")
        return int(head)

    def list_manifests(
        self, start: Optional[int] = None, end: Optional[int] = None
    ) -> list[ManifestFileMetadata]:
        """Manifests with ``start <= id < end``, sorted by id; the last is current."""
        manifests = []
        for meta in self._object_store.list(self._directory):
            relative = meta.location[len(self._directory) + 1:]
            try:
                manifest_id = self._parse_id(relative.rsplit("/", 1)[-1])
            except InvalidDbStateError:
                _log.warning("Unknown file in manifest directory: %s", meta.location)
                continue
            if start is not None and manifest_id < start:
                continue
            if end is not None and manifest_id >= end:
                continue
            manifests.append(
                ManifestFileMetadata(manifest_id, relative, meta.last_modified, meta.size)
            )
        manifests.sort(key=lambda m: m.id)
        return manifests

    def read_latest_manifest(self) -> Optional[tuple[int, Manifest]]:
        manifests = self.list_manifests()
        if not manifests:
            return None
        return self.read_manifest(manifests[-1].id)

    def read_manifest(self, manifest_id: int) -> Optional[tuple[int, Manifest]]:
        """The manifest with this id, or None if it does not exist."""
        try:
            data = self._object_store.get(self._manifest_path(manifest_id))
        except FileNotFoundError:
            return None
        return manifest_id, self._codec.decode(data)


class StoredManifest:
    """The latest manifest as known locally, updated with consecutive ids.

    An update is written under the next id and fails with
    ManifestVersionExistsError if another writer used that id first.
    """

    def __init__(self, manifest_id: int, manifest: Manifest, store: ManifestStore) -> None:
        self._id = manifest_id
        self._manifest = manifest
        self._store = store

    @property
    def id(self) -> int:
        return self._id

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    @classmethod
    def init_new_db(cls, store: ManifestStore, core: Any) -> StoredManifest:
        manifest = Manifest(copy.deepcopy(core), 0, 0)
        store.write_manifest(1, manifest)
        return cls(1, manifest, store)

    @classmethod
    def load(cls, store: ManifestStore) -> Optional[StoredManifest]:
        latest = store.read_latest_manifest()
        if latest is None:
            return None
        manifest_id, manifest = latest
        return cls(manifest_id, manifest, store)

    def db_state(self) -> Any:
        return self._manifest.core

    def refresh(self) -> Any:
        latest = self._store.read_latest_manifest()
        if latest is None:
            raise InvalidDbStateError("no manifest found on refresh")
        self._id, self._manifest = latest
        return self._manifest.core

    def update_db_state(self, core: Any) -> None:
        self._update_manifest(dataclasses.replace(self._manifest, core=copy.deepcopy(core)))

    def _update_manifest(self, manifest: Manifest) -> None:
        new_id = self._id + 1
        self._store.write_manifest(new_id, manifest)
        self._manifest = manifest
        self._id = new_id


class FenceableManifest:
    """A stored manifest that fences older writers by bumping an epoch.

    Once a newer holder of the same role has bumped the epoch, every
    operation raises FencedError.
    """

    def __init__(self, stored_manifest: StoredManifest, epoch_field: str) -> None:
        self._stored = stored_manifest
        self._epoch_field = epoch_field
        manifest = stored_manifest.manifest
        self._local_epoch = getattr(manifest, epoch_field) + 1
        stored_manifest._update_manifest(
            dataclasses.replace(manifest, **{epoch_field: self._local_epoch})
        )

    @classmethod
    def init_writer(cls, stored_manifest: StoredManifest) -> FenceableManifest:
        return cls(stored_manifest, "writer_epoch")

    @classmethod
    def init_compactor(cls, stored_manifest: StoredManifest) -> FenceableManifest:
        return cls(stored_manifest, "compactor_epoch")

    def _check_epoch(self) -> None:
        stored_epoch = getattr(self._stored.manifest, self._epoch_field)
        if self._local_epoch < stored_epoch:
            raise FencedError(f"{self._epoch_field} {self._local_epoch} < {stored_epoch}")
        if self._local_epoch > stored_epoch:
            raise RuntimeError("the stored epoch is lower than the local epoch")

    def db_state(self) -> Any:
        self._check_epoch()
        return self._stored.db_state()

    def refresh(self) -> Any:
        self._stored.refresh()
        return self.db_state()

    def update_db_state(self, core: Any) -> None:
        self._check_epoch()
        self._stored.update_db_state(core)