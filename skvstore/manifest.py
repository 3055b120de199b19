"""The database manifest and its serialised form."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from skvstore.types import InvalidDbStateError


@dataclass(frozen=True)
class Manifest:
    """The database state plus the epochs of the current writer and compactor.

    ``core`` is the JSON-compatible description of the database state.
    """

    core: Any
    writer_epoch: int = 0
    compactor_epoch: int = 0


class JsonManifestCodec:
    """Encodes manifests as UTF-8 JSON documents."""

    def encode(self, manifest: Manifest) -> bytes:
        document = {
            "core": manifest.core,
            "writer_epoch": manifest.writer_epoch,
            "compactor_epoch": manifest.compactor_epoch,
        }
        return json.dumps(document, sort_keys=True, separators=(",", ":")).encode("utf-8")

    def decode(self, data: bytes) -> Manifest:
        """Parse an encoded manifest; raises InvalidDbStateError if malformed."""
        try:
            document = json.loads(bytes(data).decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise InvalidDbStateError(f"manifest is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise InvalidDbStateError("manifest document is not an object")
        try:
            core = document["core"]
            writer_epoch = document["writer_epoch"]
            compactor_epoch = document["compactor_epoch"]
        except KeyError as exc:
            raise InvalidDbStateError(f"manifest is missing field {exc}") from exc
        for name, epoch in (("writer_epoch", writer_epoch), ("compactor_epoch", compactor_epoch)):
            if isinstance(epoch, bool) or not isinstance(epoch, int) or epoch < 0:
                raise InvalidDbStateError(f"manifest field {name} is not an epoch")
        return Manifest(core, writer_epoch, compactor_epoch)