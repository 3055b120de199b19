import json

import pytest

from skvstore.manifest import JsonManifestCodec, Manifest
from skvstore.types import InvalidDbStateError


def test_default_epochs_are_zero():
    manifest = Manifest(core={"next_wal_sst_id": 1})
    assert manifest.writer_epoch == 0
    assert manifest.compactor_epoch == 0


def test_round_trip():
    codec = JsonManifestCodec()
    manifest = Manifest(
        core={"next_wal_sst_id": 123, "l0": ["a", "b"], "l0_last_compacted": None},
        writer_epoch=4,
        compactor_epoch=7,
    )
    assert codec.decode(codec.encode(manifest)) == manifest


def test_encoding_is_json_with_all_fields():
    codec = JsonManifestCodec()
    manifest = Manifest(core={"next_wal_sst_id": 5}, writer_epoch=2, compactor_epoch=3)
    document = json.loads(codec.encode(manifest))
    assert document == {
        "core": {"next_wal_sst_id": 5},
        "writer_epoch": 2,
        "compactor_epoch": 3,
    }


def test_encoding_is_deterministic():
    codec = JsonManifestCodec()
    first = Manifest(core={"b": 1, "a": 2})
    second = Manifest(core={"a": 2, "b": 1})
    assert codec.encode(first) == codec.encode(second)


@pytest.mark.parametrize(
    "data",
    [
        b"not json",
        b"\xff\xfe",
        b"[1, 2]",
        b'{"core": {}, "writer_epoch": 1}',
        b'{"core": {}, "writer_epoch": "x", "compactor_epoch": 0}',
        b'{"core": {}, "writer_epoch": -1, "compactor_epoch": 0}',
    ],
)
def test_decode_rejects_malformed(data):
    with pytest.raises(InvalidDbStateError):
        JsonManifestCodec().decode(data)