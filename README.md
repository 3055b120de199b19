# skvstore

Core pieces of a log-structured key-value store. Each piece can be used on
its own:

- `skvstore.types`: the row model (`KeyValue`, `KeyValueDeletable`,
  `RowAttributes`, `RowFeature`), the `KeyValueIterator` base class and the
  exceptions (`StoreError` and its subclasses `InvalidRowFlagsError`,
  `FencedError`, `ManifestVersionExistsError`, `InvalidDeletionError`,
  `ManifestMissingError` and `InvalidDbStateError`).
- `skvstore.filter`: a bloom filter that uses enhanced double hashing over
  SipHash-1-3 key hashes (`BloomFilterBuilder`, `BloomFilter`,
  `filter_hash`).
- `skvstore.row_codec`: the `v0` binary row format (`encode_row_v0`,
  `decode_row_v0`, `RowFlags`).
- `skvstore.mem_table`: sorted in-memory tables with size tracking and
  durability and flush notification (`WritableKVTable`, `KVTable`,
  `MemTableIterator`, `ImmutableWal`, `ImmutableMemtable`).
- `skvstore.merge_iterator`: `MergeIterator` and `TwoMergeIterator`. Both
  merge sorted sources and keep only the entry from the earliest source for
  each key.
- `skvstore.manifest` and `skvstore.manifest_store`: numbered manifests kept
  in an object store. Updates use optimistic concurrency (`StoredManifest`),
  and an epoch fences competing writers or compactors (`FenceableManifest`).
  Manifests are stored as JSON (`JsonManifestCodec`), and `InMemoryObjectStore`
  provides an object store held in memory.
- `skvstore.metrics`: thread-safe `Counter` and `Gauge`, and `DbStats`, which
  groups them.

## Installing

```
pip install skvstore
```

## Examples

### Memtable and iteration

```python
from skvstore.mem_table import WritableKVTable
from skvstore.types import RowAttributes

table = WritableKVTable()
table.put(b"b", b"2", RowAttributes(ts=1))
table.put(b"a", b"1", RowAttributes(ts=2))
table.delete(b"b", RowAttributes(ts=3))

for kv in table.table().iter():
    print(kv.key, kv.value)     # b'a' b'1'; tombstones are skipped

print(table.size())             # key, value and timestamp bytes held
```

`next_entry()` returns tombstones as well. In a `KeyValueDeletable`, a value
of `None` marks a tombstone. `KVTable.range_from(start)` begins at the first
key that is greater than or equal to `start`.

### Bloom filter

```python
from skvstore.filter import BloomFilter, BloomFilterBuilder, filter_hash

builder = BloomFilterBuilder(10)          # bits per key
builder.add_key(b"apple")
bloom = BloomFilter.decode(builder.build().encode())
assert bloom.might_contain(filter_hash(b"apple"))
```

### Row codec

```python
from skvstore.row_codec import decode_row_v0, encode_row_v0
from skvstore.types import RowFeature

features = [RowFeature.FLAGS, RowFeature.TIMESTAMP]
row = encode_row_v0(3, b"key", b"value", features, 1)
kv = decode_row_v0(b"prefixdata", features, row)
print(kv.key, kv.value, kv.attributes.ts)  # b'prekey' b'value' 1
```

Passing a value of `None` encodes a tombstone. Unknown flag bits raise
`InvalidRowFlagsError`, and truncated input raises `ValueError`.

### Merging

```python
from skvstore.merge_iterator import MergeIterator

merged = MergeIterator([table.table().iter(), other_table.table().iter()])
for kv in merged:
    ...
```

### Manifests with fencing

```python
from skvstore.manifest_store import (
    FenceableManifest, InMemoryObjectStore, ManifestStore, StoredManifest,
)
from skvstore.types import FencedError

store = ManifestStore("/root/path", InMemoryObjectStore())
core = {"next_wal_sst_id": 1}          # any JSON-compatible state
stored = StoredManifest.init_new_db(store, core)

writer1 = FenceableManifest.init_writer(stored)
writer2 = FenceableManifest.init_writer(StoredManifest.load(store))
try:
    writer1.refresh()
except FencedError:
    print("writer1 was fenced by writer2")

print([m.id for m in store.list_manifests()])   # [1, 2, 3]
```

- Writing a manifest id that already exists raises
  `ManifestVersionExistsError`.
- Deleting the active manifest raises `InvalidDeletionError`.
- Deleting when there is no manifest at all raises `ManifestMissingError`.
- `list_manifests(start, end)` returns the ids `start <= id < end`.

## What this package does not do

It provides components, not a database. It does not write sorted-table files,
persist a write-ahead log, run flushes, compaction or garbage collection in
the background, or cache objects. The only object store it includes holds its
data in memory. `ManifestStore` accepts any object with the same
`put_if_not_exists`, `get`, `delete` and `list` methods.

## Running the tests

```
pip install -e ".[test]"
pytest
```