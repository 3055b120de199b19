import threading

from skvstore.mem_table import (
    ImmutableMemtable,
    ImmutableWal,
    ValueWithAttributes,
    WritableKVTable,
)
from skvstore.types import KeyValue, RowAttributes


def gen_attrs(ts):
    return RowAttributes(ts=ts)


def _five_rows():
    table = WritableKVTable()
    table.put(b"abc333", b"value3", gen_attrs(1))
    table.put(b"abc111", b"value1", gen_attrs(2))
    table.put(b"abc555", b"value5", gen_attrs(3))
    table.put(b"abc444", b"value4", gen_attrs(4))
    table.put(b"abc222", b"value2", gen_attrs(5))
    return table


def test_memtable_iter():
    table = _five_rows()
    it = table.table().iter()
    for n in "12345":
        kv = it.next()
        assert kv == KeyValue(f"abc{n * 3}".encode(), f"value{n}".encode())
    assert it.next() is None


def test_memtable_iter_entry_attrs():
    table = WritableKVTable()
    table.put(b"abc333", b"value3", gen_attrs(1))
    table.put(b"abc111", b"value1", gen_attrs(2))
    it = table.table().iter()
    kv = it.next_entry()
    assert kv.key == b"abc111"
    assert kv.attributes.ts == 2
    kv = it.next_entry()
    assert kv.key == b"abc333"
    assert kv.attributes.ts == 1
    assert it.next() is None


def test_memtable_range_from_existing_key():
    table = _five_rows()
    it = table.table().range_from(b"abc333")
    assert [(kv.key, kv.value) for kv in it] == [
        (b"abc333", b"value3"),
        (b"abc444", b"value4"),
        (b"abc555", b"value5"),
    ]


def test_memtable_range_from_nonexisting_key():
    table = _five_rows()
    it = table.table().range_from(b"abc345")
    assert [(kv.key, kv.value) for kv in it] == [
        (b"abc444", b"value4"),
        (b"abc555", b"value5"),
    ]


def test_memtable_iter_delete():
    table = WritableKVTable()
    table.put(b"abc333", b"value3", gen_attrs(1))
    table.delete(b"abc333", gen_attrs(2))
    it = table.table().iter()
    assert it.next() is None
    entry = table.table().get(b"abc333")
    assert entry == ValueWithAttributes(None, gen_attrs(2))


def test_memtable_track_sz():
    table = WritableKVTable()
    table.put(b"abc333", b"val1", gen_attrs(1))
    assert table.size() == 18
    table.put(b"def456", b"blablabla", RowAttributes(ts=None))
    assert table.size() == 33
    table.put(b"def456", b"blabla", gen_attrs(3))
    assert table.size() == 38
    table.delete(b"abc333", gen_attrs(4))
    assert table.size() == 26


def test_get_and_is_empty():
    table = WritableKVTable()
    assert table.table().is_empty()
    assert table.table().get(b"missing") is None
    table.put(b"k", b"v", gen_attrs(7))
    assert not table.table().is_empty()
    assert table.table().get(b"k") == ValueWithAttributes(b"v", gen_attrs(7))


def test_iterator_sees_later_inserts():
    table = WritableKVTable()
    table.put(b"a", b"1", gen_attrs(1))
    table.put(b"c", b"3", gen_attrs(2))
    it = table.table().iter()
    assert it.next().key == b"a"
    table.put(b"b", b"2", gen_attrs(3))
    assert it.next().key == b"b"
    assert it.next().key == b"c"
    assert it.next() is None


def test_durable_notification():
    table = WritableKVTable().table()
    assert table.is_durable() is False
    assert table.await_durable(0.01) is False
    threading.Timer(0.01, table.notify_durable).start()
    assert table.await_durable(5) is True
    assert table.is_durable() is True


def test_immutable_wal():
    writable = WritableKVTable()
    writable.put(b"k", b"v", gen_attrs(1))
    wal = ImmutableWal(7, writable)
    assert wal.id() == 7
    assert wal.table() is writable.table()
    assert wal.table().get(b"k").value == b"v"


def test_immutable_memtable_flush_notification():
    writable = WritableKVTable()
    imm = ImmutableMemtable(writable, 42)
    assert imm.last_wal_id() == 42
    assert imm.table() is writable.table()
    assert imm.await_flush_to_l0(0.01) is False
    imm.notify_flush_to_l0()
    assert imm.await_flush_to_l0(0.01) is True