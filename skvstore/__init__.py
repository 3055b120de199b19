"""Building blocks of a log-structured key-value store: memtables, bloom filters, a row codec, merge iterators, metrics and a fenced manifest store."""

__version__ = "0.1.0"