"""
Record store capability: collection-scoped queries, batched writes, write events.
"""

from .base import RecordStore, StoredRecord, Write, WriteEvent, server_timestamp
from .batching import BatchWriter
from .json_store import JsonFileRecordStore
from .memory import InMemoryRecordStore

__all__ = [
    "RecordStore",
    "StoredRecord",
    "Write",
    "WriteEvent",
    "server_timestamp",
    "BatchWriter",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
]
