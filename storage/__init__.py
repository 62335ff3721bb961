from .kv_store import InMemoryStore, KeyValueStore, SQLiteStore, StoreItem, make_key

__all__ = [
    "InMemoryStore",
    "KeyValueStore",
    "SQLiteStore",
    "StoreItem",
    "make_key",
]
