from .item_store import ItemStore
from .cache_memory_store import CacheMemoryStore
from .sqlite_item_store import SQLiteItemStore

__all__ = ["ItemStore", "CacheMemoryStore", "SQLiteItemStore"]
