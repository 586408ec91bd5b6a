"""Storage adapters.

The document adapter is imported from dynarecord.storage.document directly
so that pymongo is only loaded when the document backend is used.
"""

from dynarecord.storage.base import StorageAdapter
from dynarecord.storage.relational import RelationalAdapter

__all__ = ["StorageAdapter", "RelationalAdapter"]
