"""
Normalized storage.

Usage:
    from engmetrics.storage import StorageHandle

    storage = StorageHandle(":memory:")
    storage.issues.upsert({"key": "acme/api#1"}, create={...}, update={...})
"""

from engmetrics.storage.handle import StorageHandle
from engmetrics.storage.repository import EntityRepository

__all__ = ["EntityRepository", "StorageHandle"]
