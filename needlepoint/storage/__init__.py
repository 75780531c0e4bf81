from __future__ import annotations

from typing import Optional

from .fs_storage import FSStorage

_storage_instance: Optional[FSStorage] = None


def get_storage() -> FSStorage:
    global _storage_instance
    if _storage_instance is None:
        _storage_instance = FSStorage()
    return _storage_instance
