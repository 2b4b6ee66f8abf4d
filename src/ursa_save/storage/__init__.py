"""Storage capability and its adapters.

The save services only ever talk to a KeyValueStorage (get/set/remove). The
adapters here map that capability onto process memory or onto a directory of
files under the platform's user data dir.
"""

from .base import EnumerableStorage, KeyValueStorage
from .files import FileStorage, default_storage_root
from .memory import MemoryStorage

__all__ = [
    "EnumerableStorage",
    "FileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "default_storage_root",
]
