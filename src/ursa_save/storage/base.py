from __future__ import annotations

from typing import Iterable, Optional, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStorage(Protocol):
    """The storage capability consumed by the save services.

    Implementations are synchronous and may raise on any call. Services treat an
    exception as a storage failure and never let it escape to their callers.
    """

    def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None when the key is absent."""

    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    def remove(self, key: str) -> None:
        """Remove key. Removing an absent key is not an error."""


@runtime_checkable
class EnumerableStorage(KeyValueStorage, Protocol):
    """Storage that can also list its keys (needed for index reconciliation and wipes)."""

    def keys(self) -> Iterable[str]:
        """Return every key currently stored."""
