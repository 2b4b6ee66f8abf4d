from __future__ import annotations

from typing import Dict, List, Mapping, Optional


class MemoryStorage:
    """Dict-backed storage for tests and headless runs."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("MemoryStorage only stores strings")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def snapshot(self) -> Dict[str, str]:
        """Copy of the stored data, handy for asserting that nothing changed."""
        return dict(self._data)

    def __len__(self) -> int:
        return len(self._data)
