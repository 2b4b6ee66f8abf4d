from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ..schema.models import SLOT_ID_PATTERN

_SLOT_RE = re.compile(SLOT_ID_PATTERN)

ROLLBACK_SUFFIX = ":rollback"
INDEX_NAME = "index"


@dataclass(frozen=True)
class SaveKeys:
    """Persisted key layout.

    save:quick                  quick-save body (startup recovery reads this)
    save:slot:<id>              current body of a named slot
    save:slot:<id>:rollback     rollback history of that slot, most recent first
    save:slot:index             JSON array of SaveSlotMetadata
    """

    prefix: str = "save:"

    @property
    def quick(self) -> str:
        return f"{self.prefix}quick"

    @property
    def slot_prefix(self) -> str:
        return f"{self.prefix}slot:"

    @property
    def index(self) -> str:
        return f"{self.slot_prefix}{INDEX_NAME}"

    def slot(self, slot_id: str) -> str:
        return f"{self.slot_prefix}{slot_id}"

    def rollback(self, slot_id: str) -> str:
        return f"{self.slot(slot_id)}{ROLLBACK_SUFFIX}"

    def slot_id_for(self, key: str) -> Optional[str]:
        """Slot id if key is a slot body key, else None."""
        if not key.startswith(self.slot_prefix):
            return None
        candidate = key[len(self.slot_prefix):]
        return candidate if is_valid_slot(candidate) else None


def is_valid_slot(slot: str) -> bool:
    """Slot ids are 1-32 chars of [a-zA-Z0-9_-]; "index" is reserved for the slot index key."""
    return isinstance(slot, str) and bool(_SLOT_RE.fullmatch(slot)) and slot != INDEX_NAME
