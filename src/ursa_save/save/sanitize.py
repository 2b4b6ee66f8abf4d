from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from ..storage.base import EnumerableStorage, KeyValueStorage
from .keys import SaveKeys

logger = logging.getLogger(__name__)


class SanitizeScope(str, Enum):
    SAVE_ONLY = "save-only"
    SLOTS = "slots"
    ALL = "all"


@dataclass(frozen=True)
class SanitizeResult:
    ok: bool
    removed_keys: List[str] = field(default_factory=list)


def collect_scoped_keys(scope: SanitizeScope, storage: KeyValueStorage, keys: SaveKeys) -> List[str]:
    """Keys a sanitize run over scope would remove. Enumerating scopes need EnumerableStorage."""
    if scope is SanitizeScope.SAVE_ONLY:
        return [keys.quick]
    if not isinstance(storage, EnumerableStorage):
        raise TypeError(f"Scope {scope.value!r} needs storage that can enumerate its keys")
    prefix = keys.slot_prefix if scope is SanitizeScope.SLOTS else keys.prefix
    found = [key for key in storage.keys() if key.startswith(prefix)]
    if scope is SanitizeScope.ALL and keys.quick not in found:
        found.insert(0, keys.quick)
    return found


def sanitize_persisted_state(
    storage: Optional[KeyValueStorage],
    keys: Optional[SaveKeys] = None,
    scope: Union[SanitizeScope, str] = SanitizeScope.ALL,
) -> SanitizeResult:
    """Remove persisted save data by scope.

    save-only: the quick-save key.
    slots: every slot body, rollback history and the slot index.
    all: every key under the persistence prefix, plus the quick-save key.
    """
    if storage is None:
        return SanitizeResult(ok=False)
    keys = keys or SaveKeys()
    try:
        scope = SanitizeScope(scope)
    except ValueError:
        logger.warning("Unknown sanitize scope %r", scope)
        return SanitizeResult(ok=False)

    try:
        targets = collect_scoped_keys(scope, storage, keys)
        for key in targets:
            storage.remove(key)
    except Exception:  # noqa: BLE001
        logger.error("Sanitizing persisted state (%s) failed", scope.value, exc_info=True)
        return SanitizeResult(ok=False)

    logger.info("Sanitized persisted state (%s): removed %d key(s)", scope.value, len(targets))
    return SanitizeResult(ok=True, removed_keys=targets)
