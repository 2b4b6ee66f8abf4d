"""Generic versioned schema migration.

A payload carries an integer ``version``. Payloads at the current version are
only validated. Older payloads are brought forward by a chain of single-step
upgraders (``n -> n + 1``), and the result is validated against the current
schema once more, so a faulty upgrader cannot produce an invalid current
payload. Versions newer than the current one, or without an upgrade path, are
rejected rather than guessed at.

The engine holds no mutable state and never mutates its input.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Upgrader = Callable[[Any], Any]
LegacyValidator = Callable[[Any], bool]


class MigrationFailureCode(str, Enum):
    INVALID_PAYLOAD = "invalid-payload"
    UNSUPPORTED_VERSION = "unsupported-version"
    MIGRATION_FAILED = "migration-failed"


@dataclass(frozen=True)
class MigrationResult(Generic[T]):
    ok: bool
    version: Optional[int]
    value: Optional[T] = None
    code: Optional[MigrationFailureCode] = None
    message: str = ""
    applied_versions: List[int] = field(default_factory=list)

    @classmethod
    def failure(cls, code: MigrationFailureCode, version: Optional[int], message: str) -> "MigrationResult[T]":
        return cls(ok=False, version=version, code=code, message=message)


def read_version(payload: Any) -> Optional[int]:
    """Return the payload's declared version, or None if it has no integer version."""
    if not isinstance(payload, Mapping):
        return None
    version = payload.get("version")
    # bool is an int subclass; True must not pass for version 1
    if isinstance(version, bool) or not isinstance(version, int):
        return None
    return version


class VersionedSchemaMigration(Generic[T]):
    """Migrate plain-data payloads to the current schema version."""

    def __init__(
        self,
        *,
        current_version: int,
        parse_current: Callable[[Any], T],
        migrations: Optional[Mapping[int, Upgrader]] = None,
        legacy_validators: Optional[Mapping[int, LegacyValidator]] = None,
    ) -> None:
        self.current_version = current_version
        self._parse_current = parse_current
        self._migrations: Dict[int, Upgrader] = dict(migrations or {})
        self._legacy_validators: Dict[int, LegacyValidator] = dict(legacy_validators or {})

    def _parse(self, payload: Any) -> Optional[T]:
        try:
            return self._parse_current(payload)
        except (ValueError, TypeError, RecursionError) as e:
            logger.debug("Payload failed validation for version %s: %s", self.current_version, e)
            return None

    def _missing_step(self, version: int) -> Optional[int]:
        cursor = version
        while cursor < self.current_version:
            if cursor not in self._migrations:
                return cursor
            cursor += 1
        return None

    def preflight(self, payload: Any) -> MigrationResult[T]:
        """Report whether payload can be migrated, without running any upgrader."""
        version = read_version(payload)
        if version is None:
            return MigrationResult.failure(
                MigrationFailureCode.INVALID_PAYLOAD, None, "Schema payload must include an integer version."
            )

        if version > self.current_version:
            return MigrationResult.failure(
                MigrationFailureCode.UNSUPPORTED_VERSION,
                version,
                f"Schema version {version} is newer than supported {self.current_version}.",
            )

        missing = self._missing_step(version)
        if missing is not None:
            return MigrationResult.failure(
                MigrationFailureCode.UNSUPPORTED_VERSION,
                version,
                f"No migration path from version {missing} to {missing + 1}.",
            )

        if version == self.current_version:
            parsed = self._parse(payload)
            if parsed is None:
                return MigrationResult.failure(
                    MigrationFailureCode.INVALID_PAYLOAD,
                    version,
                    f"Schema payload for version {version} failed validation.",
                )
            return MigrationResult(ok=True, version=version, value=parsed)

        validate_legacy = self._legacy_validators.get(version)
        if validate_legacy is not None and not validate_legacy(payload):
            return MigrationResult.failure(
                MigrationFailureCode.INVALID_PAYLOAD,
                version,
                f"Schema payload for legacy version {version} failed validation.",
            )

        return MigrationResult(ok=True, version=version)

    def migrate(self, payload: Any) -> MigrationResult[T]:
        preflight = self.preflight(payload)
        if not preflight.ok or preflight.value is not None:
            return preflight

        source_version = preflight.version
        assert source_version is not None
        cursor = source_version
        applied: List[int] = []

        try:
            current: Any = copy.deepcopy(payload)
        except RecursionError:
            logger.warning("Version %s payload is nested too deeply to migrate", source_version)
            return MigrationResult.failure(
                MigrationFailureCode.MIGRATION_FAILED,
                source_version,
                f"Schema payload for version {source_version} is nested too deeply to migrate.",
            )

        while cursor < self.current_version:
            step = self._migrations[cursor]
            try:
                current = step(current)
            except Exception as e:  # noqa: BLE001 - upgrader failures become a result
                logger.warning("Migration %s -> %s failed: %s", cursor, cursor + 1, e)
                return MigrationResult.failure(
                    MigrationFailureCode.MIGRATION_FAILED,
                    source_version,
                    f"Migration {cursor} -> {cursor + 1} failed: {e}",
                )
            cursor += 1
            applied.append(cursor)

        parsed = self._parse(current)
        if parsed is None:
            return MigrationResult.failure(
                MigrationFailureCode.INVALID_PAYLOAD,
                source_version,
                f"Migrated payload failed validation for version {self.current_version}.",
            )

        logger.info("Migrated payload from version %s through %s", source_version, applied)
        return MigrationResult(ok=True, version=source_version, value=parsed, applied_versions=applied)
