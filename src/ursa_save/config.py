from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)

ENV_SAVE_DIR = "URSA_SAVE_DIR"
ENV_MAX_ROLLBACKS = "URSA_MAX_ROLLBACKS"
ENV_TELEMETRY = "URSA_TELEMETRY"

_PATH_FIELDS = ("storage_dir", "telemetry_dir")


@dataclass
class PersistenceConfig:
    """Configuration for the save subsystem.

    Override by providing a JSON file with any of these keys:
      - key_prefix: str (default "save:")
      - max_rollbacks_per_slot: int (default 5, never below 1)
      - storage_dir: path (default: platform user data dir)
      - quick_save_debounce_ms: int (default 500)
      - import_max_bytes / import_max_json_nodes / import_max_json_depth: int
      - telemetry_enabled: bool (default False)
      - telemetry_dir: path
    """

    key_prefix: str = "save:"
    max_rollbacks_per_slot: int = 5
    storage_dir: Optional[Path] = None
    quick_save_debounce_ms: int = 500
    import_max_bytes: int = 1024 * 1024
    import_max_json_nodes: int = 50_000
    import_max_json_depth: int = 64
    telemetry_enabled: bool = False
    telemetry_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        if not isinstance(self.key_prefix, str) or not self.key_prefix:
            raise ConfigError("key_prefix must be a non-empty string")
        if self.max_rollbacks_per_slot < 1:
            logger.warning(
                "max_rollbacks_per_slot < 1 provided (%s). Clamping to 1.", self.max_rollbacks_per_slot
            )
            self.max_rollbacks_per_slot = 1
        self.max_rollbacks_per_slot = int(self.max_rollbacks_per_slot)
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                setattr(self, name, Path(value))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "PersistenceConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {unknown}")
        try:
            return cls(**dict(raw))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid config values: {e}") from e

    @classmethod
    def from_json(cls, path: Path) -> "PersistenceConfig":
        """Load configuration from JSON file. Missing fields fallback to defaults."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read config file {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must hold a JSON object")
        cfg = cls.from_mapping(raw)
        logger.info("Loaded persistence config from %s", path)
        return cfg

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> "PersistenceConfig":
        """Return a copy with URSA_* environment overrides applied."""
        env = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}
        if env.get(ENV_SAVE_DIR):
            overrides["storage_dir"] = Path(env[ENV_SAVE_DIR])
        if env.get(ENV_MAX_ROLLBACKS):
            try:
                overrides["max_rollbacks_per_slot"] = int(env[ENV_MAX_ROLLBACKS])
            except ValueError as e:
                raise ConfigError(f"{ENV_MAX_ROLLBACKS} must be an integer") from e
        if env.get(ENV_TELEMETRY):
            overrides["telemetry_enabled"] = env[ENV_TELEMETRY].strip().lower() in ("1", "true", "yes", "on")
        return dataclasses.replace(self, **overrides)

    @classmethod
    def load(cls, path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> "PersistenceConfig":
        base = cls.from_json(path) if path is not None else cls()
        return base.with_env(environ)
