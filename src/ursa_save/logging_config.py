from __future__ import annotations

import logging
import os
import sys
from typing import Mapping, Optional

LOG_LEVEL_ENV = "URSA_LOG_LEVEL"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def resolve_level(default_level: int, environ: Optional[Mapping[str, str]] = None) -> int:
    """URSA_LOG_LEVEL by name (e.g. "debug"), falling back to default_level when unset or unknown."""
    env = os.environ if environ is None else environ
    name = (env.get(LOG_LEVEL_ENV) or "").strip().upper()
    level = logging.getLevelName(name) if name else default_level
    return level if isinstance(level, int) else default_level


def configure_logging(default_level: int = logging.INFO) -> None:
    """Send log records to stderr, keeping stdout free for CLI output.

    Leaves existing root handlers alone so an embedding game keeps its own setup.
    """
    root = logging.getLogger()
    root.setLevel(resolve_level(default_level))
    if root.handlers:
        return
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
