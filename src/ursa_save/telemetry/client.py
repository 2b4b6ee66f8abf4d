"""Local JSON-lines recording of save lifecycle signals.

One file per client session under the telemetry directory. Older session
files beyond ``keep_sessions`` are pruned when a session first writes.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from platformdirs import PlatformDirs

logger = logging.getLogger(__name__)

SESSION_GLOB = "session-*.jsonl"


def default_telemetry_dir() -> Path:
    return Path(PlatformDirs("Ursa", "Ursa").user_log_dir) / "telemetry"


@dataclass
class TelemetryRecord:
    signal: str
    ts: str
    session: str
    seq: int
    attrs: Dict[str, Any]


class TelemetryClient:
    """Buffered recorder; flushes every ``flush_size`` records and on close().

    A disabled client is inert: it neither buffers nor touches the disk.
    """

    def __init__(
        self,
        enabled: bool = True,
        out_dir: Optional[Path] = None,
        app_name: str = "ursa-save",
        flush_size: int = 50,
        keep_sessions: int = 20,
    ) -> None:
        self.enabled = enabled
        self._dir = Path(out_dir) if out_dir is not None else default_telemetry_dir()
        self._flush_size = max(1, flush_size)
        self._keep_sessions = max(1, keep_sessions)
        self._session = uuid.uuid4().hex
        started = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        self._file = self._dir / f"session-{started}-{self._session[:8]}.jsonl"
        self._context: Dict[str, Any] = {"app": app_name, "pid": os.getpid()}
        self._pending: List[TelemetryRecord] = []
        self._count = 0
        self._pruned = False
        self._mutex = threading.Lock()

    @property
    def output_file(self) -> Path:
        return self._file

    @property
    def session(self) -> str:
        return self._session

    def set_context(self, **attrs: Any) -> None:
        """Attributes merged into every later record."""
        with self._mutex:
            self._context.update(attrs)

    def record(self, signal: str, attrs: Optional[Dict[str, Any]] = None) -> None:
        if not self.enabled:
            return
        with self._mutex:
            self._count += 1
            self._pending.append(
                TelemetryRecord(
                    signal=signal,
                    ts=datetime.now(timezone.utc).isoformat(),
                    session=self._session,
                    seq=self._count,
                    attrs={**self._context, **(attrs or {})},
                )
            )
            full = len(self._pending) >= self._flush_size
        if full:
            self.flush()

    def flush(self) -> None:
        if not self.enabled:
            return
        with self._mutex:
            rows, self._pending = self._pending, []
        if not rows:
            return
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            if not self._pruned:
                self._prune_old_sessions()
                self._pruned = True
            lines = "".join(json.dumps(asdict(row), ensure_ascii=False, default=str) + "\n" for row in rows)
            with self._file.open("a", encoding="utf-8") as sink:
                sink.write(lines)
        except BaseException:
            # Keep unwritten records ahead of anything recorded meanwhile.
            with self._mutex:
                self._pending[:0] = rows
            raise
        logger.debug("Telemetry: wrote %d record(s) to %s", len(rows), self._file.name)

    def _prune_old_sessions(self) -> None:
        others = sorted(p for p in self._dir.glob(SESSION_GLOB) if p != self._file)
        # This session's file is about to exist, so keep one slot for it.
        for stale in others[: max(0, len(others) - (self._keep_sessions - 1))]:
            try:
                stale.unlink()
            except OSError:
                logger.debug("Could not prune telemetry file %s", stale, exc_info=True)

    def close(self) -> None:
        self.flush()

    def __enter__(self) -> "TelemetryClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
