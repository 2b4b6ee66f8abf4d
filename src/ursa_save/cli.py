"""Maintenance CLI for persisted save data.

Every command prints one JSON document on stdout; logs go to stderr. The
exit code is 0 on success and 1 when the underlying result failed.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .app import PersistenceServices, build_services
from .config import PersistenceConfig
from .errors import ConfigError
from .logging_config import configure_logging
from .save.results import SlotResult
from .save.sanitize import SanitizeScope, sanitize_persisted_state
from .schema.save_game import preflight_save_game_migration
from .state import GameStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ursa-save", description="Inspect and repair Ursa save data")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--data-dir", type=Path, default=None, help="Save data directory (overrides config)")
    parser.add_argument("--config", type=Path, default=None, help="Path to a JSON config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("inspect", help="Classify the persisted quick save")
    sub.add_parser("slots", help="List save slots, newest first")
    rollbacks = sub.add_parser("rollbacks", help="List rollback snapshots of a slot")
    rollbacks.add_argument("slot")
    restore = sub.add_parser("restore-rollback", help="Make a rollback snapshot the slot's current save")
    restore.add_argument("slot")
    restore.add_argument("snapshot_id")
    delete = sub.add_parser("delete", help="Delete a slot with its rollback history")
    delete.add_argument("slot")
    sub.add_parser("reset", help="Delete the persisted quick save")
    sub.add_parser("reconcile", help="Rebuild the slot index from slot bodies on disk")
    sanitize = sub.add_parser("sanitize", help="Remove persisted save data by scope")
    sanitize.add_argument("--scope", choices=[scope.value for scope in SanitizeScope], default=SanitizeScope.ALL.value)
    check = sub.add_parser("check", help="Check whether a save file can be loaded, without loading it")
    check.add_argument("file", type=Path)
    return parser


def _emit(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def _slot_result(result: SlotResult) -> Dict[str, Any]:
    if not result.ok:
        return {"ok": False, "code": result.code.value if result.code else None, "message": result.message}
    value = result.value
    if isinstance(value, list):
        value = [item.to_wire() for item in value]
    elif hasattr(value, "to_wire"):
        value = value.to_wire()
    return {"ok": True, "value": value}


def _check_file(path: Path) -> Dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        return {"ok": False, "code": "file-read-failed", "message": str(e)}
    except (ValueError, RecursionError):
        return {"ok": False, "code": "invalid-json", "message": "Save file is not valid JSON."}
    result = preflight_save_game_migration(payload)
    return {
        "ok": result.ok,
        "version": result.version,
        "code": result.code.value if result.code else None,
        "message": result.message,
    }


def run(args: argparse.Namespace, services: PersistenceServices) -> int:
    command = args.command
    if command == "inspect":
        inspection = services.recovery.inspect_startup()
        _emit(inspection.to_dict())
        return 1 if inspection.status.value in ("corrupted", "storage-unavailable") else 0
    if command == "slots":
        _emit([entry.to_wire() for entry in services.slots.list_slots()])
        return 0
    if command == "rollbacks":
        _emit([snapshot.to_wire() for snapshot in services.slots.list_rollback_snapshots(args.slot)])
        return 0

    outcome: Dict[str, Any]
    if command == "restore-rollback":
        outcome = _slot_result(services.slots.restore_rollback_snapshot(args.slot, args.snapshot_id))
    elif command == "delete":
        outcome = _slot_result(services.slots.delete_slot(args.slot))
    elif command == "reconcile":
        outcome = _slot_result(services.slots.reconcile_index())
    elif command == "reset":
        outcome = services.recovery.reset_persisted().to_dict()
    elif command == "sanitize":
        result = sanitize_persisted_state(services.storage, services.keys, args.scope)
        outcome = {"ok": result.ok, "removedKeys": result.removed_keys}
    elif command == "check":
        outcome = _check_file(args.file)
    else:  # pragma: no cover - argparse rejects unknown commands
        raise ValueError(f"Unknown command: {command}")
    _emit(outcome)
    return 0 if outcome["ok"] else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.WARNING)

    try:
        config = PersistenceConfig.load(args.config)
    except ConfigError as e:
        logger.error("%s", e)
        _emit({"ok": False, "code": "config-error", "message": str(e)})
        return 1
    if args.data_dir is not None:
        config.storage_dir = args.data_dir

    # The CLI has no running game; a fresh store receives any rehydrated state.
    services = build_services(config, GameStore())
    try:
        return run(args, services)
    finally:
        services.close()


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
