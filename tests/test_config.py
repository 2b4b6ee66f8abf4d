import json
import logging
from pathlib import Path

import pytest

from ursa_save.config import PersistenceConfig
from ursa_save.errors import ConfigError
from ursa_save.logging_config import configure_logging, resolve_level


def test_defaults():
    cfg = PersistenceConfig()

    assert cfg.key_prefix == "save:"
    assert cfg.max_rollbacks_per_slot == 5
    assert cfg.storage_dir is None
    assert cfg.quick_save_debounce_ms == 500
    assert cfg.import_max_bytes == 1024 * 1024
    assert cfg.telemetry_enabled is False


def test_rollback_cap_is_clamped(caplog):
    with caplog.at_level(logging.WARNING):
        cfg = PersistenceConfig(max_rollbacks_per_slot=0)

    assert cfg.max_rollbacks_per_slot == 1
    assert "Clamping" in caplog.text


def test_from_json_merges_with_defaults(tmp_path: Path):
    path = tmp_path / "persistence.json"
    path.write_text(json.dumps({"max_rollbacks_per_slot": 3, "storage_dir": str(tmp_path / "saves")}))

    cfg = PersistenceConfig.from_json(path)

    assert cfg.max_rollbacks_per_slot == 3
    assert cfg.storage_dir == tmp_path / "saves"
    assert cfg.key_prefix == "save:"


def test_unknown_keys_are_rejected(tmp_path: Path):
    path = tmp_path / "persistence.json"
    path.write_text(json.dumps({"max_rollbaks": 3}))

    with pytest.raises(ConfigError, match="max_rollbaks"):
        PersistenceConfig.from_json(path)


@pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
def test_unreadable_config_file(tmp_path: Path, content):
    path = tmp_path / "persistence.json"
    path.write_text(content)

    with pytest.raises(ConfigError):
        PersistenceConfig.from_json(path)


def test_empty_prefix_is_rejected():
    with pytest.raises(ConfigError):
        PersistenceConfig(key_prefix="")


def test_env_overrides(tmp_path: Path):
    cfg = PersistenceConfig().with_env(
        {"URSA_SAVE_DIR": str(tmp_path), "URSA_MAX_ROLLBACKS": "9", "URSA_TELEMETRY": "yes"}
    )

    assert cfg.storage_dir == tmp_path
    assert cfg.max_rollbacks_per_slot == 9
    assert cfg.telemetry_enabled is True


def test_env_bad_rollbacks():
    with pytest.raises(ConfigError):
        PersistenceConfig().with_env({"URSA_MAX_ROLLBACKS": "many"})


def test_load_combines_file_and_env(tmp_path: Path):
    path = tmp_path / "persistence.json"
    path.write_text(json.dumps({"max_rollbacks_per_slot": 3, "key_prefix": "slot1:"}))

    cfg = PersistenceConfig.load(path, environ={"URSA_MAX_ROLLBACKS": "7"})

    assert cfg.key_prefix == "slot1:"
    assert cfg.max_rollbacks_per_slot == 7


def test_resolve_level():
    assert resolve_level(logging.INFO, {}) == logging.INFO
    assert resolve_level(logging.INFO, {"URSA_LOG_LEVEL": "warning"}) == logging.WARNING
    assert resolve_level(logging.INFO, {"URSA_LOG_LEVEL": "chatty"}) == logging.INFO


def test_configure_logging_honours_env(monkeypatch):
    monkeypatch.setenv("URSA_LOG_LEVEL", "debug")
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers = []
    try:
        configure_logging()
        assert root.level == logging.DEBUG
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
