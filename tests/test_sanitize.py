import pytest

from ursa_save.save import SanitizeScope, SaveKeys, sanitize_persisted_state
from ursa_save.storage import MemoryStorage


@pytest.fixture
def seeded() -> MemoryStorage:
    return MemoryStorage(
        {
            "save:quick": "{}",
            "save:slot:alpha": "{}",
            "save:slot:alpha:rollback": "[]",
            "save:slot:index": "[]",
            "save:misc": "1",
            "settings:volume": "0.5",
        }
    )


def test_save_only_removes_quick_save(seeded):
    result = sanitize_persisted_state(seeded, scope="save-only")

    assert result.ok
    assert result.removed_keys == ["save:quick"]
    assert seeded.get("save:quick") is None
    assert seeded.get("save:slot:alpha") == "{}"


def test_slots_scope(seeded):
    result = sanitize_persisted_state(seeded, scope=SanitizeScope.SLOTS)

    assert sorted(result.removed_keys) == ["save:slot:alpha", "save:slot:alpha:rollback", "save:slot:index"]
    assert seeded.get("save:quick") == "{}"
    assert seeded.get("save:misc") == "1"


def test_all_scope_keeps_foreign_keys(seeded):
    result = sanitize_persisted_state(seeded)

    assert result.ok
    assert seeded.keys() == ["settings:volume"]
    assert "save:misc" in result.removed_keys


def test_all_scope_lists_quick_key_even_when_absent():
    storage = MemoryStorage({"save:slot:beta": "{}"})

    result = sanitize_persisted_state(storage, SaveKeys(), "all")

    assert result.removed_keys[0] == "save:quick"
    assert len(storage) == 0


def test_custom_prefix():
    storage = MemoryStorage({"game1:quick": "{}", "save:quick": "{}"})

    result = sanitize_persisted_state(storage, SaveKeys(prefix="game1:"), "all")

    assert result.removed_keys == ["game1:quick"]
    assert storage.keys() == ["save:quick"]


class _NoKeys:
    def get(self, key):
        return None

    def set(self, key, value):
        pass

    def remove(self, key):
        pass


def test_enumerating_scopes_need_key_listing():
    assert sanitize_persisted_state(_NoKeys(), scope="save-only").ok
    assert not sanitize_persisted_state(_NoKeys(), scope="slots").ok


def test_missing_storage_and_unknown_scope(seeded):
    assert sanitize_persisted_state(None).ok is False
    assert sanitize_persisted_state(seeded, scope="everything").ok is False
    assert len(seeded) == 6


def test_remove_failure(raising_storage):
    storage = raising_storage(fail_remove={"save:quick"}, initial={"save:quick": "{}"})

    result = sanitize_persisted_state(storage, scope="save-only")

    assert not result.ok
    assert result.removed_keys == []
