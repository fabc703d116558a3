"""
Lock configuration record and option store tests.
"""

import pytest

from reglock.core.host import SimpleInMemoryConfigStore
from reglock.core.kv import SqliteConfigStore
from reglock.core.options import LockOptions


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return SimpleInMemoryConfigStore()
    return SqliteConfigStore(str(tmp_path / "options.db"))


class TestConfigStores:
    """Both store implementations share the same add/set/delete semantics."""

    def test_missing_key_is_none(self, store):
        assert store.get("nothing") is None

    def test_set_overwrites(self, store):
        store.set("key", {"a": 1})
        store.set("key", {"a": 2})
        assert store.get("key") == {"a": 2}

    def test_add_does_not_overwrite(self, store):
        assert store.add("key", "first") is True
        assert store.add("key", "second") is False
        assert store.get("key") == "first"

    def test_delete(self, store):
        store.set("key", 1)
        assert store.delete("key") is True
        assert store.delete("key") is False
        assert store.get("key") is None

    def test_delete_key_holding_none(self, store):
        store.set("key", None)
        assert store.delete("key") is True
        assert store.add("key", "fresh") is True

    def test_values_are_copies(self, store):
        value = {"nested": [1]}
        store.set("key", value)
        value["nested"].append(2)

        fetched = store.get("key")
        fetched["nested"].append(3)
        assert store.get("key") == {"nested": [1]}

    def test_sqlite_store_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "shared.db")
        SqliteConfigStore(path).set("users_can_register", 0)
        assert SqliteConfigStore(path).get("users_can_register") == 0


class TestLockOptions:

    @pytest.fixture
    def options(self, store):
        return LockOptions(store, "user-registration-lock", {"version": "1.0.0", "allow_user_changes": True})

    def test_absent_record(self, options):
        assert options.exists() is False
        assert options.get_options() is None
        assert options.get_option("version") is None
        assert options.get_options(defaults=True) == {"version": "1.0.0", "allow_user_changes": True}

    def test_create_only_once(self, options):
        assert options.create({"setup_complete": False}) is True
        assert options.create({"setup_complete": True}) is False
        assert options.get_options() == {
            "version": "1.0.0", "allow_user_changes": True, "setup_complete": False
        }

    def test_update_reports_change(self, options):
        options.create()
        assert options.update_option("last_run", 100) is True
        assert options.update_option("last_run", 100) is False
        assert options.get_option("last_run") == 100

    def test_update_creates_record(self, options):
        options.update_option("db_version", "1.0.0")
        assert options.get_options() == {"db_version": "1.0.0"}

    def test_add_keeps_existing(self, options):
        options.create()
        assert options.add_option("save_default_role", "author") is True
        assert options.add_option("save_default_role", "subscriber") is False
        assert options.get_option("save_default_role") == "author"

    def test_delete_option(self, options):
        options.create({"save_home": "https://example.com"})
        assert options.delete_option("save_home") is True
        assert options.delete_option("save_home") is False
        assert "save_home" not in options.get_options()

    def test_merged_defaults(self, options):
        options.create({"version": "0.9"})
        merged = options.get_options(defaults=True)
        assert merged["version"] == "0.9"
        assert merged["allow_user_changes"] is True

    def test_delete_options(self, options, store):
        options.create()
        assert options.delete_options() is True
        assert store.get("user-registration-lock") is None

    def test_non_mapping_value_treated_as_absent(self, options, store):
        store.set("user-registration-lock", "corrupt")
        assert options.exists() is False
        assert options.get_options(defaults=True)["version"] == "1.0.0"
