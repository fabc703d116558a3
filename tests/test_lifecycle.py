"""
Lifecycle tests - setup, resume, version migration, teardown/restore and purge.
"""

from unittest.mock import patch

import pytest

from reglock.core.config import LockSettings
from reglock.core.errors import SchemaDrift, SnapshotStoreError
from reglock.core.lifecycle import (
    LifecycleManager, on_activate, on_deactivate, on_init, on_uninstall
)
from reglock.core.schema import HostUser


class TestSetup:
    """First run captures a baseline, locks the settings and snapshots users."""

    def test_setup_locks_and_snapshots(self, manager, base_store, clock):
        assert manager.setup() is True

        assert base_store.get("users_can_register") == 0
        assert base_store.get("default_role") == "subscriber"
        assert manager.snapshots.count() == 3
        assert manager.options.get_option("setup_complete") is True
        assert manager.options.get_option("last_run") == clock.now
        assert manager.options.get_option("db_version") == "1.0.0"

    def test_baseline_captures_pre_lock_values(self, manager):
        manager.setup()

        assert manager.options.get_option("save_users_can_register") == 1
        assert manager.options.get_option("save_default_role") == "author"
        assert manager.options.get_option("save_admin_email") == "admin@example.com"
        assert manager.options.get_option("save_siteurl") == "https://example.com"
        assert manager.options.get_option("save_site_url") == "https://example.com"
        assert manager.options.get_option("save_home_url") == "https://example.com"

    def test_baseline_ignores_filtered_values(self, manager, host, base_store):
        # A stale interceptor from an earlier request must not leak into the baseline
        manager.enforcer.install()
        manager.setup()
        assert manager.options.get_option("save_default_role") == "author"

    def test_setup_is_idempotent(self, manager, host, base_store):
        manager.init()
        options_before = manager.options.get_options()
        rows_before = [s.login for s in manager.snapshots.list_snapshots()]

        manager.init()
        manager.activate()

        assert manager.options.get_options() == options_before
        assert [s.login for s in manager.snapshots.list_snapshots()] == rows_before
        assert base_store.get("users_can_register") == 0

    def test_second_setup_is_skipped(self, manager, host, settings, clock):
        assert manager.setup() is True
        other = LifecycleManager(host, settings, clock=clock)
        assert other.setup() is False

    def test_interrupted_setup_resumes(self, manager, host, settings, clock):
        with patch.object(manager.snapshots, "save_users", side_effect=SnapshotStoreError("disk full")):
            with pytest.raises(SnapshotStoreError):
                manager.setup()

        assert manager.options.get_option("setup_complete") is False
        assert manager.snapshots.count() == 0

        resumed = LifecycleManager(host, settings, clock=clock)
        resumed.init()

        assert resumed.options.get_option("setup_complete") is True
        assert resumed.snapshots.count() == 3
        # The baseline from the first attempt is kept
        assert resumed.options.get_option("save_default_role") == "author"

    def test_activate_twice_keeps_snapshots(self, manager, directory):
        manager.activate()
        directory.add(HostUser(4, "late", "h", "late@example.com", "2024-01-01 00:00:00"))
        manager.activate()

        # Later users get a row, earlier rows are not rewritten
        assert manager.snapshots.count() == 4
        assert manager.snapshots.get(1).login == "admin"


class TestInit:

    def test_init_installs_interceptors_and_role(self, manager, host, hooks):
        assert manager.init() == []

        assert manager.enforcer in hooks.settings_interceptors
        assert manager.guard in hooks.mutation_guards
        assert "user-registration-lock" in host.roles.roles
        assert host.config.get("default_role") == "user-registration-lock"

    def test_no_dedicated_role(self, host, tmp_path, clock):
        settings = LockSettings(db_path=str(tmp_path / "r.db"), use_dedicated_role=False)
        manager = LifecycleManager(host, settings, clock=clock)
        manager.init()

        assert "user-registration-lock" not in host.roles.roles
        assert host.config.get("default_role") == "subscriber"

    def test_init_runs_due_audit(self, locked, clock, base_store):
        base_store.set("default_role", "editor")
        clock.advance(3600)

        notices = locked.init()

        assert len(notices) == 1
        assert base_store.get("default_role") == "subscriber"


class TestVersioning:

    def test_current_installation_has_no_drift(self, locked):
        assert locked.detect_schema_drift() is None
        assert locked.ensure_current_version() is False

    def test_old_markers_trigger_migration(self, locked):
        locked.options.update_option("version", "0.9")
        locked.options.update_option("db_version", "0.9")

        drift = locked.detect_schema_drift()
        assert isinstance(drift, SchemaDrift)
        assert drift.installed == "0.9"

        with patch.object(locked, "create_db", wraps=locked.create_db) as create_db:
            assert locked.ensure_current_version() is True
            create_db.assert_called_once()

        assert locked.options.get_option("version") == "1.0.0"
        assert locked.detect_schema_drift() is None

    def test_missing_db_version_is_drift(self, locked):
        locked.options.delete_option("db_version")
        assert locked.ensure_current_version() is True
        assert locked.options.get_option("db_version") == "1.0.0"

    def test_newer_markers_are_left_alone(self, locked):
        locked.options.update_option("version", "2.0.0")
        assert locked.ensure_current_version() is False
        assert locked.options.get_option("version") == "2.0.0"

    def test_init_migrates_after_setup(self, locked):
        locked.options.update_option("version", "0.5.0")
        locked.init()
        assert locked.options.get_option("version") == "1.0.0"


class TestTeardown:
    """Teardown removes the lock and restores what was there before."""

    def test_restore_brings_back_baseline(self, locked, base_store, host, hooks):
        locked.teardown(restore=True)

        assert base_store.get("users_can_register") == 1
        assert base_store.get("default_role") == "author"
        assert host.config.get("users_can_register") == 1
        assert host.config.get("default_role") == "author"
        assert hooks.settings_interceptors == []
        assert hooks.mutation_guards == []

    def test_restore_clears_state(self, locked, host):
        locked.teardown(restore=True)

        assert locked.snapshots.count() == 0
        assert locked.options.get_option("save_default_role") is None
        assert locked.options.get_option("setup_complete") is False
        assert "user-registration-lock" not in host.roles.roles

    def test_without_restore_keeps_locked_values(self, locked, base_store):
        locked.teardown(restore=False)

        assert base_store.get("users_can_register") == 0
        assert base_store.get("default_role") == "subscriber"
        assert locked.options.get_option("save_default_role") == "author"
        assert locked.snapshots.count() == 0

    def test_missing_baseline_leaves_setting(self, locked, base_store):
        locked.options.delete_option("save_default_role")
        locked.teardown(restore=True)

        assert base_store.get("users_can_register") == 1
        assert base_store.get("default_role") == "subscriber"

    def test_role_kept_when_configured(self, host, tmp_path, clock):
        settings = LockSettings(db_path=str(tmp_path / "r.db"), remove_role_on_teardown=False)
        manager = LifecycleManager(host, settings, clock=clock)
        manager.init()
        manager.teardown()
        assert "user-registration-lock" in host.roles.roles

    def test_reactivation_captures_fresh_baseline(self, locked, base_store, host, settings, clock):
        locked.teardown(restore=True)
        base_store.set("default_role", "contributor")

        again = LifecycleManager(host, settings, clock=clock)
        again.init()

        assert again.options.get_option("save_default_role") == "contributor"
        assert again.snapshots.count() == 3

    def test_teardown_before_setup(self, manager, base_store):
        manager.teardown(restore=True)
        assert manager.options.exists() is False
        assert base_store.get("default_role") == "author"

    def test_purge_removes_everything(self, locked, base_store):
        locked.purge()

        assert locked.options.exists() is False
        assert locked.snapshots.health_check() is False
        assert base_store.get("default_role") == "author"


class TestStatus:

    def test_status_after_init(self, locked, clock):
        status = locked.status()

        assert status["set_up"] is True
        assert status["version"] == "1.0.0"
        assert status["running_version"] == "1.0.0"
        assert status["last_audit_run"] == clock.now
        assert status["next_audit_run"] == clock.now + 3600
        assert status["snapshot_count"] == 3
        assert status["snapshot_table_healthy"] is True
        assert status["interceptors_installed"] is True

    def test_status_before_setup(self, manager):
        status = manager.status()

        assert status["set_up"] is False
        assert status["last_audit_run"] is None
        assert status["next_audit_run"] is None
        assert status["snapshot_count"] == 0
        assert status["snapshot_table_healthy"] is False


class TestEntryPoints:
    """Module-level hooks each build a manager from settings and delegate."""

    def test_full_cycle(self, host, settings, base_store, hooks):
        on_activate(host, settings)
        assert base_store.get("users_can_register") == 0

        assert on_init(host, settings) == []
        assert hooks.mutation_guards != []

        on_deactivate(host, settings)
        assert hooks.mutation_guards == []
        assert base_store.get("users_can_register") == 1

        on_uninstall(host, settings)
        assert base_store.get(settings.option_name) is None

    def test_activate_after_init_keeps_interceptors(self, host, settings, hooks):
        """A later activation from a fresh manager must not drop the filters installed by init."""
        on_init(host, settings)
        on_activate(host, settings)

        assert len(hooks.settings_interceptors) == 1
        assert host.config.get("users_can_register") is False
        assert host.config.get("default_role") == "user-registration-lock"

    def test_audit_from_fresh_manager_keeps_interceptors(self, host, settings, clock, hooks):
        LifecycleManager(host, settings, clock=clock).init()
        clock.advance(3600)

        fresh = LifecycleManager(host, settings, clock=clock)
        assert fresh.enforcer.installed is True
        fresh.run_audit_if_due()

        assert len(hooks.settings_interceptors) == 1
        assert fresh.enforcer.installed is True
        assert host.config.get("default_role") == "user-registration-lock"

    def test_deactivate_without_restore(self, host, settings, base_store):
        on_init(host, settings)
        on_deactivate(host, settings, restore=False)
        assert base_store.get("default_role") == "subscriber"

    def test_settings_loaded_from_environment(self, host, tmp_path, monkeypatch):
        monkeypatch.setenv("REGLOCK_DB_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("REGLOCK_OPTION_NAME", "env-lock")

        on_init(host)

        assert host.config.get("env-lock")["setup_complete"] is True
        assert (tmp_path / "env.db").exists()
