"""
Registration lock lifecycle.

Composes the enforcer, guard, auditor and snapshot store, and drives setup,
version migration, teardown/restore and purge. Every setup step is idempotent,
so setup can be repeated or resumed after an interruption.
"""

import time
from typing import Any, Callable, Dict, List, Optional

from .audit import DriftAuditor, LAST_RUN
from .config import (
    LockSettings, OPTION_ADMIN_EMAIL, OPTION_DEFAULT_ROLE, OPTION_HOME,
    OPTION_SITEURL, OPTION_USERS_CAN_REGISTER, load_settings, validate_settings
)
from .enforcer import LockEnforcer
from .errors import SchemaDrift
from .guard import MutationGuard
from .host import Host
from .notices import Notice
from .options import LockOptions
from .snapshots import SnapshotStore
from .versioning import version_compare
from ..util.logging import logger

SETUP_COMPLETE = "setup_complete"

# Host options captured before the lock is applied
BASELINE_OPTIONS = [
    OPTION_USERS_CAN_REGISTER,
    OPTION_DEFAULT_ROLE,
    OPTION_ADMIN_EMAIL,
    OPTION_SITEURL,
    OPTION_HOME,
]
RESOLVED_BASELINES = ["save_site_url", "save_home_url"]
LOCK_OPTIONS = [OPTION_USERS_CAN_REGISTER, OPTION_DEFAULT_ROLE]


def baseline_key(option: str) -> str:
    return f"save_{option}"


class LifecycleManager:
    def __init__(self, host: Host, settings: LockSettings = None,
                 clock: Callable[[], float] = time.time,
                 on_flag: Optional[Callable[[Notice], None]] = None):
        self.host = host
        self.settings = settings or load_settings()
        self.clock = clock

        if self.settings.debug:
            logger.set_debug(True)

        for issue in validate_settings(self.settings):
            logger.warning(f"Registration lock configuration: {issue}")

        self.options = LockOptions(host.config, self.settings.option_name, {
            "version": self.settings.version,
            "allow_user_changes": True,
            "admin_email": host.config.get(OPTION_ADMIN_EMAIL),
        })
        self.snapshots = SnapshotStore(self.settings)
        self.enforcer = LockEnforcer(self.settings, host.hooks)
        self.guard = MutationGuard(self.settings, self.snapshots, host.hooks, on_flag)
        self.auditor = DriftAuditor(self.settings, host.config, host.site, self.options,
                                    self.enforcer, clock)

    # Host entry points

    def init(self) -> List[Notice]:
        """
        Per-request hook.

        Sets up on first run (or resumes an interrupted setup), otherwise
        migrates if the stored version markers are old. Then installs the
        interceptors and runs the audit if it is due.

        Returns:
            Audit notices for the caller to display; empty when no audit ran.
        """
        if not self.options.get_option(SETUP_COMPLETE):
            self.setup()
        else:
            self.ensure_current_version()

        self.add_role()
        self.install_interceptors()

        return self.run_audit_if_due()

    def setup(self) -> bool:
        """
        First-run setup, guarded by an atomic create of the lock configuration.

        Returns:
            True if the setup steps ran, False if another caller already
            completed setup.
        """
        created = self.options.create({SETUP_COMPLETE: False})
        if not created and self.options.get_option(SETUP_COMPLETE):
            logger.log_lifecycle("setup", "skipped", {"reason": "already set up"})
            return False

        self._run_setup_steps()
        logger.log_lifecycle("setup", details={"resumed": not created})
        return True

    def activate(self):
        """Plugin activation: same end state as setup, run unconditionally."""
        if not self.options.create({SETUP_COMPLETE: False}):
            self.ensure_current_version()

        self._run_setup_steps()
        logger.log_lifecycle("activate")

    def deactivate(self, restore: bool = True):
        self.teardown(restore=restore)
        logger.log_lifecycle("deactivate", details={"restore": restore})

    def uninstall(self):
        self.purge()

    def run_audit_if_due(self) -> List[Notice]:
        return self.auditor.run_if_due()

    # Setup steps

    def _run_setup_steps(self):
        with self.enforcer.suspended():
            self.save_options()
            self.enforcer.lock_settings(self.host.config)
        self.create_db()
        self.snapshots.save_users(self.host.users)
        self.options.update_option(LAST_RUN, int(self.clock()))
        self.options.update_option(SETUP_COMPLETE, True)

    def save_options(self):
        """Capture the pre-lock baseline; values already captured are kept."""
        for option in BASELINE_OPTIONS:
            value = self.host.config.get(option)
            if value is not None:
                self.options.add_option(baseline_key(option), value)

        self.options.add_option("save_site_url", self.host.site.site_url())
        self.options.add_option("save_home_url", self.host.site.home_url())

    def create_db(self):
        added = self.snapshots.create_schema()
        self.options.update_option("db_version", self.settings.version)
        logger.log_lifecycle("create_db", details={"table": self.settings.snapshot_table, "added_columns": added})

    # Versioning

    def detect_schema_drift(self) -> Optional[SchemaDrift]:
        running = self.settings.version
        for marker in ("version", "db_version"):
            installed = self.options.get_option(marker)
            if version_compare(installed, running) < 0:
                return SchemaDrift(installed, running)
        return None

    def ensure_current_version(self) -> bool:
        """Migrate when stored markers are older than the running code. True if a migration ran."""
        drift = self.detect_schema_drift()
        if drift is None:
            return False

        logger.log_lifecycle("version_update", "started", {"installed": drift.installed, "running": drift.running})
        self.version_update()
        return True

    def version_update(self):
        running = self.settings.version

        # create_db applies any schema changes and is a no-op on a current table
        if version_compare(self.options.get_option("db_version"), running) < 0:
            self.create_db()

        # Version-specific data migrations go here, oldest first
        updated_to = self.options.get_option("version")
        if version_compare(updated_to, running) < 0:
            updated_to = running

        self.options.update_option("version", updated_to)
        logger.log_lifecycle("version_update", details={"version": updated_to})

    # Roles and interceptors

    def add_role(self):
        """Add the zero-capability role used as the locked default."""
        if self.settings.use_dedicated_role:
            self.host.roles.add_role(self.settings.locked_role, self.settings.locked_role_display_name, {})

    def remove_role(self):
        self.host.roles.remove_role(self.settings.locked_role)

    def install_interceptors(self):
        self.enforcer.install()
        self.guard.install()

    def uninstall_interceptors(self):
        self.guard.uninstall()
        self.enforcer.uninstall()

    # Teardown

    def teardown(self, restore: bool = True):
        """
        Remove the lock.

        Interceptors are removed before anything is written, otherwise the
        restore writes would be rewritten by the very lock being removed.
        """
        self.uninstall_interceptors()

        if self.settings.remove_role_on_teardown:
            self.remove_role()

        restored = {}
        if restore:
            for option in LOCK_OPTIONS:
                saved = self.options.get_option(baseline_key(option))
                if saved is not None:
                    self.host.config.set(option, saved)
                    restored[option] = saved

            # A later activation captures a fresh baseline
            for key in [baseline_key(o) for o in BASELINE_OPTIONS] + RESOLVED_BASELINES:
                self.options.delete_option(key)

        if self.options.exists():
            self.options.update_option(SETUP_COMPLETE, False)

        removed = self.snapshots.clear()
        logger.log_lifecycle("teardown", details={"restore": restore, "restored": restored,
                                                  "snapshots_removed": removed})

    def purge(self):
        self.teardown(restore=True)
        self.snapshots.drop_schema()
        self.options.delete_options()
        logger.log_lifecycle("purge")

    def status(self) -> Dict[str, Any]:
        """Read-only summary for monitoring."""
        options = self.options.get_options() or {}
        last_run = options.get(LAST_RUN)
        return {
            "set_up": bool(options.get(SETUP_COMPLETE)),
            "version": options.get("version"),
            "db_version": options.get("db_version"),
            "running_version": self.settings.version,
            "last_audit_run": last_run,
            "next_audit_run": last_run + self.settings.audit_interval_sec if last_run else None,
            "snapshot_count": self.snapshots.count(),
            "snapshot_table_healthy": self.snapshots.health_check(),
            "interceptors_installed": self.enforcer.installed and self.guard.installed,
        }


def on_init(host: Host, settings: LockSettings = None) -> List[Notice]:
    return LifecycleManager(host, settings).init()


def on_activate(host: Host, settings: LockSettings = None):
    LifecycleManager(host, settings).activate()


def on_deactivate(host: Host, settings: LockSettings = None, restore: bool = True):
    LifecycleManager(host, settings).deactivate(restore=restore)


def on_uninstall(host: Host, settings: LockSettings = None):
    LifecycleManager(host, settings).uninstall()
