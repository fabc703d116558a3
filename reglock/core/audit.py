"""
Drift audit of the lock settings and site identity values.

The two lock settings are re-read with the enforcer suspended and rewritten if
they drifted. Site identity values are compared against the saved baseline and
only reported. Runs at most once per audit interval.
"""

import time
from typing import Any, Callable, List, Optional

from .config import (
    LockSettings, OPTION_ADMIN_EMAIL, OPTION_DEFAULT_ROLE, OPTION_HOME,
    OPTION_SITEURL, OPTION_USERS_CAN_REGISTER, REGISTRATION_DISABLED
)
from .enforcer import LockEnforcer
from .errors import ConfigReadFailure
from .host import IConfigStore, ISiteIdentity
from .notices import Notice, NoticeCode
from .options import LockOptions
from ..util.logging import logger

LAST_RUN = "last_run"


def is_registration_disabled(value: Any) -> bool:
    """False is stored as 0 by most hosts; accept the common spellings of it."""
    if isinstance(value, bool):
        return value is False
    return value == REGISTRATION_DISABLED or value == str(REGISTRATION_DISABLED)


class DriftAuditor:
    def __init__(self, settings: LockSettings, store: IConfigStore, site: ISiteIdentity,
                 options: LockOptions, enforcer: LockEnforcer,
                 clock: Callable[[], float] = time.time):
        self.settings = settings
        self.store = store
        self.site = site
        self.options = options
        self.enforcer = enforcer
        self.clock = clock

    def is_due(self, now: Optional[float] = None) -> bool:
        """True when the audit interval has elapsed since the last run."""
        now = self.clock() if now is None else now
        try:
            last_run = int(self.options.get_option(LAST_RUN) or 0)
        except (TypeError, ValueError):
            last_run = 0

        return now - last_run >= self.settings.audit_interval_sec

    def run_if_due(self, now: Optional[float] = None) -> List[Notice]:
        now = self.clock() if now is None else now
        if not self.is_due(now):
            return []
        return self.run(now)

    def run(self, now: Optional[float] = None) -> List[Notice]:
        """
        Run every check once and record the run time.

        Returns:
            Notices in the order the checks ran.
        """
        now = self.clock() if now is None else now
        start_time = time.monotonic()
        notices: List[Notice] = []

        with self.enforcer.suspended():
            self._guarded(notices, self.check_registration)
            self._guarded(notices, self.check_default_role)

        self._guarded(notices, self.check_admin_email)
        self._guarded(notices, self.check_site_url)
        self._guarded(notices, self.check_home_url)
        self._guarded(notices, self.audit_user_drift)

        self.options.update_option(LAST_RUN, int(now))

        for notice in notices:
            logger.log_audit_notice(notice.severity.value, notice.code.value, notice.message)
        logger.log_audit_run(start_time, time.monotonic(), len(notices))

        return notices

    def _guarded(self, notices: List[Notice], check: Callable[[], List[Notice]]):
        # One failing check never stops the rest
        try:
            notices.extend(check())
        except Exception as e:
            logger.error(f"Audit check {check.__name__} failed: {e}")

    def _read(self, name: str) -> Any:
        try:
            value = self.store.get(name)
        except Exception as e:
            raise ConfigReadFailure(name, e) from e
        if value is None:
            raise ConfigReadFailure(name)
        return value

    def check_registration(self) -> List[Notice]:
        try:
            value = self._read(OPTION_USERS_CAN_REGISTER)
        except ConfigReadFailure as e:
            self.store.set(OPTION_USERS_CAN_REGISTER, REGISTRATION_DISABLED)
            return [Notice.error(
                NoticeCode.REGISTRATION_READ_FAILED,
                f"There was an error reading the {OPTION_USERS_CAN_REGISTER} option.",
                cause=str(e)
            )]

        if is_registration_disabled(value):
            return []

        self.store.set(OPTION_USERS_CAN_REGISTER, REGISTRATION_DISABLED)
        return [Notice.warning(
            NoticeCode.REGISTRATION_ENABLED,
            f"User registration was found to be enabled via the {OPTION_USERS_CAN_REGISTER} option "
            f"(value: {value!r}).",
            value=value
        )]

    def check_default_role(self) -> List[Notice]:
        locked = self.settings.stored_role

        try:
            value = self._read(OPTION_DEFAULT_ROLE)
        except ConfigReadFailure as e:
            self.store.set(OPTION_DEFAULT_ROLE, locked)
            return [Notice.error(
                NoticeCode.DEFAULT_ROLE_READ_FAILED,
                f"There was an error reading the {OPTION_DEFAULT_ROLE} option.",
                cause=str(e)
            )]

        if value == locked:
            return []

        self.store.set(OPTION_DEFAULT_ROLE, locked)
        return [Notice.warning(
            NoticeCode.DEFAULT_ROLE_CHANGED,
            f"The default role for new users should be {locked}, but was found to be {value}.",
            value=value
        )]

    def check_admin_email(self) -> List[Notice]:
        saved = self.options.get_option("save_admin_email")
        current = self.store.get(OPTION_ADMIN_EMAIL)
        if saved == current:
            return []
        return [Notice.notice(
            NoticeCode.ADMIN_EMAIL_CHANGED,
            f"The Administration Email Address has been changed from {saved} to {current}.",
            old=saved, new=current
        )]

    def check_site_url(self) -> List[Notice]:
        return self._check_address(
            OPTION_SITEURL, "save_siteurl", NoticeCode.SITEURL_CHANGED, "The site address (URL)",
            self.site.site_url, "save_site_url", NoticeCode.SITE_URL_CHANGED, "The resolved site URL"
        )

    def check_home_url(self) -> List[Notice]:
        return self._check_address(
            OPTION_HOME, "save_home", NoticeCode.HOME_CHANGED, "The home address (URL)",
            self.site.home_url, "save_home_url", NoticeCode.HOME_URL_CHANGED, "The resolved home URL"
        )

    def _check_address(self, option: str, saved_key: str, code: NoticeCode, label: str,
                       resolve: Callable[[], str], resolved_key: str, resolved_code: NoticeCode,
                       resolved_label: str) -> List[Notice]:
        saved = self.options.get_option(saved_key)
        current = self.store.get(option)
        if saved != current:
            return [Notice.notice(code, f"{label} has been changed from {saved} to {current}.",
                                  old=saved, new=current)]

        # Stored value unchanged, so a difference here comes from runtime resolution
        saved = self.options.get_option(resolved_key)
        current = resolve()
        if saved != current:
            return [Notice.notice(resolved_code, f"{resolved_label} has changed from {saved} to {current}.",
                                  old=saved, new=current)]
        return []

    def audit_user_drift(self) -> List[Notice]:
        """
        Compare live users against their snapshots.

        Returns no notices; subclasses override this to report per-user drift.
        """
        return []
