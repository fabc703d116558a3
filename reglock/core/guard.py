"""
Mutation guard for user records and user metadata.

Runs synchronously before the host persists a change. Every gate fails
closed: a missing snapshot, an unreadable value or an internal error all
reject the write. The only permissive paths are password changes (flagged),
non-administrator capability edits, and stripping a forced-SSL downgrade from
an insert batch while letting the rest through.
"""

import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .config import LockSettings
from .errors import MissingSnapshot, PolicyViolation
from .host import IExtensionPoint, IMutationGuard
from .notices import Notice, NoticeCode
from .schema import GuardDecision, HostUser, UserSnapshot, is_truthy, parse_level
from .snapshots import SnapshotStore
from ..util.logging import logger

ADMINISTRATOR = "administrator"
MAX_PRIVILEGE_LEVEL = 10

# Proposed field -> snapshot attribute; changing any of these is a violation
IMMUTABLE_FIELDS = {
    "user_login": "login",
    "user_email": "email",
    "user_registered": "registered_at",
}


def _normalize(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return "" if value is None else str(value)


class MutationGuard(IMutationGuard):
    def __init__(self, settings: LockSettings, snapshots: SnapshotStore, hooks: IExtensionPoint,
                 on_flag: Optional[Callable[[Notice], None]] = None):
        self.settings = settings
        self.snapshots = snapshots
        self.hooks = hooks
        self.on_flag = on_flag

    def __eq__(self, other):
        return isinstance(other, MutationGuard) and other.settings.option_name == self.settings.option_name

    def __hash__(self):
        return hash((MutationGuard, self.settings.option_name))

    @property
    def installed(self) -> bool:
        return self.hooks.is_mutation_guard_registered(self)

    def install(self):
        self.hooks.register_mutation_guard(self)

    def uninstall(self):
        self.hooks.unregister_mutation_guard(self)

    def _require_snapshot(self, user_id: Any) -> UserSnapshot:
        snapshot = self.snapshots.get(user_id)
        if snapshot is None:
            raise MissingSnapshot(user_id)
        return snapshot

    def _flag(self, gate: str, user_id: Any, notice: Notice):
        logger.log_guard_flag(gate, user_id, notice.code.value, notice.details)
        if self.on_flag is not None:
            self.on_flag(notice)

    def _decide(self, gate: str, user_id: Any, check: Callable[[], GuardDecision]) -> GuardDecision:
        """Run a gate body, turning violations and unexpected errors into rejections."""
        try:
            decision = check()
        except PolicyViolation as e:
            decision = GuardDecision.reject(e.reason, e.code)
        except Exception as e:
            logger.error(f"Guard {gate} failed for user {user_id}, rejecting: {e}")
            decision = GuardDecision.reject(f"Guard error: {e}", "guard_error")

        logger.log_guard_decision(gate, decision.allowed, user_id, decision.reason, decision.code)
        return decision

    def guard_new_or_updated_user(self, proposed_fields: Dict[str, Any], is_update: bool,
                                  user_id: Optional[int], raw_input: Dict[str, Any] = None) -> GuardDecision:
        def check() -> GuardDecision:
            # New accounts are never created while locked
            if not is_update or user_id is None:
                raise PolicyViolation("New user registration is locked", "new_user_blocked")

            snapshot = self._require_snapshot(user_id)

            for field, attr in IMMUTABLE_FIELDS.items():
                if field in proposed_fields and _normalize(proposed_fields[field]) != _normalize(getattr(snapshot, attr)):
                    raise PolicyViolation(f"{field} cannot be changed while registration is locked",
                                          f"{field}_changed")

            if "user_pass" in proposed_fields and proposed_fields["user_pass"] != snapshot.password_hash:
                self._flag("user", user_id, Notice.notice(
                    NoticeCode.PASSWORD_CHANGED,
                    f"The password for user {snapshot.login} has been changed.",
                    user_id=user_id
                ))

            return GuardDecision.proceed(proposed_fields)

        return self._decide("user", user_id, check)

    def guard_user_metadata_insert(self, proposed_meta: Dict[str, Any], user: HostUser,
                                   is_update: Optional[bool], raw_input: Dict[str, Any] = None) -> GuardDecision:
        user_id = getattr(user, "user_id", None)

        def check() -> GuardDecision:
            if is_update is None:
                raise PolicyViolation("Metadata for new users cannot be inserted", "new_user_blocked")

            snapshot = self._require_snapshot(user_id)

            meta = dict(proposed_meta)
            ssl_key = self.settings.use_ssl_key
            if snapshot.force_ssl_admin and not is_truthy(meta.get(ssl_key)):
                if ssl_key in meta:
                    del meta[ssl_key]
                    self._flag("meta_insert", user_id, Notice.warning(
                        NoticeCode.USE_SSL_STRIPPED,
                        f"An attempt to disable forced SSL for user {snapshot.login} was ignored.",
                        user_id=user_id
                    ))

            return GuardDecision.proceed(meta)

        return self._decide("meta_insert", user_id, check)

    def guard_user_metadata_update(self, object_id: int, meta_key: str, meta_value: Any,
                                   default_check: Any = None) -> GuardDecision:
        def check() -> GuardDecision:
            snapshot = self._require_snapshot(object_id)

            if meta_key == self.settings.capabilities_key:
                self._check_capabilities(snapshot, meta_value)
            elif meta_key == self.settings.user_level_key:
                self._check_user_level(snapshot, meta_value)
            elif meta_key == self.settings.use_ssl_key:
                if snapshot.force_ssl_admin and not is_truthy(meta_value):
                    raise PolicyViolation("Forced SSL cannot be disabled", "use_ssl_disabled")

            return GuardDecision.proceed(default_check)

        return self._decide("meta_update", object_id, check)

    def _check_capabilities(self, snapshot: UserSnapshot, meta_value: Any):
        """
        Block granting administrator to a user who was not one at lock time.

        The snapshot side is matched on its raw serialized text rather than
        decoded. A renamed administrator role is not recognised.
        """
        grants_admin = False

        if isinstance(meta_value, Mapping):
            grants_admin = ADMINISTRATOR in meta_value
        elif isinstance(meta_value, (str, bytes)):
            text = meta_value.decode("utf-8", "replace") if isinstance(meta_value, bytes) else meta_value
            try:
                decoded = json.loads(text)
            except ValueError:
                decoded = None
            if isinstance(decoded, Mapping):
                grants_admin = ADMINISTRATOR in decoded
            elif decoded is None:
                grants_admin = f'"{ADMINISTRATOR}"' in text or f"'{ADMINISTRATOR}'" in text

        if grants_admin and not snapshot.has_raw_marker(ADMINISTRATOR):
            raise PolicyViolation("Administrator capability cannot be granted", "administrator_granted")

    def _check_user_level(self, snapshot: UserSnapshot, meta_value: Any):
        proposed = parse_level(meta_value)
        if proposed is None:
            raise PolicyViolation(f"Unreadable user level: {meta_value!r}", "user_level_invalid")

        if proposed != snapshot.privilege_level:
            self._flag("meta_update", snapshot.user_id, Notice.notice(
                NoticeCode.USER_LEVEL_CHANGED,
                f"The user level for user {snapshot.login} is changing from "
                f"{snapshot.privilege_level} to {proposed}.",
                user_id=snapshot.user_id, old=snapshot.privilege_level, new=proposed
            ))

        if proposed == MAX_PRIVILEGE_LEVEL and snapshot.privilege_level < MAX_PRIVILEGE_LEVEL:
            raise PolicyViolation("User level cannot be raised to 10", "user_level_raised")
