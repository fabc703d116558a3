"""
Registration lock error taxonomy.
"""

from typing import Any


class RegistrationLockError(Exception):
    """Base class for registration lock errors."""
    pass


class ConfigReadFailure(RegistrationLockError):
    """A host setting returned no value where one was expected."""

    def __init__(self, setting: str, cause: Exception = None):
        self.setting = setting
        self.cause = cause
        message = f"Could not read setting '{setting}'"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class PolicyViolation(RegistrationLockError):
    """A guarded mutation failed a lock policy check."""

    def __init__(self, reason: str, code: str = "policy_violation"):
        self.reason = reason
        self.code = code
        super().__init__(reason)


class MissingSnapshot(PolicyViolation):
    """A mutation targets a user that has no snapshot."""

    def __init__(self, user_id: Any):
        self.user_id = user_id
        super().__init__(f"No snapshot recorded for user {user_id}", code="missing_snapshot")


class SchemaDrift(RegistrationLockError):
    """Installed version markers lag the running code."""

    def __init__(self, installed: str, running: str):
        self.installed = installed
        self.running = running
        super().__init__(f"Installed version {installed} is older than {running}")


class SnapshotStoreError(RegistrationLockError):
    """Snapshot table could not be read or written."""
    pass
