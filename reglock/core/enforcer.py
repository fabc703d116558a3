"""
Lock enforcement on reads of the two lock settings.
"""

from contextlib import contextmanager
from typing import Any, Generator, List

from .config import (
    LockSettings, OPTION_DEFAULT_ROLE, OPTION_USERS_CAN_REGISTER, REGISTRATION_DISABLED
)
from .host import IConfigStore, IExtensionPoint, ISettingsInterceptor
from ..util.logging import logger


class LockEnforcer(ISettingsInterceptor):
    """Forces registration off and the default role to the locked role, whatever is stored."""

    def __init__(self, settings: LockSettings, hooks: IExtensionPoint):
        self.settings = settings
        self.hooks = hooks

    # Enforcers for the same installation are interchangeable, so a fresh
    # instance can unregister one installed earlier in the request
    def __eq__(self, other):
        return isinstance(other, LockEnforcer) and other.settings.option_name == self.settings.option_name

    def __hash__(self):
        return hash((LockEnforcer, self.settings.option_name))

    def resolve_registration_allowed(self, underlying_value: Any = None) -> bool:
        return False

    def resolve_default_role(self, underlying_value: Any = None) -> str:
        return self.settings.default_role_value

    def intercepted_settings(self) -> List[str]:
        return [OPTION_USERS_CAN_REGISTER, OPTION_DEFAULT_ROLE]

    def filter_stored(self, name: str, value: Any) -> Any:
        if name == OPTION_USERS_CAN_REGISTER:
            return self.resolve_registration_allowed(value)
        if name == OPTION_DEFAULT_ROLE:
            return self.resolve_default_role(value)
        return value

    def filter_default(self, name: str, default: Any) -> Any:
        # Same answer whether or not anything is stored
        return self.filter_stored(name, default)

    @property
    def installed(self) -> bool:
        """True when this enforcer, or an equal one, is registered with the host."""
        return self.hooks.is_settings_interceptor_registered(self)

    def install(self):
        self.hooks.register_settings_interceptor(self)

    def uninstall(self):
        self.hooks.unregister_settings_interceptor(self)

    @contextmanager
    def suspended(self) -> Generator[None, None, None]:
        """
        Remove the interceptors for the duration of the block.

        Reads inside see the real stored values and writes are not rewritten.
        Interceptors registered on entry, by this instance or an earlier one,
        are reinstalled on exit, even if the block raises.
        """
        was_installed = self.installed
        self.uninstall()
        try:
            yield
        finally:
            if was_installed:
                self.install()

    def lock_settings(self, store: IConfigStore):
        """Write locked values for both settings to underlying storage."""
        with self.suspended():
            store.set(OPTION_USERS_CAN_REGISTER, REGISTRATION_DISABLED)
            store.set(OPTION_DEFAULT_ROLE, self.settings.stored_role)
        logger.log_lifecycle("lock_settings", details={
            OPTION_USERS_CAN_REGISTER: REGISTRATION_DISABLED,
            OPTION_DEFAULT_ROLE: self.settings.stored_role
        })
