"""
Host platform collaborators.

The registration lock wraps an existing platform: its option store, user
directory, role registry and site identity. These interfaces describe what the
lock consumes; HookRegistry and FilteredConfigStore give simple hosts (and the
test suite) an in-process interceptor dispatcher.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .schema import HostUser


class IConfigStore(ABC):
    """Abstract key/value option store."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> bool:
        """Store a value, returning True on success."""
        pass

    @abstractmethod
    def add(self, key: str, value: Any) -> bool:
        """Store a value only if the key is absent. Must be atomic."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a key, returning True if it existed."""
        pass


class IUserDirectory(ABC):
    """Abstract host user directory."""

    @abstractmethod
    def list_users(self) -> List[HostUser]:
        pass

    @abstractmethod
    def get_user_meta(self, user_id: int) -> Dict[str, Any]:
        """Return all metadata for a user, keyed by meta key."""
        pass


class IRoleRegistry(ABC):
    """Abstract host role registry."""

    @abstractmethod
    def add_role(self, name: str, display_name: str, capabilities: Dict[str, bool]) -> None:
        pass

    @abstractmethod
    def remove_role(self, name: str) -> None:
        pass


class ISiteIdentity(ABC):
    """Runtime-resolved site addresses (may differ from the stored options)."""

    @abstractmethod
    def site_url(self) -> str:
        pass

    @abstractmethod
    def home_url(self) -> str:
        pass


class ISettingsInterceptor(ABC):
    """Rewrites reads of specific host settings."""

    @abstractmethod
    def intercepted_settings(self) -> List[str]:
        pass

    @abstractmethod
    def filter_stored(self, name: str, value: Any) -> Any:
        """Called when the setting has a stored value."""
        pass

    @abstractmethod
    def filter_default(self, name: str, default: Any) -> Any:
        """Called when the setting has no stored value."""
        pass


class IMutationGuard(ABC):
    """Pre-persist checks for user records and user metadata."""

    @abstractmethod
    def guard_new_or_updated_user(self, proposed_fields: Dict[str, Any], is_update: bool,
                                  user_id: Optional[int], raw_input: Dict[str, Any]):
        pass

    @abstractmethod
    def guard_user_metadata_insert(self, proposed_meta: Dict[str, Any], user: HostUser,
                                   is_update: Optional[bool], raw_input: Dict[str, Any]):
        pass

    @abstractmethod
    def guard_user_metadata_update(self, object_id: int, meta_key: str, meta_value: Any,
                                   default_check: Any = None):
        pass


class IExtensionPoint(ABC):
    """Host surface where interceptors are registered."""

    @abstractmethod
    def register_settings_interceptor(self, interceptor: ISettingsInterceptor) -> None:
        pass

    @abstractmethod
    def unregister_settings_interceptor(self, interceptor: ISettingsInterceptor) -> None:
        pass

    @abstractmethod
    def register_mutation_guard(self, guard: IMutationGuard) -> None:
        pass

    @abstractmethod
    def unregister_mutation_guard(self, guard: IMutationGuard) -> None:
        pass

    @abstractmethod
    def is_settings_interceptor_registered(self, interceptor: ISettingsInterceptor) -> bool:
        """True if this interceptor, or one equal to it, is registered."""
        pass

    @abstractmethod
    def is_mutation_guard_registered(self, guard: IMutationGuard) -> bool:
        pass


class SimpleInMemoryConfigStore(IConfigStore):
    """Dictionary-backed option store. Values are copied in and out like real storage."""

    def __init__(self, initial: Dict[str, Any] = None):
        self._values: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Optional[Any]:
        if key not in self._values:
            return None
        return copy.deepcopy(self._values[key])

    def set(self, key: str, value: Any) -> bool:
        self._values[key] = copy.deepcopy(value)
        return True

    def add(self, key: str, value: Any) -> bool:
        if key in self._values:
            return False
        self._values[key] = copy.deepcopy(value)
        return True

    def delete(self, key: str) -> bool:
        if key not in self._values:
            return False
        del self._values[key]
        return True


class HookRegistry(IExtensionPoint):
    """In-process interceptor registry and dispatcher."""

    def __init__(self):
        self.settings_interceptors: List[ISettingsInterceptor] = []
        self.mutation_guards: List[IMutationGuard] = []

    def register_settings_interceptor(self, interceptor: ISettingsInterceptor) -> None:
        if interceptor not in self.settings_interceptors:
            self.settings_interceptors.append(interceptor)

    def unregister_settings_interceptor(self, interceptor: ISettingsInterceptor) -> None:
        if interceptor in self.settings_interceptors:
            self.settings_interceptors.remove(interceptor)

    def register_mutation_guard(self, guard: IMutationGuard) -> None:
        if guard not in self.mutation_guards:
            self.mutation_guards.append(guard)

    def unregister_mutation_guard(self, guard: IMutationGuard) -> None:
        if guard in self.mutation_guards:
            self.mutation_guards.remove(guard)

    def is_settings_interceptor_registered(self, interceptor: ISettingsInterceptor) -> bool:
        return interceptor in self.settings_interceptors

    def is_mutation_guard_registered(self, guard: IMutationGuard) -> bool:
        return guard in self.mutation_guards

    def apply_stored(self, name: str, value: Any) -> Any:
        for interceptor in list(self.settings_interceptors):
            if name in interceptor.intercepted_settings():
                value = interceptor.filter_stored(name, value)
        return value

    def apply_default(self, name: str, default: Any) -> Any:
        for interceptor in list(self.settings_interceptors):
            if name in interceptor.intercepted_settings():
                default = interceptor.filter_default(name, default)
        return default

    def dispatch_user_save(self, fields: Dict[str, Any], is_update: bool,
                           user_id: Optional[int], raw_input: Dict[str, Any] = None) -> Any:
        """Run user-record guards; returns the data to persist or False."""
        data = fields
        for guard in list(self.mutation_guards):
            decision = guard.guard_new_or_updated_user(data, is_update, user_id, raw_input or {})
            if not decision.allowed:
                return False
            data = decision.data
        return data

    def dispatch_meta_insert(self, meta: Dict[str, Any], user: HostUser,
                             is_update: Optional[bool], raw_input: Dict[str, Any] = None) -> Any:
        """Run insert-time metadata guards; returns the metadata to persist or False."""
        data = meta
        for guard in list(self.mutation_guards):
            decision = guard.guard_user_metadata_insert(data, user, is_update, raw_input or {})
            if not decision.allowed:
                return False
            data = decision.data
        return data

    def dispatch_meta_update(self, object_id: int, meta_key: str, meta_value: Any,
                             check: Any = None) -> Any:
        """Run update-time metadata guards; None lets the host continue, False denies."""
        for guard in list(self.mutation_guards):
            decision = guard.guard_user_metadata_update(object_id, meta_key, meta_value, check)
            if not decision.allowed:
                return False
            check = decision.data
        return check


class FilteredConfigStore(IConfigStore):
    """Option store whose reads pass through registered settings interceptors."""

    def __init__(self, inner: IConfigStore, hooks: HookRegistry):
        self.inner = inner
        self.hooks = hooks

    def get(self, key: str) -> Optional[Any]:
        value = self.inner.get(key)
        if value is None:
            return self.hooks.apply_default(key, None)
        return self.hooks.apply_stored(key, value)

    def set(self, key: str, value: Any) -> bool:
        return self.inner.set(key, value)

    def add(self, key: str, value: Any) -> bool:
        return self.inner.add(key, value)

    def delete(self, key: str) -> bool:
        return self.inner.delete(key)


@dataclass
class Host:
    """The collaborators a registration lock needs from its platform."""
    config: IConfigStore
    users: IUserDirectory
    roles: IRoleRegistry
    site: ISiteIdentity
    hooks: IExtensionPoint
