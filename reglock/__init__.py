"""
Registration lock - keeps new user registration disabled and watches existing users for privilege changes.
"""

from .core.config import VERSION, LockSettings, load_settings
from .core.host import (
    Host, HookRegistry, FilteredConfigStore, SimpleInMemoryConfigStore,
    IConfigStore, IUserDirectory, IRoleRegistry, ISiteIdentity, IExtensionPoint
)
from .core.kv import SqliteConfigStore
from .core.lifecycle import LifecycleManager, on_init, on_activate, on_deactivate, on_uninstall
from .core.notices import Notice, NoticeCode, Severity
from .core.schema import GuardDecision, HostUser, UserSnapshot

__version__ = VERSION

__all__ = [
    'VERSION',
    'LockSettings',
    'load_settings',
    'Host',
    'HookRegistry',
    'FilteredConfigStore',
    'SimpleInMemoryConfigStore',
    'SqliteConfigStore',
    'IConfigStore',
    'IUserDirectory',
    'IRoleRegistry',
    'ISiteIdentity',
    'IExtensionPoint',
    'LifecycleManager',
    'on_init',
    'on_activate',
    'on_deactivate',
    'on_uninstall',
    'Notice',
    'NoticeCode',
    'Severity',
    'GuardDecision',
    'HostUser',
    'UserSnapshot',
]
