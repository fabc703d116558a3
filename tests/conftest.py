"""
Shared fixtures: an in-process host with three pre-existing users.
"""

import pytest

from reglock.core.config import LockSettings
from reglock.core.host import (
    FilteredConfigStore, HookRegistry, Host, IRoleRegistry, ISiteIdentity,
    IUserDirectory, SimpleInMemoryConfigStore
)
from reglock.core.lifecycle import LifecycleManager
from reglock.core.schema import HostUser

START_TIME = 1_700_000_000


class FakeUserDirectory(IUserDirectory):
    def __init__(self):
        self.users = {}
        self.meta = {}

    def add(self, user: HostUser, meta: dict = None):
        self.users[user.user_id] = user
        self.meta[user.user_id] = meta or {}

    def list_users(self):
        return list(self.users.values())

    def get_user_meta(self, user_id):
        return dict(self.meta.get(user_id, {}))


class FakeRoleRegistry(IRoleRegistry):
    def __init__(self):
        self.roles = {"administrator": {}, "editor": {}, "subscriber": {}}

    def add_role(self, name, display_name, capabilities):
        self.roles.setdefault(name, dict(capabilities))

    def remove_role(self, name):
        self.roles.pop(name, None)


class FakeSiteIdentity(ISiteIdentity):
    def __init__(self, site="https://example.com", home="https://example.com"):
        self.site = site
        self.home = home

    def site_url(self):
        return self.site

    def home_url(self):
        return self.home


class FakeClock:
    def __init__(self, now=START_TIME):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def settings(tmp_path):
    return LockSettings(db_path=str(tmp_path / "reglock.db"))


@pytest.fixture
def hooks():
    return HookRegistry()


@pytest.fixture
def base_store():
    """Underlying option storage, never filtered."""
    return SimpleInMemoryConfigStore({
        "users_can_register": 1,
        "default_role": "author",
        "admin_email": "admin@example.com",
        "siteurl": "https://example.com",
        "home": "https://example.com",
    })


@pytest.fixture
def directory():
    users = FakeUserDirectory()
    users.add(
        HostUser(1, "admin", "$P$adminhash", "admin@example.com", "2021-01-01 00:00:00",
                 ["administrator"], {"administrator": True}, {"manage_options": True}),
        {"wp_capabilities": 'a:1:{s:13:"administrator";b:1;}', "wp_user_level": "10", "use_ssl": "1"}
    )
    users.add(
        HostUser(2, "editor", "$P$editorhash", "editor@example.com", "2021-02-01 00:00:00",
                 ["editor"], {"editor": True}, {"edit_posts": True}),
        {"wp_capabilities": {"editor": True}, "wp_user_level": "7", "use_ssl": "1"}
    )
    users.add(
        HostUser(3, "reader", "$P$readerhash", "reader@example.com", "2021-03-01 00:00:00",
                 ["subscriber"], {"subscriber": True}, {"read": True}),
        {"wp_capabilities": {"subscriber": True}, "wp_user_level": "0", "use_ssl": ""}
    )
    return users


@pytest.fixture
def host(base_store, hooks, directory):
    return Host(
        config=FilteredConfigStore(base_store, hooks),
        users=directory,
        roles=FakeRoleRegistry(),
        site=FakeSiteIdentity(),
        hooks=hooks,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def flags():
    return []


@pytest.fixture
def manager(host, settings, clock, flags):
    return LifecycleManager(host, settings, clock=clock, on_flag=flags.append)


@pytest.fixture
def locked(manager):
    """A manager that has run its first request cycle."""
    manager.init()
    return manager
