"""
Registration lock configuration.
One explicit LockSettings value is built per installation and handed to every component.
"""

import os
import re
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# Version string of the running code; compared against stored schema markers
VERSION = "1.0.0"

# Host option names for the two lock settings and the monitored identity settings
OPTION_USERS_CAN_REGISTER = "users_can_register"
OPTION_DEFAULT_ROLE = "default_role"
OPTION_ADMIN_EMAIL = "admin_email"
OPTION_SITEURL = "siteurl"
OPTION_HOME = "home"

# Value a locked registration flag is stored as
REGISTRATION_DISABLED = 0

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class LockSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    option_name: str = "user-registration-lock"
    db_path: str = "./data/reglock.db"
    snapshot_table: str = "reglock_save_users"
    meta_prefix: str = "wp_"
    audit_interval_sec: int = 3600
    locked_role: str = "user-registration-lock"
    locked_role_display_name: str = "User Registration Locked"
    stored_role: str = "subscriber"
    use_dedicated_role: bool = True
    remove_role_on_teardown: bool = True
    version: str = VERSION
    debug: bool = False

    @field_validator('option_name', 'locked_role', 'stored_role')
    @classmethod
    def name_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('name cannot be empty')
        return v

    @field_validator('snapshot_table')
    @classmethod
    def table_must_be_identifier(cls, v):
        if not _IDENTIFIER.match(v):
            raise ValueError(f'snapshot_table must be a plain SQL identifier: {v!r}')
        return v

    @field_validator('audit_interval_sec')
    @classmethod
    def interval_must_be_positive(cls, v):
        if v < 1:
            raise ValueError('audit_interval_sec must be >= 1')
        return v

    @property
    def capabilities_key(self) -> str:
        """User meta key holding the capability map."""
        return f"{self.meta_prefix}capabilities"

    @property
    def user_level_key(self) -> str:
        """User meta key holding the numeric privilege level."""
        return f"{self.meta_prefix}user_level"

    @property
    def use_ssl_key(self) -> str:
        """User meta key forcing a secure admin session (unprefixed)."""
        return "use_ssl"

    @property
    def default_role_value(self) -> str:
        """Role returned to the host for new signups while locked."""
        return self.locked_role if self.use_dedicated_role else self.stored_role


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def load_settings(**overrides) -> LockSettings:
    """Build settings from REGLOCK_* environment variables (and a .env file if present)."""
    load_dotenv()

    values = {
        "option_name": os.getenv("REGLOCK_OPTION_NAME", "user-registration-lock"),
        "db_path": os.getenv("REGLOCK_DB_PATH", "./data/reglock.db"),
        "snapshot_table": os.getenv("REGLOCK_SNAPSHOT_TABLE", "reglock_save_users"),
        "meta_prefix": os.getenv("REGLOCK_META_PREFIX", "wp_"),
        "audit_interval_sec": int(os.getenv("REGLOCK_AUDIT_INTERVAL_SEC", "3600")),
        "locked_role": os.getenv("REGLOCK_LOCKED_ROLE", "user-registration-lock"),
        "stored_role": os.getenv("REGLOCK_STORED_ROLE", "subscriber"),
        "use_dedicated_role": _env_bool("REGLOCK_USE_DEDICATED_ROLE", "true"),
        "remove_role_on_teardown": _env_bool("REGLOCK_REMOVE_ROLE_ON_TEARDOWN", "true"),
        "debug": _env_bool("REGLOCK_DEBUG", "false"),
    }
    values.update(overrides)

    return LockSettings(**values)


def ensure_db_directory(settings: LockSettings):
    """Ensure the snapshot database directory exists."""
    Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)


def validate_settings(settings: LockSettings) -> List[str]:
    """Validate cross-field configuration and return any issues."""
    issues = []

    if settings.use_dedicated_role and settings.locked_role == settings.stored_role:
        issues.append("locked_role must differ from stored_role when use_dedicated_role=true")

    if not settings.meta_prefix.strip():
        issues.append("meta_prefix is empty; capability keys will be unprefixed")

    if settings.audit_interval_sec > 7 * 86400:
        issues.append(f"audit_interval_sec is very large: {settings.audit_interval_sec}")

    return issues
