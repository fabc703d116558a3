"""
Human-readable notices produced by the drift audit and by guard flags.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"

    @property
    def prefix(self) -> str:
        return {"error": "Error", "warning": "Warning", "notice": "Notice"}[self.value]


class NoticeCode(str, Enum):
    """Structured codes so callers need not parse message text."""
    REGISTRATION_READ_FAILED = "registration_read_failed"
    REGISTRATION_ENABLED = "registration_enabled"
    DEFAULT_ROLE_READ_FAILED = "default_role_read_failed"
    DEFAULT_ROLE_CHANGED = "default_role_changed"
    ADMIN_EMAIL_CHANGED = "admin_email_changed"
    SITEURL_CHANGED = "siteurl_changed"
    SITE_URL_CHANGED = "site_url_changed"
    HOME_CHANGED = "home_changed"
    HOME_URL_CHANGED = "home_url_changed"
    PASSWORD_CHANGED = "password_changed"
    USER_LEVEL_CHANGED = "user_level_changed"
    USE_SSL_STRIPPED = "use_ssl_stripped"


@dataclass
class Notice:
    severity: Severity
    code: NoticeCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.severity.prefix}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "code": self.code.value,
            "message": str(self),
            "details": dict(self.details),
        }

    @classmethod
    def error(cls, code: NoticeCode, message: str, **details) -> 'Notice':
        return cls(Severity.ERROR, code, message, details)

    @classmethod
    def warning(cls, code: NoticeCode, message: str, **details) -> 'Notice':
        return cls(Severity.WARNING, code, message, details)

    @classmethod
    def notice(cls, code: NoticeCode, message: str, **details) -> 'Notice':
        return cls(Severity.NOTICE, code, message, details)
