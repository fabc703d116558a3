"""
Registration lock records.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Values a stored flag may carry while still meaning "off"
FALSY_VALUES = (None, False, 0, "", "0", "false", "off", "no")


def is_truthy(value: Any) -> bool:
    """Interpret a raw meta value as a flag."""
    if isinstance(value, str):
        return value.strip().lower() not in FALSY_VALUES
    if isinstance(value, bool):
        return value
    return value not in FALSY_VALUES


def parse_level(value: Any) -> Optional[int]:
    """Parse a privilege level; empty means 0, unreadable means None."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass
class HostUser:
    """A user account as reported by the host user directory."""
    user_id: int
    login: str
    password_hash: str
    email: str
    registered_at: str
    roles: List[str] = field(default_factory=list)
    capabilities: Dict[str, Any] = field(default_factory=dict)
    effective_capabilities: Dict[str, Any] = field(default_factory=dict)


@dataclass
class UserSnapshot:
    """Identity and privilege fields of a user captured when the lock was enabled."""
    user_id: int
    login: str
    password_hash: str
    email: str
    registered_at: str
    roles: List[str]
    capabilities: Dict[str, Any]
    effective_capabilities: Dict[str, Any]
    capabilities_raw: str
    privilege_level_raw: str
    force_ssl_raw: str
    id: Optional[int] = None

    @property
    def privilege_level(self) -> int:
        level = parse_level(self.privilege_level_raw)
        return 0 if level is None else level

    @property
    def force_ssl_admin(self) -> bool:
        return is_truthy(self.force_ssl_raw)

    def has_raw_marker(self, marker: str) -> bool:
        """Literal match of a role name in the raw capability text, either quote style."""
        raw = self.capabilities_raw or ""
        return f'"{marker}"' in raw or f"'{marker}'" in raw

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'UserSnapshot':
        return cls(
            id=row.get("id"),
            user_id=row["user_id"],
            login=row["login"],
            password_hash=row["password_hash"],
            email=row["email"],
            registered_at=row["registered_at"],
            roles=_decode(row.get("roles_json"), []),
            capabilities=_decode(row.get("capabilities_json"), {}),
            effective_capabilities=_decode(row.get("effective_capabilities_json"), {}),
            capabilities_raw=row.get("capabilities_raw") or "",
            privilege_level_raw=row.get("privilege_level_raw") or "",
            force_ssl_raw=row.get("force_ssl_raw") or "",
        )


@dataclass
class GuardDecision:
    """Outcome of a mutation guard: proceed with data, or reject."""
    allowed: bool
    data: Any
    reason: Optional[str] = None
    code: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def proceed(cls, data: Any) -> 'GuardDecision':
        return cls(allowed=True, data=data)

    @classmethod
    def reject(cls, reason: str, code: str = "policy_violation") -> 'GuardDecision':
        # False is the host's "write denied" sentinel
        return cls(allowed=False, data=False, reason=reason, code=code)


def _decode(value: Optional[str], default: Any) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except ValueError:
        return default
