"""
Registration lock audit logging.
Structured operation records for guards, audits and lifecycle transitions.
"""

import logging
from typing import Any, Dict, List

# Fields whose values never reach the log verbatim
SENSITIVE_FIELDS = ['password', 'password_hash', 'user_pass', 'secret', 'token']


class StructuredLogger:
    """Structured logger for registration lock operations."""

    def __init__(self, name: str = "reglock"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def set_debug(self, enabled: bool):
        """Switch between DEBUG and INFO; allowed guard decisions only appear at DEBUG."""
        self.logger.setLevel(logging.DEBUG if enabled else logging.INFO)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {sanitize_payload(details)}"

        self.logger.log(level, message)

    def log_guard_decision(self, gate: str, allowed: bool, user_id: Any = None, reason: str = None, code: str = None):
        """Log the outcome of a mutation guard."""
        details = {"gate": gate, "user_id": user_id}
        if reason:
            details["reason"] = reason
        if code:
            details["code"] = code

        if allowed:
            self.log_operation(f"guard.{gate}", "allowed", details, level=logging.DEBUG)
        else:
            self.log_operation(f"guard.{gate}", "rejected", details, level=logging.WARNING)

    def log_guard_flag(self, gate: str, user_id: Any, code: str, details: Dict[str, Any] = None):
        """Log a non-blocking change observed by a guard."""
        log_details = {"gate": gate, "user_id": user_id, "code": code}
        if details:
            log_details.update(details)

        self.log_operation("guard.flag", "observed", log_details, level=logging.WARNING)

    def log_audit_notice(self, severity: str, code: str, message: str):
        """Log a notice produced by the drift audit."""
        level = {
            "error": logging.ERROR,
            "warning": logging.WARNING,
        }.get(severity, logging.INFO)

        self.log_operation("audit.notice", severity, {"code": code, "message": message}, level=level)

    def log_audit_run(self, start_time: float, end_time: float, notices_count: int, status: str = "success"):
        """Log a completed audit run."""
        duration_ms = round((end_time - start_time) * 1000, 2)
        self.log_operation("audit.run", status, {
            "duration_ms": duration_ms,
            "notices_count": notices_count
        })

    def log_lifecycle(self, step: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a lifecycle step (setup, migration, teardown)."""
        self.log_operation(f"lifecycle.{step}", status, details)

    def log_snapshot_operation(self, operation: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a snapshot table operation."""
        level = logging.ERROR if status == "failed" else logging.INFO
        self.log_operation(f"snapshot.{operation}", status, details, level=level)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for audit logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
