"""
Structured logging for record, meta tree and SQL operations.
"""

import logging
import os
from typing import Any, Dict, List


class StructuredLogger:
    """Structured logger for record, meta and database operations."""

    def __init__(self, name: str = "sqlitedb"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(os.getenv("SQLITEDB_LOG_LEVEL", "INFO").upper())

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.info(message)

    def log_record_change(self, column: str, value: Any = None, status: str = "applied"):
        """Log a record column assignment. Values of sensitive columns are redacted."""
        details = {"column": column}
        if value is not None:
            text = str(value)
            text = text[:50] + "..." if len(text) > 50 else text
            details["value"] = sanitize_payload({column.lower(): text})[column.lower()]

        self.logger.debug(f"Operation: record.set, Status: {status}, Details: {details}")

    def log_meta_operation(self, operation: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a meta tree operation."""
        self.log_operation(f"meta.{operation}", status, details)

    def log_sql_operation(self, operation: str, sql: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a SQL statement execution."""
        log_details = {"sql": sql[:100] + "..." if len(sql) > 100 else sql}
        if details:
            log_details.update(details)

        self.log_operation(f"sql.{operation}", status, log_details)

    def log_sql_error(self, operation: str, sql: str, error: Exception):
        """Log a failed SQL statement."""
        self.logger.error(f"Operation: sql.{operation}, Status: failed, "
                          f"Details: {{'sql': {sql[:100]!r}, 'error': {str(error)!r}}}")

    # Standard logging methods for compatibility
    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)


# Global logger instance
logger = StructuredLogger()


def audit_event(event_type: str, identifiers: Dict[str, Any], payload: Dict[str, Any] = None, sensitive_fields: List[str] = None):
    """General audit event logging with sensitive field redaction."""
    if sensitive_fields is None:
        sensitive_fields = ['value', 'password', 'secret', 'token', 'ciphertext']

    log_details = identifiers.copy() if identifiers else {}

    if payload:
        log_details["payload"] = sanitize_payload(payload, sensitive_fields=sensitive_fields)

    logger.log_operation(event_type.replace(".", "_"), "audit", log_details)


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for audit logging."""
    if sensitive_fields is None:
        sensitive_fields = ['value', 'password', 'secret', 'token', 'ciphertext']

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
