"""Audit logging package."""

from cashflow.audit.logger import AuditLogger, configure_log_level

__all__ = ["AuditLogger", "configure_log_level"]
