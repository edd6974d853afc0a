"""
Audit logging for cashflow.

AuditLogger writes each AuditEvent as a JSON line through structlog and
keeps the most recent ones in memory for the settings page. Writing an
event never raises into the caller.
"""

import logging
from collections import deque
from typing import Optional

import structlog

from cashflow.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_log_level(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at `level`."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Records audit events for one running app.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("cashflow.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    def log(self, event: AuditEvent) -> AuditEvent:
        """Log an audit event locally and remember it."""
        log_dict = event.to_log_dict()

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # A broken log handler must not take a user action down with it
            logging.getLogger(__name__).warning("audit log write failed: %s", e)

        self._history.append(event)
        return event

    def recent_events(self, limit: int = 50) -> list[AuditEvent]:
        """Most recent events, newest first."""
        return list(reversed(self._history))[:limit]

    def log_signed_in(self, principal_id: str) -> None:
        self.log(AuditEventBuilder.signed_in(principal_id))

    def log_signed_out(self, principal_id: Optional[str]) -> None:
        self.log(AuditEventBuilder.signed_out(principal_id))

    def log_auth_failed(self, operation: str, error_message: str) -> None:
        self.log(AuditEventBuilder.auth_failed(operation, error_message))

    def log_subscription_opened(self, principal_id: str, path: str) -> None:
        self.log(AuditEventBuilder.subscription_opened(principal_id, path))

    def log_subscription_failed(
        self,
        principal_id: str,
        path: str,
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.subscription_failed(principal_id, path, error_message))

    def log_subscription_closed(self, principal_id: str, path: str) -> None:
        self.log(AuditEventBuilder.subscription_closed(principal_id, path))

    def log_transaction_created(
        self,
        principal_id: str,
        kind: str,
        transaction_id: str,
        amount: str,
    ) -> None:
        self.log(AuditEventBuilder.transaction_created(principal_id, kind, transaction_id, amount))

    def log_transaction_updated(
        self,
        principal_id: str,
        kind: str,
        transaction_id: str,
        amount: str,
    ) -> None:
        self.log(AuditEventBuilder.transaction_updated(principal_id, kind, transaction_id, amount))

    def log_transaction_deleted(
        self,
        principal_id: str,
        kind: str,
        transaction_id: str,
    ) -> None:
        self.log(AuditEventBuilder.transaction_deleted(principal_id, kind, transaction_id))

    def log_validation_failed(
        self,
        principal_id: Optional[str],
        kind: str,
        issues: list[dict],
    ) -> None:
        self.log(AuditEventBuilder.validation_failed(principal_id, kind, issues))

    def log_store_failed(
        self,
        principal_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.store_failed(principal_id, operation, error_message))

    def log_advice_requested(self, principal_id: Optional[str], month: str) -> None:
        self.log(AuditEventBuilder.advice_requested(principal_id, month))

    def log_advice_generated(
        self,
        principal_id: Optional[str],
        month: str,
        length: int,
    ) -> None:
        self.log(AuditEventBuilder.advice_generated(principal_id, month, length))

    def log_advice_failed(
        self,
        principal_id: Optional[str],
        month: str,
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.advice_failed(principal_id, month, error_message))

    def log_config_error(self, error_message: str) -> None:
        self.log(AuditEventBuilder.config_error(error_message))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.log(AuditEventBuilder.system_error(error_type, error_message, details))
