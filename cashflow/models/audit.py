"""
Audit event models for cashflow.

Sign-ins, subscription changes, mutations and advice calls each produce
one AuditEvent. Events are immutable once built and are written to the
structured log by cashflow.audit.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


MAX_DESCRIPTION_LENGTH = 500


class AuditEventType(str, Enum):
    """Kinds of audited events."""
    # Session
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    AUTH_FAILED = "auth_failed"

    # Subscriptions
    SUBSCRIPTION_OPENED = "subscription_opened"
    SUBSCRIPTION_FAILED = "subscription_failed"
    SUBSCRIPTION_CLOSED = "subscription_closed"

    # Mutations
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    VALIDATION_FAILED = "validation_failed"
    STORE_FAILED = "store_failed"

    # Advice
    ADVICE_REQUESTED = "advice_requested"
    ADVICE_GENERATED = "advice_generated"
    ADVICE_FAILED = "advice_failed"

    # System events
    CONFIG_ERROR = "config_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """How loudly an event is logged."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """One audited occurrence, keyed by a random event_id."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Random id for correlating log lines"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC time the event was built"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="What happened"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Log level used when writing the event"
    )

    # Context - who and what is this about?
    principal_id: Optional[str] = Field(
        default=None,
        description="Signed-in user the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'income', 'collection')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Transaction id or collection path"
    )

    description: str = Field(
        ...,
        max_length=MAX_DESCRIPTION_LENGTH,
        description="Short message shown on the settings page"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra fields merged into the log line"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="True when a button press caused the event"
    )

    @field_validator("description", mode="before")
    @classmethod
    def truncate_description(cls, v):
        if isinstance(v, str) and len(v) > MAX_DESCRIPTION_LENGTH:
            return v[: MAX_DESCRIPTION_LENGTH - 3] + "..."
        return v

    def to_log_dict(self) -> dict:
        """Flatten to JSON-safe values for structlog."""
        return self.model_dump(mode="json")


class AuditEventBuilder:
    """
    Factory methods, one per AuditEventType.

    Usage:
        event = AuditEventBuilder.signed_in(principal_id)
        event = AuditEventBuilder.transaction_created(principal_id, "expense", doc_id, "150.00")
    """

    @staticmethod
    def signed_in(principal_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_IN,
            principal_id=principal_id,
            description="User signed in",
            is_user_action=True,
        )

    @staticmethod
    def signed_out(principal_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SIGNED_OUT,
            principal_id=principal_id,
            description="User signed out",
            is_user_action=True,
        )

    @staticmethod
    def auth_failed(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_FAILED,
            severity=AuditSeverity.WARNING,
            description=f"Authentication failed during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def subscription_opened(principal_id: str, path: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_OPENED,
            principal_id=principal_id,
            entity_type="collection",
            entity_id=path,
            description=f"Subscribed to {path}",
        )

    @staticmethod
    def subscription_failed(
        principal_id: str,
        path: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_FAILED,
            severity=AuditSeverity.ERROR,
            principal_id=principal_id,
            entity_type="collection",
            entity_id=path,
            description=f"Subscription to {path} failed",
            error_message=error_message,
        )

    @staticmethod
    def subscription_closed(principal_id: str, path: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_CLOSED,
            principal_id=principal_id,
            entity_type="collection",
            entity_id=path,
            description=f"Unsubscribed from {path}",
        )

    @staticmethod
    def transaction_created(
        principal_id: str,
        kind: str,
        transaction_id: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            principal_id=principal_id,
            entity_type=kind,
            entity_id=transaction_id,
            description=f"{kind.capitalize()} added: {amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        principal_id: str,
        kind: str,
        transaction_id: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            principal_id=principal_id,
            entity_type=kind,
            entity_id=transaction_id,
            description=f"{kind.capitalize()} updated: {amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        principal_id: str,
        kind: str,
        transaction_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            principal_id=principal_id,
            entity_type=kind,
            entity_id=transaction_id,
            description=f"{kind.capitalize()} deleted",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        principal_id: Optional[str],
        kind: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            principal_id=principal_id,
            entity_type=kind,
            description=f"{kind.capitalize()} form rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def store_failed(
        principal_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_FAILED,
            severity=AuditSeverity.ERROR,
            principal_id=principal_id,
            description=f"Store operation failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def advice_requested(principal_id: Optional[str], month: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_REQUESTED,
            principal_id=principal_id,
            description=f"Advice requested for {month}",
            details={"month": month},
            is_user_action=True,
        )

    @staticmethod
    def advice_generated(
        principal_id: Optional[str],
        month: str,
        length: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_GENERATED,
            principal_id=principal_id,
            description=f"Advice generated for {month}",
            details={"month": month, "characters": length},
        )

    @staticmethod
    def advice_failed(
        principal_id: Optional[str],
        month: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_FAILED,
            severity=AuditSeverity.WARNING,
            principal_id=principal_id,
            description=f"Advice failed for {month}",
            error_message=error_message,
            details={"month": month},
        )

    @staticmethod
    def config_error(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONFIG_ERROR,
            severity=AuditSeverity.CRITICAL,
            description="Backend configuration missing or invalid",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
