"""Tests for the audit logger and audit events."""

from cashflow.audit import AuditLogger
from cashflow.models.audit import (
    MAX_DESCRIPTION_LENGTH,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
)


class TestAuditLogger:
    """Tests for the audit logger."""

    def test_recent_events_newest_first(self):
        """Test the bounded history."""
        audit = AuditLogger(history_size=2)
        audit.log_signed_in("alice")
        audit.log_transaction_created("alice", "expense", "e1", "10")
        audit.log_signed_out("alice")

        events = audit.recent_events()
        assert [e.event_type for e in events] == [
            AuditEventType.SIGNED_OUT,
            AuditEventType.TRANSACTION_CREATED,
        ]

    def test_long_values_do_not_raise(self):
        """Test that an oversized amount still produces an event."""
        audit = AuditLogger()
        audit.log_transaction_created("alice", "expense", "e1", "1" * 600)

        [event] = audit.recent_events()
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert len(event.description) == MAX_DESCRIPTION_LENGTH


class TestAuditEvent:
    """Tests for audit event construction."""

    def test_description_truncated(self):
        """Test that long descriptions are cut instead of rejected."""
        event = AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="x" * 900)
        assert len(event.description) == MAX_DESCRIPTION_LENGTH
        assert event.description.endswith("...")

    def test_short_description_untouched(self):
        """Test that normal descriptions are kept as written."""
        event = AuditEventBuilder.signed_in("alice")
        assert not event.description.endswith("...")
