"""
Activity (Audit) Models for Kas Manager

Every write and every failure is recorded as an AuditEvent so the
treasurer can reconstruct what happened to the cash book.
This provides:
1. Traceability of who-did-what in the session log
2. Debugging information when the backend misbehaves
3. A consistent shape for structured log lines
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we record."""
    # Data access
    ROW_CREATED = "row_created"
    ROW_UPDATED = "row_updated"
    ROW_DELETED = "row_deleted"
    FETCH_FAILED = "fetch_failed"
    WRITE_FAILED = "write_failed"

    # Monthly dues
    BILLS_GENERATED = "bills_generated"
    BILL_MARKED_PAID = "bill_marked_paid"
    BILL_MARKED_UNPAID = "bill_marked_unpaid"

    # Receipts
    RECEIPT_UPLOADED = "receipt_uploaded"
    RECEIPT_UPLOAD_FAILED = "receipt_upload_failed"

    # Broadcast
    BROADCAST_GENERATED = "broadcast_generated"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """A single recorded event."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection name (e.g., 'residents', 'monthly_bills')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Row id the event relates to"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate events of one user action"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.row_created("residents", resident.id, "Budi")
        event = AuditEventBuilder.bills_generated(2025, 1, created=4)
    """

    @staticmethod
    def row_created(
        entity_type: str,
        entity_id: str,
        summary: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROW_CREATED,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Created {entity_type} row: {summary}",
            is_user_action=True,
        )

    @staticmethod
    def row_updated(
        entity_type: str,
        entity_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROW_UPDATED,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Updated {entity_type} row",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def row_deleted(
        entity_type: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROW_DELETED,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Deleted {entity_type} row",
            is_user_action=True,
        )

    @staticmethod
    def fetch_failed(
        entity_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Could not load {entity_type}, keeping cached rows",
            error_message=error_message,
        )

    @staticmethod
    def write_failed(
        entity_type: str,
        operation: str,
        error_message: str,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{operation.capitalize()} on {entity_type} failed",
            details={"operation": operation},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def bills_generated(
        year: int,
        month: int,
        created: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILLS_GENERATED,
            entity_type="monthly_bills",
            correlation_id=correlation_id,
            description=f"Generated {created} bills for {year}-{month:02d}",
            details={"year": year, "month": month, "created": created},
            is_user_action=True,
        )

    @staticmethod
    def bill_payment_changed(
        bill_id: str,
        is_paid: bool,
        amount_paid: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.BILL_MARKED_PAID
                if is_paid
                else AuditEventType.BILL_MARKED_UNPAID
            ),
            entity_type="monthly_bills",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Bill marked paid" if is_paid else "Bill marked unpaid",
            details={"amount_paid": amount_paid},
            is_user_action=True,
        )

    @staticmethod
    def receipt_uploaded(
        path: str,
        url: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            entity_type="receipts",
            correlation_id=correlation_id,
            description=f"Receipt uploaded: {path}",
            details={"path": path, "url": url},
            is_user_action=True,
        )

    @staticmethod
    def receipt_upload_failed(
        filename: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOAD_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="receipts",
            correlation_id=correlation_id,
            description=f"Receipt upload failed, saving expense without it: {filename}",
            error_message=error_message,
        )

    @staticmethod
    def broadcast_generated(
        year: int,
        month: int,
        income_count: int,
        expense_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BROADCAST_GENERATED,
            entity_type="broadcast",
            correlation_id=correlation_id,
            description=f"Broadcast generated for {year}-{month:02d}",
            details={
                "income_count": income_count,
                "expense_count": expense_count,
            },
        )
