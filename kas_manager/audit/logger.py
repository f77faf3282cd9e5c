"""
Activity Logger

Writes every cash-book write and every failure as a JSON log line.
Events of one user action share a correlation id.

The logger never raises.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from kas_manager.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


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


class AuditLogger:
    """
    Central activity logging service.

    Events are written as structured log lines, at a level
    matching their severity.
    """

    def __init__(self):
        self._logger = structlog.get_logger("kas_manager.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an activity event.

        Returns True if the event was written.
        """
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
        except Exception:
            return False

        return True

    async def log_row_created(
        self,
        entity_type: str,
        entity_id: str,
        summary: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a row insert."""
        await self.log(AuditEventBuilder.row_created(
            entity_type=entity_type,
            entity_id=entity_id,
            summary=summary,
            correlation_id=correlation_id,
        ))

    async def log_row_updated(
        self,
        entity_type: str,
        entity_id: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a row patch."""
        await self.log(AuditEventBuilder.row_updated(
            entity_type=entity_type,
            entity_id=entity_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_row_deleted(
        self,
        entity_type: str,
        entity_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a row delete."""
        await self.log(AuditEventBuilder.row_deleted(
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))

    async def log_fetch_failed(
        self,
        entity_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed list fetch."""
        await self.log(AuditEventBuilder.fetch_failed(
            entity_type=entity_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_write_failed(
        self,
        entity_type: str,
        operation: str,
        error_message: str,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed create/update/delete."""
        await self.log(AuditEventBuilder.write_failed(
            entity_type=entity_type,
            operation=operation,
            error_message=error_message,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))

    async def log_bills_generated(
        self,
        year: int,
        month: int,
        created: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log monthly bill generation."""
        await self.log(AuditEventBuilder.bills_generated(
            year=year,
            month=month,
            created=created,
            correlation_id=correlation_id,
        ))

    async def log_bill_payment_changed(
        self,
        bill_id: str,
        is_paid: bool,
        amount_paid: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a paid/unpaid toggle."""
        await self.log(AuditEventBuilder.bill_payment_changed(
            bill_id=bill_id,
            is_paid=is_paid,
            amount_paid=amount_paid,
            correlation_id=correlation_id,
        ))

    async def log_receipt_uploaded(
        self,
        path: str,
        url: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a stored receipt image."""
        await self.log(AuditEventBuilder.receipt_uploaded(
            path=path,
            url=url,
            correlation_id=correlation_id,
        ))

    async def log_receipt_upload_failed(
        self,
        filename: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a receipt that could not be stored."""
        await self.log(AuditEventBuilder.receipt_upload_failed(
            filename=filename,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_broadcast_generated(
        self,
        year: int,
        month: int,
        income_count: int,
        expense_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log broadcast message generation."""
        await self.log(AuditEventBuilder.broadcast_generated(
            year=year,
            month=month,
            income_count=income_count,
            expense_count=expense_count,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., submitting an expense form).
    """
    return uuid4()
