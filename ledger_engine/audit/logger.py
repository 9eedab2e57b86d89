"""
Audit Logger

DESIGN DECISION: Every expansion step is logged.
This provides:
1. Complete traceability of every group that was written
2. A record of which groups were left partially written
3. Debugging capability

The audit logger:
- Is async to match the gateway calls around it
- Gracefully handles failures (a broken audit sink never fails an expansion)
- Supports correlation IDs to trace all events of one submission
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger_engine.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from ledger_engine.services.storage import AuditStorageInterface


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
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entry_received(
        self,
        description: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        """Log a submission reaching the engine."""
        await self.log(AuditEventBuilder.entry_received(
            description=description,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_path_classified(
        self,
        path: str,
        planned_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log the chosen expansion path."""
        await self.log(AuditEventBuilder.path_classified(
            path=path,
            planned_count=planned_count,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log a rejected submission."""
        await self.log(AuditEventBuilder.validation_failed(
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_parent_written(
        self,
        group_id: UUID,
        pending_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log the first write of a group."""
        await self.log(AuditEventBuilder.parent_written(
            group_id=group_id,
            pending_count=pending_count,
            correlation_id=correlation_id,
        ))

    async def log_group_committed(
        self,
        group_id: UUID,
        entry_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log a fully written group."""
        await self.log(AuditEventBuilder.group_committed(
            group_id=group_id,
            entry_count=entry_count,
            correlation_id=correlation_id,
        ))

    async def log_partial_write(
        self,
        group_id: UUID,
        pending_count: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a group left with an orphaned parent."""
        await self.log(AuditEventBuilder.partial_write_failed(
            group_id=group_id,
            pending_count=pending_count,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_gateway_unavailable(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a failed first write."""
        await self.log(AuditEventBuilder.gateway_unavailable(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_remainder_resumed(
        self,
        group_id: UUID,
        entry_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.remainder_resumed(
            group_id=group_id,
            entry_count=entry_count,
            correlation_id=correlation_id,
        ))

    async def log_group_updated(
        self,
        group_id: UUID,
        fields: list[str],
        entry_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.group_updated(
            group_id=group_id,
            fields=fields,
            entry_count=entry_count,
            correlation_id=correlation_id,
        ))

    async def log_group_deleted(
        self,
        group_id: UUID,
        entry_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.group_deleted(
            group_id=group_id,
            entry_count=entry_count,
            correlation_id=correlation_id,
        ))

    async def log_entry_duplicated(
        self,
        source_id: UUID,
        new_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entry_duplicated(
            source_id=source_id,
            new_id=new_id,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new submission and pass it through
    all subsequent operations.
    """
    return uuid4()
