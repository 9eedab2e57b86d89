"""
Audit Models for the Ledger Engine

Every submission that reaches the engine leaves a trail:
1. What was received and how it was classified
2. Which writes succeeded and which failed
3. Which cascade operations a caller performed on a group

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
A partially written group must always be reconstructable from its trail.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Submission
    ENTRY_RECEIVED = "entry_received"
    PATH_CLASSIFIED = "path_classified"
    VALIDATION_FAILED = "validation_failed"

    # Writes
    PARENT_WRITTEN = "parent_written"
    GROUP_COMMITTED = "group_committed"
    PARTIAL_WRITE_FAILED = "partial_write_failed"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"
    REMAINDER_RESUMED = "remainder_resumed"

    # Caller-level group operations
    GROUP_UPDATED = "group_updated"
    GROUP_DELETED = "group_deleted"
    ENTRY_DUPLICATED = "entry_duplicated"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant step of an expansion creates one of these.
    """

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
        description="Type of entity (e.g., 'entry', 'group')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - all events of one submission share this
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one submission)"
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

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

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
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_code, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_code or "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_received(description, path, correlation_id)
        event = AuditEventBuilder.group_committed(group_id, 3, correlation_id)
    """

    @staticmethod
    def entry_received(
        description: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_RECEIVED,
            entity_type="entry",
            correlation_id=correlation_id,
            description=f"Entry received: {description}"[:500],
            details={"amount": amount},
        )

    @staticmethod
    def path_classified(
        path: str,
        planned_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PATH_CLASSIFIED,
            entity_type="entry",
            correlation_id=correlation_id,
            description=f"Entry classified for {path} write of {planned_count} entries",
            details={"path": path, "planned_count": planned_count},
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            correlation_id=correlation_id,
            description=f"Submission rejected with {len(issues)} issue(s)",
            details={"issues": issues},
            error_code="validation_error",
        )

    @staticmethod
    def parent_written(
        group_id: UUID,
        pending_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARENT_WRITTEN,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Group parent written, {pending_count} entries pending",
            details={"pending_count": pending_count},
        )

    @staticmethod
    def group_committed(
        group_id: UUID,
        entry_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_COMMITTED,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Group committed with {entry_count} entries",
            details={"entry_count": entry_count},
        )

    @staticmethod
    def partial_write_failed(
        group_id: UUID,
        pending_count: int,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTIAL_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Parent written but {pending_count} entries failed to persist",
            details={"pending_count": pending_count},
            error_code="partial_write",
            error_message=error_message,
        )

    @staticmethod
    def gateway_unavailable(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GATEWAY_UNAVAILABLE,
            severity=AuditSeverity.ERROR,
            entity_type="entry",
            correlation_id=correlation_id,
            description="First write failed, nothing persisted",
            error_code="gateway_unavailable",
            error_message=error_message,
        )

    @staticmethod
    def remainder_resumed(
        group_id: UUID,
        entry_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMAINDER_RESUMED,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Resumed {entry_count} pending entries",
            details={"entry_count": entry_count},
        )

    @staticmethod
    def group_updated(
        group_id: UUID,
        fields: list[str],
        entry_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_UPDATED,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Updated {entry_count} entries in group",
            details={"fields": fields, "entry_count": entry_count},
        )

    @staticmethod
    def group_deleted(
        group_id: UUID,
        entry_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_DELETED,
            entity_type="group",
            entity_id=group_id,
            correlation_id=correlation_id,
            description=f"Deleted {entry_count} entries in group",
            details={"entry_count": entry_count},
        )

    @staticmethod
    def entry_duplicated(
        source_id: UUID,
        new_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DUPLICATED,
            entity_type="entry",
            entity_id=new_id,
            correlation_id=correlation_id,
            description="Entry duplicated",
            details={"source_id": str(source_id)},
        )
