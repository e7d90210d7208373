"""
Audit Models for Expense Tracker

Every significant action in the system is recorded as an audit event.
This provides:
1. Traceability of rate refreshes and cache maintenance
2. Debugging information when a conversion comes back "rate unavailable"
3. A history of edits to the user's transactions

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_SAVED = "transaction_saved"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Rate cache
    RATES_REFRESH_STARTED = "rates_refresh_started"
    RATES_REFRESHED = "rates_refreshed"
    RATES_REFRESH_FAILED = "rates_refresh_failed"
    RATES_PRUNED = "rates_pruned"
    RATES_PRUNE_FAILED = "rates_prune_failed"
    RATE_NOT_FOUND = "rate_not_found"

    # Reports
    REPORT_GENERATED = "report_generated"


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

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred (local time)"
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
        description="Type of entity (e.g., 'transaction', 'rates', 'report')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity (transaction id, base currency, month)"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one refresh)"
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
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> list:
        """
        Convert to a flat row for tabular storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_code,
         error_message, is_user_action]
        """
        import json

        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_code or "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.rates_refreshed("USD", 161, correlation_id)
        event = AuditEventBuilder.transaction_saved(transaction)
    """

    @staticmethod
    def transaction_saved(
        transaction_id: str,
        amount: float,
        currency: str,
        category: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction saved: {amount:.2f} {currency} ({category})",
            details={
                "amount": amount,
                "currency": currency,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        amount: float,
        currency: str,
        category: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction updated: {amount:.2f} {currency} ({category})",
            details={
                "amount": amount,
                "currency": currency,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def rates_refresh_started(
        base_currency: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_REFRESH_STARTED,
            severity=AuditSeverity.DEBUG,
            entity_type="rates",
            entity_id=base_currency,
            correlation_id=correlation_id,
            description=f"Refreshing exchange rates for {base_currency}",
        )

    @staticmethod
    def rates_refreshed(
        base_currency: str,
        rates_stored: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_REFRESHED,
            entity_type="rates",
            entity_id=base_currency,
            correlation_id=correlation_id,
            description=f"Cached {rates_stored} rates for base {base_currency}",
            details={
                "rates_stored": rates_stored,
            },
        )

    @staticmethod
    def rates_refresh_failed(
        base_currency: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_REFRESH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="rates",
            entity_id=base_currency,
            correlation_id=correlation_id,
            description=f"Exchange rate refresh failed for {base_currency}",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def rates_pruned(cutoff: str, deleted: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_PRUNED,
            entity_type="rates",
            description=f"Pruned {deleted} cached rates dated before {cutoff}",
            details={
                "cutoff": cutoff,
                "deleted": deleted,
            },
        )

    @staticmethod
    def rates_prune_failed(cutoff: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_PRUNE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="rates",
            description=f"Could not prune cached rates dated before {cutoff}",
            error_message=error_message,
            details={
                "cutoff": cutoff,
            },
        )

    @staticmethod
    def rate_not_found(
        from_currency: str,
        to_currency: str,
        on_date: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATE_NOT_FOUND,
            severity=AuditSeverity.WARNING,
            entity_type="rates",
            entity_id=f"{from_currency}/{to_currency}",
            description=f"No exchange rate available for {from_currency} -> {to_currency}",
            details={
                "from": from_currency,
                "to": to_currency,
                "date": on_date,
            },
        )

    @staticmethod
    def report_generated(
        month: str,
        transaction_count: int,
        unconverted: int,
        base_currency: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_GENERATED,
            severity=(
                AuditSeverity.WARNING if unconverted else AuditSeverity.INFO
            ),
            entity_type="report",
            entity_id=month,
            description=f"Monthly report for {month}: {transaction_count} transactions",
            details={
                "transaction_count": transaction_count,
                "unconverted": unconverted,
                "base_currency": base_currency,
            },
        )
