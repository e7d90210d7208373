"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of rate refreshes and cache pruning
2. A reason to show when a conversion says "rate unavailable"
3. History of the user's edits

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from expense_tracker.models.transaction import Transaction
from expense_tracker.services.storage import AuditStorageInterface


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


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through the stdlib root logger at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))


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
        self._logger = structlog.get_logger("expense_tracker.audit")

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
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
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

    async def log_transaction_saved(self, transaction: Transaction) -> None:
        await self.log(AuditEventBuilder.transaction_saved(
            transaction_id=transaction.id,
            amount=transaction.amount,
            currency=transaction.currency,
            category=transaction.category.value,
        ))

    async def log_transaction_updated(self, transaction: Transaction) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            transaction_id=transaction.id,
            amount=transaction.amount,
            currency=transaction.currency,
            category=transaction.category.value,
        ))

    async def log_transaction_deleted(self, transaction_id: str) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(transaction_id))

    async def log_rates_refresh_started(
        self,
        base_currency: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.rates_refresh_started(
            base_currency=base_currency,
            correlation_id=correlation_id,
        ))

    async def log_rates_refreshed(
        self,
        base_currency: str,
        rates_stored: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.rates_refreshed(
            base_currency=base_currency,
            rates_stored=rates_stored,
            correlation_id=correlation_id,
        ))

    async def log_rates_refresh_failed(
        self,
        base_currency: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.rates_refresh_failed(
            base_currency=base_currency,
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_rates_pruned(self, cutoff: str, deleted: int) -> None:
        await self.log(AuditEventBuilder.rates_pruned(cutoff=cutoff, deleted=deleted))

    async def log_rates_prune_failed(self, cutoff: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.rates_prune_failed(
            cutoff=cutoff,
            error_message=error_message,
        ))

    async def log_rate_not_found(
        self,
        from_currency: str,
        to_currency: str,
        on_date: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.rate_not_found(
            from_currency=from_currency,
            to_currency=to_currency,
            on_date=on_date,
        ))

    async def log_report_generated(
        self,
        month: str,
        transaction_count: int,
        unconverted: int,
        base_currency: Optional[str],
    ) -> None:
        await self.log(AuditEventBuilder.report_generated(
            month=month,
            transaction_count=transaction_count,
            unconverted=unconverted,
            base_currency=base_currency,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new action (e.g., one rate refresh).
    Pass it through all subsequent operations.
    """
    return uuid4()
