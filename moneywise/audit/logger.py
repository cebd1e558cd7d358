"""
Audit Logger

DESIGN DECISION: Every change to a user's money records, every AI
fallback and every external-service failure is logged. This provides:
1. Traceability of who changed what, and when
2. Debugging capability when Sheets or Gemini misbehave
3. A persistent trail in the AuditLog worksheet

The audit logger:
- Always logs locally through structlog
- Persists to audit storage when one is configured
- Never lets an audit failure break the action being audited
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from moneywise.models.audit import AuditEvent, AuditEventBuilder
from moneywise.services.storage import AuditStorageInterface


def configure_logging(debug: bool = False) -> None:
    """
    Configure stdlib logging and structlog for the whole app.

    Safe to call again (e.g. once settings are loaded) to change the level.
    """
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)
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


# Configure structlog for local logging
configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (the AuditLog worksheet), when configured
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

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
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

    async def log_session_changed(
        self,
        user_id: str,
        signed_in: bool,
        provider: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.session_changed(user_id, signed_in, provider))

    async def log_record_saved(
        self,
        entity_type: str,
        entity_id: str,
        user_id: str,
        category: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new expense or budget."""
        event = AuditEventBuilder.record_saved(
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            category=category,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_updated(
        self,
        entity_type: str,
        entity_id: str,
        user_id: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_updated(
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_record_deleted(
        self,
        entity_type: str,
        entity_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.record_deleted(
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        form: str,
        user_id: Optional[str],
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected form submission."""
        event = AuditEventBuilder.validation_failed(
            form=form,
            user_id=user_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_tips_generated(
        self,
        user_id: Optional[str],
        model_name: str,
        input_length: int,
        output_length: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.tips_generated(
            user_id=user_id,
            model_name=model_name,
            input_length=input_length,
            output_length=output_length,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_tips_fallback_used(
        self,
        user_id: Optional[str],
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.tips_fallback_used(
            user_id=user_id,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            operation=operation,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., one form submit).
    Pass it through all subsequent operations.
    """
    return uuid4()
