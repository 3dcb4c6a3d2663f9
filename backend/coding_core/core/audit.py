"""Audit logging for catalog and diagnosis operations.

Diagnosis revisions are the authoritative, append-only history stored in
the database. The audit logger mirrors those writes (and catalog imports)
to a separate log stream for security monitoring.
"""

import logging
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

# Separate audit logger for security-critical events
audit_logger = logging.getLogger("audit")


class AuditAction(str, Enum):
    """Types of auditable actions."""

    CREATE = "create"
    UPDATE = "update"
    IMPORT = "import"
    REINDEX = "reindex"


class AuditEvent(BaseModel):
    """Audit event record.

    Contains all relevant context for an auditable action.
    """

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    action: AuditAction = Field(..., description="Type of action performed")
    resource_type: str = Field(..., description="Type of resource affected")
    resource_id: str | None = Field(None, description="ID of specific resource")
    patient_id: str | None = Field(None, description="Patient ID if applicable")
    user_id: str | None = Field(None, description="User who performed action")
    details: dict | None = Field(None, description="Additional context")
    success: bool = Field(True, description="Whether action succeeded")


def log_audit(
    action: AuditAction,
    resource_type: str,
    resource_id: str | None = None,
    patient_id: str | None = None,
    user_id: str | None = None,
    details: dict | None = None,
    success: bool = True,
) -> AuditEvent:
    """Log an audit event.

    Args:
        action: Type of action being audited
        resource_type: The type of resource being changed
        resource_id: Specific resource identifier
        patient_id: Patient ID if this is patient data
        user_id: User performing the action
        details: Additional context
        success: Whether the action succeeded

    Returns:
        The created AuditEvent
    """
    event = AuditEvent(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        patient_id=patient_id,
        user_id=user_id,
        details=details,
        success=success,
    )

    log_level = logging.INFO if success else logging.WARNING
    audit_logger.log(
        log_level,
        f"AUDIT: {action.value} {resource_type}"
        f"{f'/{resource_id}' if resource_id else ''}"
        f"{f' patient={patient_id}' if patient_id else ''}"
        f" success={success}",
        extra={"audit_event": event.model_dump()},
    )

    return event


def log_diagnosis_change(
    diagnosis_id: str,
    patient_id: str,
    action: AuditAction,
    user_id: str | None = None,
    reason: str | None = None,
) -> AuditEvent:
    """Log a diagnosis creation or update after its revision is committed."""
    return log_audit(
        action=action,
        resource_type="diagnosis",
        resource_id=diagnosis_id,
        patient_id=patient_id,
        user_id=user_id,
        details={"reason": reason} if reason else None,
    )


def log_catalog_import(
    system_id: str,
    system_kind: str,
    imported: int,
    rebuilt: int | None = None,
) -> AuditEvent:
    """Log a bulk import into a code system catalog."""
    details: dict = {"system_kind": system_kind, "imported": imported}
    if rebuilt is not None:
        details["rebuilt"] = rebuilt

    return log_audit(
        action=AuditAction.IMPORT,
        resource_type="code_system",
        resource_id=system_id,
        details=details,
    )
