"""Core application configuration and utilities."""

from coding_core.core.audit import AuditAction, AuditEvent, log_audit, log_catalog_import, log_diagnosis_change
from coding_core.core.config import settings
from coding_core.core.database import Base, async_session_maker
from coding_core.core.exceptions import (
    CodeSystemNotFoundError,
    CodingError,
    DiagnosisNotFoundError,
    MedicalCodeNotFoundError,
    NotFoundError,
)

__all__ = [
    # Config
    "settings",
    # Database
    "Base",
    "async_session_maker",
    # Audit
    "AuditAction",
    "AuditEvent",
    "log_audit",
    "log_catalog_import",
    "log_diagnosis_change",
    # Errors
    "CodingError",
    "NotFoundError",
    "CodeSystemNotFoundError",
    "MedicalCodeNotFoundError",
    "DiagnosisNotFoundError",
]
