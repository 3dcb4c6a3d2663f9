"""Coding service exceptions.

Only lookups of required records surface as errors. Degraded search,
cache and AI paths never raise; see ``coding_core.services.outcome``.
"""

from typing import Any


class CodingError(Exception):
    """Base exception for coding service errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class NotFoundError(CodingError):
    """A referenced record does not exist."""


class CodeSystemNotFoundError(NotFoundError):
    """Raised when no code system matches a kind/version pair."""

    def __init__(self, kind: str, version: str | None = None) -> None:
        label = f"{kind} ({version})" if version else kind
        super().__init__(
            message=f"Code system '{label}' not found",
            error_code="CODE_SYSTEM_NOT_FOUND",
            details={"kind": kind, "version": version},
        )


class MedicalCodeNotFoundError(NotFoundError):
    """Raised when medical code ids cannot be resolved."""

    def __init__(self, code_ids: list[str]) -> None:
        super().__init__(
            message=f"Medical code(s) not found: {', '.join(code_ids)}",
            error_code="MEDICAL_CODE_NOT_FOUND",
            details={"code_ids": code_ids},
        )


class DiagnosisNotFoundError(NotFoundError):
    """Raised when a diagnosis id does not exist."""

    def __init__(self, diagnosis_id: str) -> None:
        super().__init__(
            message=f"Diagnosis '{diagnosis_id}' not found",
            error_code="DIAGNOSIS_NOT_FOUND",
            details={"diagnosis_id": diagnosis_id},
        )
