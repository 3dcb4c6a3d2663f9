"""SQLAlchemy ORM models for the medical coding service.

All models inherit from Base which provides:
- id: UUID primary key
- created_at: Timestamp

Models:
- CodeSystem, MedicalCode (catalog)
- Diagnosis, DiagnosisSecondaryCode, DiagnosisRevision (clinical records)
"""

from coding_core.core.database import Base
from coding_core.models.coding import CodeSystem, MedicalCode
from coding_core.models.diagnosis import Diagnosis, DiagnosisRevision, DiagnosisSecondaryCode

__all__ = [
    "Base",
    "CodeSystem",
    "MedicalCode",
    "Diagnosis",
    "DiagnosisSecondaryCode",
    "DiagnosisRevision",
]
