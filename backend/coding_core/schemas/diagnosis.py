"""Diagnosis, secondary code and revision schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from coding_core.schemas.base import DiagnosisCertainty, DiagnosisStatus


class DiagnosisCreate(BaseModel):
    """Schema for recording a new diagnosis."""

    patient_id: str = Field(..., min_length=1, description="Patient identifier")
    primary_code_id: str = Field(..., description="MedicalCode id of the primary code")
    consultation_id: str | None = Field(None, description="Consultation the diagnosis was made in")
    secondary_code_ids: list[str] = Field(
        default_factory=list, description="Secondary MedicalCode ids, in display order"
    )
    notes: str | None = None
    onset_date: datetime | None = None
    certainty: DiagnosisCertainty = DiagnosisCertainty.CONFIRMED
    changed_by_user_id: str | None = None
    reason: str | None = Field(None, description="Revision reason; defaults to 'create'")


class DiagnosisUpdate(BaseModel):
    """Partial update of a diagnosis.

    Only fields explicitly provided are applied. ``secondary_code_ids``
    replaces the whole list when given.
    """

    status: DiagnosisStatus | None = None
    resolved_date: datetime | None = None
    notes: str | None = None
    certainty: DiagnosisCertainty | None = None
    secondary_code_ids: list[str] | None = None
    changed_by_user_id: str | None = None
    reason: str | None = None


class DiagnosisSnapshot(BaseModel):
    """State captured in a revision's previous/next fields."""

    primary_code_id: str
    status: DiagnosisStatus
    certainty: DiagnosisCertainty
    notes: str | None = None
    secondary: list[str] = Field(default_factory=list)


class DiagnosisRead(BaseModel):
    """Schema for a persisted diagnosis."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    consultation_id: str | None = None
    primary_code_id: str
    status: DiagnosisStatus
    certainty: DiagnosisCertainty
    notes: str | None = None
    onset_date: datetime | None = None
    resolved_date: datetime | None = None
    created_at: datetime
    updated_at: datetime
    secondary_code_ids: list[str] = Field(default_factory=list)


class DiagnosisRevisionRead(BaseModel):
    """Schema for one entry of a diagnosis audit trail."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    diagnosis_id: str
    previous: DiagnosisSnapshot | None = None
    next: DiagnosisSnapshot
    changed_by_user_id: str | None = None
    reason: str | None = None
    changed_at: datetime
