"""SQLAlchemy models for diagnoses, their secondary codes and revisions."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from coding_core.core.database import Base, utcnow
from coding_core.schemas.base import DiagnosisCertainty, DiagnosisStatus


class Diagnosis(Base):
    """A clinical determination linking a patient to a primary code.

    Every write to a diagnosis appends exactly one DiagnosisRevision in the
    same transaction.
    """

    __tablename__ = "diagnoses"

    patient_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    consultation_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    primary_code_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("medical_codes.id"),
        nullable=False,
        index=True,
    )
    status: Mapped[DiagnosisStatus] = mapped_column(
        Enum(DiagnosisStatus, name="diagnosis_status", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=DiagnosisStatus.ACTIVE,
    )
    certainty: Mapped[DiagnosisCertainty] = mapped_column(
        Enum(DiagnosisCertainty, name="diagnosis_certainty", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=DiagnosisCertainty.CONFIRMED,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    onset_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Diagnosis(patient_id='{self.patient_id}', status={self.status})>"


class DiagnosisSecondaryCode(Base):
    """Ordered secondary code attached to a diagnosis.

    The whole list is replaced on update; ``order`` is the caller's index.
    """

    __tablename__ = "diagnosis_secondary_codes"
    __table_args__ = (Index("ix_diagnosis_secondary_codes_diagnosis_order", "diagnosis_id", "order"),)

    diagnosis_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("diagnoses.id", ondelete="CASCADE"),
        nullable=False,
    )
    code_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("medical_codes.id"),
        nullable=False,
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False)


class DiagnosisRevision(Base):
    """Immutable before/after snapshot of one diagnosis write."""

    __tablename__ = "diagnosis_revisions"
    __table_args__ = (Index("ix_diagnosis_revisions_diagnosis_changed", "diagnosis_id", "changed_at"),)

    diagnosis_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("diagnoses.id", ondelete="CASCADE"),
        nullable=False,
    )
    previous: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    next: Mapped[dict] = mapped_column(JSON, nullable=False)
    changed_by_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
