"""Diagnosis recording with an append-only revision log.

Every create or update of a diagnosis writes the diagnosis row, its
secondary codes and exactly one DiagnosisRevision in a single
transaction. Revisions are never updated or deleted.
"""

import logging
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coding_core.core.audit import AuditAction, log_diagnosis_change
from coding_core.core.database import is_valid_id, utcnow
from coding_core.core.exceptions import DiagnosisNotFoundError, MedicalCodeNotFoundError
from coding_core.models import Diagnosis, DiagnosisRevision, DiagnosisSecondaryCode, MedicalCode
from coding_core.schemas.base import DiagnosisStatus
from coding_core.schemas.diagnosis import (
    DiagnosisCreate,
    DiagnosisRead,
    DiagnosisRevisionRead,
    DiagnosisSnapshot,
    DiagnosisUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_REVISION_LIMIT = 50


async def _require_codes(session: AsyncSession, code_ids: list[str]) -> None:
    """Raise MedicalCodeNotFoundError unless every id names a stored code."""
    wanted = list(dict.fromkeys(code_ids))
    missing = [cid for cid in wanted if not is_valid_id(cid)]
    candidates = [cid for cid in wanted if cid not in missing]
    if candidates:
        result = await session.execute(select(MedicalCode.id).where(MedicalCode.id.in_(candidates)))
        found = set(result.scalars().all())
        missing.extend(cid for cid in candidates if cid not in found)
    if missing:
        raise MedicalCodeNotFoundError(missing)


async def _secondary_code_ids(session: AsyncSession, diagnosis_id: str) -> list[str]:
    result = await session.execute(
        select(DiagnosisSecondaryCode.code_id)
        .where(DiagnosisSecondaryCode.diagnosis_id == diagnosis_id)
        .order_by(DiagnosisSecondaryCode.order)
    )
    return list(result.scalars().all())


def _add_secondary_codes(session: AsyncSession, diagnosis_id: str, code_ids: list[str]) -> None:
    for index, code_id in enumerate(code_ids):
        session.add(
            DiagnosisSecondaryCode(
                id=str(uuid4()),
                diagnosis_id=diagnosis_id,
                code_id=code_id,
                order=index,
            )
        )


def _snapshot(diagnosis: Diagnosis, secondary: list[str]) -> dict:
    return DiagnosisSnapshot(
        primary_code_id=diagnosis.primary_code_id,
        status=diagnosis.status,
        certainty=diagnosis.certainty,
        notes=diagnosis.notes,
        secondary=secondary,
    ).model_dump(mode="json")


def _to_read(diagnosis: Diagnosis, secondary: list[str]) -> DiagnosisRead:
    return DiagnosisRead.model_validate(diagnosis).model_copy(update={"secondary_code_ids": list(secondary)})


class DiagnosisRecorder:
    """Creates and updates diagnoses, keeping their revision trail.

    Usage:
        recorder = DiagnosisRecorder(async_session_maker)
        created = await recorder.record_diagnosis(DiagnosisCreate(patient_id="p1", primary_code_id=code_id))
        await recorder.update_diagnosis(created.id, DiagnosisUpdate(status=DiagnosisStatus.RESOLVED))
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record_diagnosis(self, data: DiagnosisCreate) -> DiagnosisRead:
        """Record a new diagnosis and its first revision.

        Raises:
            MedicalCodeNotFoundError: If the primary or a secondary code id is unknown.
        """
        async with self._session_factory() as session:
            async with session.begin():
                await _require_codes(session, [data.primary_code_id, *data.secondary_code_ids])

                diagnosis = Diagnosis(
                    id=str(uuid4()),
                    patient_id=data.patient_id,
                    consultation_id=data.consultation_id,
                    primary_code_id=data.primary_code_id,
                    status=DiagnosisStatus.ACTIVE,
                    certainty=data.certainty,
                    notes=data.notes,
                    onset_date=data.onset_date,
                )
                session.add(diagnosis)
                await session.flush()

                _add_secondary_codes(session, diagnosis.id, data.secondary_code_ids)
                session.add(
                    DiagnosisRevision(
                        id=str(uuid4()),
                        diagnosis_id=diagnosis.id,
                        previous=None,
                        next=_snapshot(diagnosis, data.secondary_code_ids),
                        changed_by_user_id=data.changed_by_user_id,
                        reason=data.reason or "create",
                    )
                )

        logger.info(f"Recorded diagnosis {diagnosis.id} for patient {data.patient_id}")
        log_diagnosis_change(
            diagnosis.id,
            data.patient_id,
            AuditAction.CREATE,
            user_id=data.changed_by_user_id,
            reason=data.reason or "create",
        )
        return _to_read(diagnosis, data.secondary_code_ids)

    async def update_diagnosis(self, diagnosis_id: str, data: DiagnosisUpdate) -> DiagnosisRead:
        """Apply a partial update and append one revision with both snapshots.

        A provided ``secondary_code_ids`` list fully replaces the stored one.

        Raises:
            DiagnosisNotFoundError: If the diagnosis does not exist.
            MedicalCodeNotFoundError: If a new secondary code id is unknown.
        """
        async with self._session_factory() as session:
            async with session.begin():
                diagnosis = await session.get(Diagnosis, diagnosis_id) if is_valid_id(diagnosis_id) else None
                if diagnosis is None:
                    raise DiagnosisNotFoundError(diagnosis_id)

                previous_secondary = await _secondary_code_ids(session, diagnosis.id)
                previous = _snapshot(diagnosis, previous_secondary)

                if data.status is not None:
                    diagnosis.status = data.status
                if data.resolved_date is not None:
                    diagnosis.resolved_date = data.resolved_date
                if data.certainty is not None:
                    diagnosis.certainty = data.certainty
                if "notes" in data.model_fields_set:
                    diagnosis.notes = data.notes

                secondary = previous_secondary
                if data.secondary_code_ids is not None:
                    await _require_codes(session, data.secondary_code_ids)
                    await session.execute(
                        delete(DiagnosisSecondaryCode).where(DiagnosisSecondaryCode.diagnosis_id == diagnosis.id)
                    )
                    _add_secondary_codes(session, diagnosis.id, data.secondary_code_ids)
                    secondary = list(data.secondary_code_ids)

                diagnosis.updated_at = utcnow()
                session.add(
                    DiagnosisRevision(
                        id=str(uuid4()),
                        diagnosis_id=diagnosis.id,
                        previous=previous,
                        next=_snapshot(diagnosis, secondary),
                        changed_by_user_id=data.changed_by_user_id,
                        reason=data.reason or "update",
                    )
                )

        logger.info(f"Updated diagnosis {diagnosis_id}")
        log_diagnosis_change(
            diagnosis.id,
            diagnosis.patient_id,
            AuditAction.UPDATE,
            user_id=data.changed_by_user_id,
            reason=data.reason or "update",
        )
        return _to_read(diagnosis, secondary)

    async def get_diagnosis(self, diagnosis_id: str) -> DiagnosisRead | None:
        """Fetch a diagnosis with its ordered secondary codes."""
        if not is_valid_id(diagnosis_id):
            return None
        async with self._session_factory() as session:
            diagnosis = await session.get(Diagnosis, diagnosis_id)
            if diagnosis is None:
                return None
            return _to_read(diagnosis, await _secondary_code_ids(session, diagnosis.id))

    async def list_diagnosis_revisions(
        self,
        diagnosis_id: str,
        limit: int = DEFAULT_REVISION_LIMIT,
    ) -> list[DiagnosisRevisionRead]:
        """Revisions of a diagnosis, newest first."""
        if not is_valid_id(diagnosis_id):
            return []
        async with self._session_factory() as session:
            result = await session.execute(
                select(DiagnosisRevision)
                .where(DiagnosisRevision.diagnosis_id == diagnosis_id)
                .order_by(DiagnosisRevision.changed_at.desc(), DiagnosisRevision.created_at.desc())
                .limit(limit)
            )
            return [DiagnosisRevisionRead.model_validate(r) for r in result.scalars().all()]
