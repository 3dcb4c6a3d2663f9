"""Tests for diagnosis recording and the revision log."""

from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from coding_core.core.exceptions import DiagnosisNotFoundError, MedicalCodeNotFoundError
from coding_core.models import Diagnosis, DiagnosisRevision, DiagnosisSecondaryCode
from coding_core.schemas.base import DiagnosisCertainty, DiagnosisStatus
from coding_core.schemas.diagnosis import DiagnosisCreate, DiagnosisUpdate
from coding_core.services.coding_service import CodingService


async def count_rows(session_factory, model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestRecordDiagnosis:
    """Tests for creating diagnoses."""

    @pytest.mark.asyncio
    async def test_record_creates_diagnosis_and_first_revision(
        self, seeded_service: CodingService, code_id
    ) -> None:
        primary = await code_id("A00.0")
        secondary = [await code_id("J11"), await code_id("A17.0")]

        diagnosis = await seeded_service.record_diagnosis(
            DiagnosisCreate(
                patient_id="P001",
                primary_code_id=primary,
                secondary_code_ids=secondary,
                notes="Diarreia aquosa intensa",
                changed_by_user_id="dr-silva",
            )
        )

        assert diagnosis.status == DiagnosisStatus.ACTIVE
        assert diagnosis.certainty == DiagnosisCertainty.CONFIRMED
        assert diagnosis.secondary_code_ids == secondary

        revisions = await seeded_service.list_diagnosis_revisions(diagnosis.id)
        assert len(revisions) == 1
        first = revisions[0]
        assert first.previous is None
        assert first.next.primary_code_id == primary
        assert first.next.secondary == secondary
        assert first.next.notes == "Diarreia aquosa intensa"
        assert first.reason == "create"
        assert first.changed_by_user_id == "dr-silva"

    @pytest.mark.asyncio
    async def test_get_diagnosis_returns_ordered_secondaries(self, seeded_service: CodingService, code_id) -> None:
        secondary = [await code_id("N70"), await code_id("A00"), await code_id("J11")]
        created = await seeded_service.record_diagnosis(
            DiagnosisCreate(patient_id="P002", primary_code_id=await code_id("A00.9"), secondary_code_ids=secondary)
        )

        fetched = await seeded_service.get_diagnosis(created.id)

        assert fetched.secondary_code_ids == secondary

    @pytest.mark.asyncio
    async def test_unknown_code_rolls_back(self, seeded_service: CodingService, session_factory) -> None:
        with pytest.raises(MedicalCodeNotFoundError) as exc_info:
            await seeded_service.record_diagnosis(
                DiagnosisCreate(patient_id="P003", primary_code_id="not-a-code")
            )

        assert exc_info.value.details["code_ids"] == ["not-a-code"]
        assert await count_rows(session_factory, Diagnosis) == 0
        assert await count_rows(session_factory, DiagnosisRevision) == 0

    @pytest.mark.asyncio
    async def test_record_logs_audit_event(self, seeded_service: CodingService, code_id) -> None:
        with patch("coding_core.services.diagnosis_recorder.log_diagnosis_change") as mock_log:
            created = await seeded_service.record_diagnosis(
                DiagnosisCreate(patient_id="P004", primary_code_id=await code_id("J11"))
            )

        mock_log.assert_called_once()
        assert mock_log.call_args[0][0] == created.id
        assert mock_log.call_args[0][1] == "P004"


class TestUpdateDiagnosis:
    """Tests for updating diagnoses."""

    @pytest.mark.asyncio
    async def test_unknown_diagnosis_raises(self, seeded_service: CodingService) -> None:
        with pytest.raises(DiagnosisNotFoundError):
            await seeded_service.update_diagnosis(
                "00000000-0000-0000-0000-000000000000",
                DiagnosisUpdate(status=DiagnosisStatus.RESOLVED),
            )

    @pytest.mark.asyncio
    async def test_malformed_id_raises_not_found(self, seeded_service: CodingService) -> None:
        with pytest.raises(DiagnosisNotFoundError):
            await seeded_service.update_diagnosis("abc", DiagnosisUpdate(notes="x"))

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, seeded_service: CodingService, code_id) -> None:
        created = await seeded_service.record_diagnosis(
            DiagnosisCreate(
                patient_id="P005",
                primary_code_id=await code_id("J11"),
                notes="Febre alta",
                certainty=DiagnosisCertainty.PROVISIONAL,
            )
        )

        updated = await seeded_service.update_diagnosis(created.id, DiagnosisUpdate(status=DiagnosisStatus.RESOLVED))

        assert updated.status == DiagnosisStatus.RESOLVED
        assert updated.notes == "Febre alta"
        assert updated.certainty == DiagnosisCertainty.PROVISIONAL

    @pytest.mark.asyncio
    async def test_explicit_null_clears_notes(self, seeded_service: CodingService, code_id) -> None:
        created = await seeded_service.record_diagnosis(
            DiagnosisCreate(patient_id="P006", primary_code_id=await code_id("J11"), notes="temporária")
        )

        updated = await seeded_service.update_diagnosis(created.id, DiagnosisUpdate(notes=None))

        assert updated.notes is None

    @pytest.mark.asyncio
    async def test_unknown_secondary_code_leaves_diagnosis_untouched(
        self, seeded_service: CodingService, code_id, session_factory
    ) -> None:
        created = await seeded_service.record_diagnosis(
            DiagnosisCreate(patient_id="P007", primary_code_id=await code_id("J11"))
        )

        with pytest.raises(MedicalCodeNotFoundError):
            await seeded_service.update_diagnosis(
                created.id,
                DiagnosisUpdate(status=DiagnosisStatus.CANCELLED, secondary_code_ids=["missing"]),
            )

        fetched = await seeded_service.get_diagnosis(created.id)
        assert fetched.status == DiagnosisStatus.ACTIVE
        assert len(await seeded_service.list_diagnosis_revisions(created.id)) == 1

    @pytest.mark.asyncio
    async def test_every_write_appends_exactly_one_revision(
        self, seeded_service: CodingService, code_id, session_factory
    ) -> None:
        created = await seeded_service.record_diagnosis(
            DiagnosisCreate(patient_id="P008", primary_code_id=await code_id("J11"))
        )
        for note in ["um", "dois", "três"]:
            await seeded_service.update_diagnosis(created.id, DiagnosisUpdate(notes=note))

        revisions = await seeded_service.list_diagnosis_revisions(created.id)

        assert len(revisions) == 4
        assert await count_rows(session_factory, DiagnosisRevision) == 4
        assert [r.next.notes for r in revisions] == ["três", "dois", "um", None]

    @pytest.mark.asyncio
    async def test_revision_listing_capped_at_fifty_newest(
        self, seeded_service: CodingService, code_id, session_factory
    ) -> None:
        created = await seeded_service.record_diagnosis(
            DiagnosisCreate(patient_id="P009", primary_code_id=await code_id("J11"))
        )
        for i in range(55):
            await seeded_service.update_diagnosis(created.id, DiagnosisUpdate(notes=str(i)))

        revisions = await seeded_service.list_diagnosis_revisions(created.id)

        assert await count_rows(session_factory, DiagnosisRevision) == 56
        assert len(revisions) == 50
        assert [r.next.notes for r in revisions] == [str(i) for i in range(54, 4, -1)]


class TestDiagnosisLifecycle:
    """Create with two secondaries, then resolve and drop one."""

    @pytest.mark.asyncio
    async def test_lifecycle(self, seeded_service: CodingService, code_id, session_factory) -> None:
        c1 = await code_id("A00.0")
        c2 = await code_id("J11")
        c3 = await code_id("A17.0")

        created = await seeded_service.record_diagnosis(
            DiagnosisCreate(patient_id="P100", primary_code_id=c1, secondary_code_ids=[c2, c3])
        )
        updated = await seeded_service.update_diagnosis(
            created.id,
            DiagnosisUpdate(
                status=DiagnosisStatus.RESOLVED,
                secondary_code_ids=[c2],
                changed_by_user_id="dr-souza",
                reason="Alta",
            ),
        )

        assert updated.status == DiagnosisStatus.RESOLVED
        assert updated.secondary_code_ids == [c2]

        revisions = await seeded_service.list_diagnosis_revisions(created.id)
        assert len(revisions) == 2
        latest, first = revisions
        assert first.previous is None
        assert latest.previous.status == DiagnosisStatus.ACTIVE
        assert latest.previous.secondary == [c2, c3]
        assert latest.next.status == DiagnosisStatus.RESOLVED
        assert latest.next.secondary == [c2]
        assert latest.reason == "Alta"
        assert latest.changed_by_user_id == "dr-souza"

        # Secondary codes were replaced, not appended
        async with session_factory() as session:
            result = await session.execute(
                select(DiagnosisSecondaryCode.code_id).where(DiagnosisSecondaryCode.diagnosis_id == created.id)
            )
            assert list(result.scalars().all()) == [c2]
