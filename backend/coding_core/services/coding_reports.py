"""Aggregation and reporting queries over the code catalog and diagnoses."""

import logging
from datetime import timedelta

from sqlalchemy import Select, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coding_core.core.database import utcnow
from coding_core.models import CodeSystem, Diagnosis, MedicalCode
from coding_core.schemas.base import CodeSystemKind, CrossAsterisk
from coding_core.schemas.coding import ChapterInfo, CodeStats, MedicalCodeRead, TimelineEntry, TopCodeUsage

logger = logging.getLogger(__name__)

MAX_TOP_CODES = 100

# ICD-10 / CID-10 chapter names, keyed by roman numeral
CHAPTER_NAMES: dict[str, str] = {
    "I": "Doenças infecciosas e parasitárias",
    "II": "Neoplasias",
    "III": "Doenças do sangue e órgãos hematopoéticos",
    "IV": "Doenças endócrinas, nutricionais e metabólicas",
    "V": "Transtornos mentais e comportamentais",
    "VI": "Doenças do sistema nervoso",
    "VII": "Doenças do olho e anexos",
    "VIII": "Doenças do ouvido e da apófise mastoide",
    "IX": "Doenças do aparelho circulatório",
    "X": "Doenças do aparelho respiratório",
    "XI": "Doenças do aparelho digestivo",
    "XII": "Doenças da pele e do tecido subcutâneo",
    "XIII": "Doenças do sistema osteomuscular",
    "XIV": "Doenças do aparelho geniturinário",
    "XV": "Gravidez, parto e puerpério",
    "XVI": "Afecções originadas no período perinatal",
    "XVII": "Malformações congênitas",
    "XVIII": "Sintomas, sinais e achados anormais",
    "XIX": "Lesões, envenenamentos e causas externas",
    "XX": "Causas externas de morbidade e mortalidade",
    "XXI": "Fatores que influenciam o estado de saúde",
    "XXII": "Códigos para propósitos especiais",
}


def chapter_name(chapter: str) -> str:
    return CHAPTER_NAMES.get(chapter, f"Capítulo {chapter}")


def _with_system_kind(stmt: Select, system_kind: CodeSystemKind | None) -> Select:
    if system_kind is None:
        return stmt
    return stmt.join(CodeSystem, MedicalCode.system_id == CodeSystem.id).where(CodeSystem.kind == system_kind)


class CodingReports:
    """Read-only reports for dashboards and chapter browsing."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def top_codes(
        self,
        system_kind: CodeSystemKind | None = None,
        days: int = 30,
        limit: int = 20,
    ) -> list[TopCodeUsage]:
        """Primary codes most used by diagnoses created in the last ``days`` days."""
        limit = min(limit, MAX_TOP_CODES)
        since = utcnow() - timedelta(days=days)
        usages = func.count(Diagnosis.id).label("usages")

        stmt = (
            select(MedicalCode.code, MedicalCode.display, usages)
            .select_from(Diagnosis)
            .join(MedicalCode, Diagnosis.primary_code_id == MedicalCode.id)
            .where(Diagnosis.created_at >= since)
        )
        stmt = (
            _with_system_kind(stmt, system_kind)
            .group_by(MedicalCode.code, MedicalCode.display)
            .order_by(usages.desc(), MedicalCode.code)
            .limit(limit)
        )

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [TopCodeUsage(code=row.code, display=row.display, usages=row.usages) for row in result]

    async def patient_code_timeline(self, patient_id: str, limit: int = 100) -> list[TimelineEntry]:
        """A patient's diagnoses, most recent first, with their primary code."""
        stmt = (
            select(
                Diagnosis.id,
                Diagnosis.created_at,
                Diagnosis.status,
                Diagnosis.certainty,
                MedicalCode.code,
                MedicalCode.display,
            )
            .join(MedicalCode, Diagnosis.primary_code_id == MedicalCode.id)
            .where(Diagnosis.patient_id == patient_id)
            .order_by(Diagnosis.created_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                TimelineEntry(
                    diagnosis_id=row.id,
                    created_at=row.created_at,
                    code=row.code,
                    display=row.display,
                    status=row.status.value,
                    certainty=row.certainty.value,
                )
                for row in result
            ]

    async def list_chapters(self, system_kind: CodeSystemKind | None = None) -> list[ChapterInfo]:
        """Distinct chapters with their code counts and display names."""
        count = func.count(MedicalCode.id).label("count")
        stmt = select(MedicalCode.chapter, count).where(MedicalCode.chapter.is_not(None))
        stmt = _with_system_kind(stmt, system_kind).group_by(MedicalCode.chapter).order_by(MedicalCode.chapter)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [ChapterInfo(code=row.chapter, name=chapter_name(row.chapter), count=row.count) for row in result]

    async def get_codes_by_chapter(
        self,
        chapter: str,
        system_kind: CodeSystemKind | None = None,
        limit: int = 100,
    ) -> list[MedicalCodeRead]:
        """Active codes of one chapter, ordered by code."""
        stmt = select(MedicalCode).where(MedicalCode.chapter == chapter, MedicalCode.active.is_(True))
        stmt = _with_system_kind(stmt, system_kind).order_by(MedicalCode.code).limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [MedicalCodeRead.model_validate(c) for c in result.scalars().all()]

    async def get_code_stats(self, system_kind: CodeSystemKind | None = None) -> CodeStats:
        """Catalog counts for one system kind, or for all systems.

        All five counts come from one aggregate query so they describe the
        same snapshot of the catalog.
        """

        def count_where(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        stmt = select(
            func.count(MedicalCode.id).label("total"),
            count_where(MedicalCode.is_category.is_(True)).label("categories"),
            count_where(MedicalCode.sex_restriction.is_not(None)).label("with_sex_restriction"),
            count_where(MedicalCode.cross_asterisk == CrossAsterisk.ETIOLOGY).label("etiology_codes"),
            count_where(MedicalCode.cross_asterisk == CrossAsterisk.MANIFESTATION).label("manifestation_codes"),
        ).select_from(MedicalCode)
        stmt = _with_system_kind(stmt, system_kind)

        async with self._session_factory() as session:
            row = (await session.execute(stmt)).one()
            return CodeStats(
                total=row.total,
                categories=row.categories,
                with_sex_restriction=row.with_sex_restriction,
                etiology_codes=row.etiology_codes,
                manifestation_codes=row.manifestation_codes,
            )
