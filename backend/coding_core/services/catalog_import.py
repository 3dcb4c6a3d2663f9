"""Import and indexing pipeline for the medical code catalog.

Code systems are upserted by (kind, version). Codes are bulk-upserted by
(system, code), with parent references resolved by code, including codes
created earlier in the same batch. Every import invalidates the search
cache.
"""

import json
import logging
from collections.abc import Iterable
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coding_core.core.audit import AuditAction, log_audit, log_catalog_import
from coding_core.core.database import is_valid_id
from coding_core.core.exceptions import CodeSystemNotFoundError
from coding_core.models import CodeSystem, MedicalCode
from coding_core.schemas.base import CodeSystemKind, CrossAsterisk, SexRestriction
from coding_core.schemas.coding import (
    BulkImportRequest,
    CodeSystemRead,
    CodeSystemUpsert,
    ImportResult,
    RebuildResult,
)
from coding_core.services.search_cache import SearchCache

logger = logging.getLogger(__name__)

# Systems whose searchable text also names chapter, sex and dagger/asterisk class
CLASSIFICATION_TERM_SYSTEMS = {CodeSystemKind.CID10}


def parse_synonyms(value: list[str] | str | None) -> list[str]:
    """Normalize a stored synonyms value to a list of strings.

    Older rows store synonyms as a JSON-encoded string.
    """
    if not value:
        return []
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return [value]
        return [str(s) for s in decoded] if isinstance(decoded, list) else [str(decoded)]
    return [str(s) for s in value]


def build_searchable_text(
    code: str,
    display: str | None,
    description: str | None = None,
    short_description: str | None = None,
    synonyms: Iterable[str] = (),
    extra_terms: Iterable[str] = (),
) -> str:
    """Lowercased concatenation of every text a code can be found by."""
    parts = [code, display, description, short_description, *synonyms, *extra_terms]
    return " ".join(p for p in parts if p).lower()


def classification_terms(
    chapter: str | None,
    sex_restriction: SexRestriction | None,
    cross_asterisk: CrossAsterisk | None,
) -> list[str]:
    """Portuguese search terms for a code's chapter, sex and dagger/asterisk class."""
    terms = []
    if chapter:
        terms.append(f"capítulo {chapter}")
    if sex_restriction == SexRestriction.MALE:
        terms.append("masculino homem")
    elif sex_restriction == SexRestriction.FEMALE:
        terms.append("feminino mulher")
    if cross_asterisk == CrossAsterisk.ETIOLOGY:
        terms.append("etiologia")
    elif cross_asterisk == CrossAsterisk.MANIFESTATION:
        terms.append("manifestação")
    return terms


async def find_code_system(
    session: AsyncSession,
    kind: CodeSystemKind,
    version: str | None,
) -> CodeSystem | None:
    """Find a code system by kind and version (None matches unversioned only)."""
    stmt = select(CodeSystem).where(CodeSystem.kind == kind)
    if version is None:
        stmt = stmt.where(CodeSystem.version.is_(None))
    else:
        stmt = stmt.where(CodeSystem.version == version)
    result = await session.execute(stmt.limit(1))
    return result.scalars().first()


class CatalogImporter:
    """Writes code systems and codes, keeping the search cache coherent.

    Usage:
        importer = CatalogImporter(async_session_maker, cache)
        await importer.upsert_code_system(CodeSystemUpsert(kind=CodeSystemKind.ICD10, name="ICD-10"))
        await importer.bulk_import_codes(BulkImportRequest(system_kind=CodeSystemKind.ICD10, codes=[...]))
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: SearchCache,
    ) -> None:
        self._session_factory = session_factory
        self._cache = cache

    async def upsert_code_system(self, data: CodeSystemUpsert) -> CodeSystemRead:
        """Create the (kind, version) code system or update it in place."""
        async with self._session_factory() as session:
            system = await find_code_system(session, data.kind, data.version)
            if system is None:
                system = CodeSystem(
                    kind=data.kind,
                    name=data.name,
                    version=data.version,
                    description=data.description,
                    active=data.active,
                )
                session.add(system)
                logger.info(f"Creating code system {data.kind.value} version={data.version}")
            else:
                system.name = data.name
                system.description = data.description
                system.active = data.active
            await session.commit()
            return CodeSystemRead.model_validate(system)

    async def bulk_import_codes(self, request: BulkImportRequest) -> ImportResult:
        """Upsert a batch of codes into an existing code system.

        Raises:
            CodeSystemNotFoundError: If the target system was never registered.
        """
        async with self._session_factory() as session:
            system = await find_code_system(session, request.system_kind, request.system_version)
            if system is None:
                raise CodeSystemNotFoundError(request.system_kind.value, request.system_version)
            system_id = system.id

            result = await session.execute(select(MedicalCode).where(MedicalCode.system_id == system_id))
            existing = {c.code: c for c in result.scalars().all()}
            code_ids = {code: record.id for code, record in existing.items()}

            created = 0
            for item in request.codes:
                parent_id = code_ids.get(item.parent_code) if item.parent_code else None
                record = existing.get(item.code)

                if record is None:
                    record = MedicalCode(
                        id=str(uuid4()),
                        system_id=system_id,
                        code=item.code,
                        display=item.display,
                        description=item.description,
                        short_description=item.short_description,
                        parent_id=parent_id,
                        synonyms=item.synonyms,
                        searchable_text=item.searchable_text,
                        chapter=item.chapter,
                        sex_restriction=item.sex_restriction,
                        is_category=bool(item.is_category),
                        cross_asterisk=item.cross_asterisk,
                    )
                    session.add(record)
                    existing[item.code] = record
                    created += 1
                else:
                    record.display = item.display
                    if item.description is not None:
                        record.description = item.description
                    if parent_id is not None:
                        record.parent_id = parent_id
                    if item.synonyms is not None:
                        record.synonyms = item.synonyms
                    for field in (
                        "short_description",
                        "searchable_text",
                        "chapter",
                        "sex_restriction",
                        "is_category",
                        "cross_asterisk",
                    ):
                        value = getattr(item, field)
                        if value is not None:
                            setattr(record, field, value)

                code_ids[item.code] = record.id

            await session.commit()

        logger.info(
            f"Imported {len(request.codes)} codes into {request.system_kind.value} "
            f"({created} new, {len(request.codes) - created} updated)"
        )

        # Catalog changed: no cached search may survive
        await self._cache.invalidate_all()

        rebuilt = None
        if request.rebuild_search_text:
            rebuilt = (await self.rebuild_searchable_text(system_id)).rebuilt

        log_catalog_import(system_id, request.system_kind.value, len(request.codes), rebuilt)
        return ImportResult(imported=len(request.codes), rebuilt=rebuilt)

    async def rebuild_searchable_text(self, system_id: str) -> RebuildResult:
        """Recompute searchable text for every code of a system.

        This rewrites the whole system and is meant for periodic reindexing,
        not per-request use. CID-10 codes keep their chapter, sex and
        dagger/asterisk terms.
        """
        if not is_valid_id(system_id):
            return RebuildResult(rebuilt=0)

        async with self._session_factory() as session:
            system = await session.get(CodeSystem, system_id)
            if system is None:
                return RebuildResult(rebuilt=0)
            with_classification = system.kind in CLASSIFICATION_TERM_SYSTEMS

            result = await session.execute(select(MedicalCode).where(MedicalCode.system_id == system_id))
            codes = result.scalars().all()
            for code in codes:
                extra_terms = (
                    classification_terms(code.chapter, code.sex_restriction, code.cross_asterisk)
                    if with_classification
                    else []
                )
                code.searchable_text = build_searchable_text(
                    code.code,
                    code.display,
                    code.description,
                    code.short_description,
                    parse_synonyms(code.synonyms),
                    extra_terms,
                )
            await session.commit()

        await self._cache.invalidate_all()
        logger.info(f"Rebuilt searchable text for {len(codes)} codes in system {system_id}")
        log_audit(
            action=AuditAction.REINDEX,
            resource_type="code_system",
            resource_id=system_id,
            details={"rebuilt": len(codes)},
        )
        return RebuildResult(rebuilt=len(codes))
