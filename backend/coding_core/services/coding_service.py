"""Coding service facade.

Wires the search engine, catalog importer, diagnosis recorder and reports
around one session factory and one search cache, so imports always
invalidate the cache that searches read from.
"""

import logging
import threading

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coding_core.core.config import settings
from coding_core.core.database import async_session_maker
from coding_core.core.redis import get_redis
from coding_core.schemas.base import CodeSystemKind, SexRestriction
from coding_core.schemas.coding import (
    BulkImportRequest,
    ChapterInfo,
    CodeDetail,
    CodeStats,
    CodeSystemRead,
    CodeSystemUpsert,
    ImportResult,
    MedicalCodeRead,
    RebuildResult,
    SearchOptions,
    TimelineEntry,
    TopCodeUsage,
)
from coding_core.schemas.diagnosis import (
    DiagnosisCreate,
    DiagnosisRead,
    DiagnosisRevisionRead,
    DiagnosisUpdate,
)
from coding_core.services.catalog_import import CatalogImporter
from coding_core.services.code_search import CodeSearchEngine
from coding_core.services.coding_reports import CodingReports
from coding_core.services.diagnosis_recorder import DiagnosisRecorder
from coding_core.services.search_cache import SearchCache
from coding_core.services.symptom_analysis import SymptomAnalyzer, build_symptom_analyzer

logger = logging.getLogger(__name__)


class CodingService:
    """Single entry point for code search, catalog writes, diagnoses and reports."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: SearchCache | None = None,
        symptom_analyzer: SymptomAnalyzer | None = None,
    ) -> None:
        self.cache = cache or SearchCache()
        self.symptom_analyzer = symptom_analyzer
        self.search = CodeSearchEngine(session_factory, self.cache, symptom_analyzer)
        self.importer = CatalogImporter(session_factory, self.cache)
        self.recorder = DiagnosisRecorder(session_factory)
        self.reports = CodingReports(session_factory)

    # Catalog

    async def upsert_code_system(self, data: CodeSystemUpsert) -> CodeSystemRead:
        return await self.importer.upsert_code_system(data)

    async def bulk_import_codes(self, request: BulkImportRequest) -> ImportResult:
        return await self.importer.bulk_import_codes(request)

    async def rebuild_searchable_text(self, system_id: str) -> RebuildResult:
        return await self.importer.rebuild_searchable_text(system_id)

    async def ensure_fts_index(self) -> bool:
        return await self.search.ensure_fts_index()

    # Search

    async def search_codes(
        self,
        query: str,
        system_kind: CodeSystemKind | None = None,
        limit: int = 25,
        options: SearchOptions | None = None,
    ) -> list[MedicalCodeRead]:
        return await self.search.search_codes(query, system_kind, limit, options)

    async def search_codes_for_gender(
        self,
        query: str,
        gender: SexRestriction,
        system_kind: CodeSystemKind | None = None,
        limit: int = 25,
    ) -> list[MedicalCodeRead]:
        return await self.search.search_codes_for_gender(query, gender, system_kind, limit)

    async def get_code_detail(self, id_or_code: str) -> CodeDetail | None:
        return await self.search.get_code_detail(id_or_code)

    async def suggest_codes(
        self,
        free_text: str,
        system_kind: CodeSystemKind | None = None,
        limit: int = 5,
    ) -> list[MedicalCodeRead]:
        return await self.search.suggest_codes(free_text, system_kind, limit)

    # Diagnoses

    async def record_diagnosis(self, data: DiagnosisCreate) -> DiagnosisRead:
        return await self.recorder.record_diagnosis(data)

    async def update_diagnosis(self, diagnosis_id: str, data: DiagnosisUpdate) -> DiagnosisRead:
        return await self.recorder.update_diagnosis(diagnosis_id, data)

    async def get_diagnosis(self, diagnosis_id: str) -> DiagnosisRead | None:
        return await self.recorder.get_diagnosis(diagnosis_id)

    async def list_diagnosis_revisions(self, diagnosis_id: str) -> list[DiagnosisRevisionRead]:
        return await self.recorder.list_diagnosis_revisions(diagnosis_id)

    # Reports

    async def top_codes(
        self,
        system_kind: CodeSystemKind | None = None,
        days: int = 30,
        limit: int = 20,
    ) -> list[TopCodeUsage]:
        return await self.reports.top_codes(system_kind, days, limit)

    async def patient_code_timeline(self, patient_id: str, limit: int = 100) -> list[TimelineEntry]:
        return await self.reports.patient_code_timeline(patient_id, limit)

    async def list_chapters(self, system_kind: CodeSystemKind | None = None) -> list[ChapterInfo]:
        return await self.reports.list_chapters(system_kind)

    async def get_codes_by_chapter(
        self,
        chapter: str,
        system_kind: CodeSystemKind | None = None,
        limit: int = 100,
    ) -> list[MedicalCodeRead]:
        return await self.reports.get_codes_by_chapter(chapter, system_kind, limit)

    async def get_code_stats(self, system_kind: CodeSystemKind | None = None) -> CodeStats:
        return await self.reports.get_code_stats(system_kind)

    async def aclose(self) -> None:
        """Release the symptom analysis HTTP client, if any."""
        close = getattr(self.symptom_analyzer, "aclose", None)
        if close is not None:
            await close()


# Singleton instance and lock for thread safety
_coding_service: CodingService | None = None
_coding_lock = threading.Lock()


def get_coding_service() -> CodingService:
    """Get the singleton coding service instance."""
    global _coding_service
    if _coding_service is None:
        with _coding_lock:
            if _coding_service is None:
                redis_client = get_redis()
                cache = SearchCache(redis_client, ttl_seconds=settings.search_cache_ttl_seconds)
                _coding_service = CodingService(async_session_maker, cache, build_symptom_analyzer())
                logger.info(f"Coding service ready (redis={'on' if redis_client is not None else 'off'})")
    return _coding_service


def reset_coding_service() -> None:
    """Reset the singleton instance (for testing)."""
    global _coding_service
    with _coding_lock:
        _coding_service = None
