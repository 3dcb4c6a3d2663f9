"""Code catalog API endpoints.

Provides search, browsing and catalog maintenance:
- Search: substring/full-text search, sex-aware search, free-text suggestions
- Browse: code detail with hierarchy, chapters, codes by chapter, stats
- Maintenance: code system upsert, bulk import, searchable-text rebuild
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from coding_core.core.exceptions import NotFoundError
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
    SuggestRequest,
    TopCodeUsage,
)
from coding_core.services.coding_service import CodingService, get_coding_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coding", tags=["Coding"])

Service = Annotated[CodingService, Depends(get_coding_service)]


@router.get(
    "/search",
    response_model=list[MedicalCodeRead],
    summary="Search codes",
    description="Search the catalog by code or text. Full-text search is tried first when fts=true.",
)
async def search_codes(
    service: Service,
    q: Annotated[str, Query(description="Code or text to search for")] = "",
    system_kind: CodeSystemKind | None = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 25,
    fts: bool = False,
    chapter: str | None = None,
    sex_restriction: SexRestriction | None = None,
    categories_only: bool = False,
) -> list[MedicalCodeRead]:
    options = SearchOptions(
        fts=fts,
        chapter=chapter,
        sex_restriction=sex_restriction,
        categories_only=categories_only,
    )
    return await service.search_codes(q, system_kind, limit, options)


@router.get(
    "/search/gender",
    response_model=list[MedicalCodeRead],
    summary="Search codes valid for a patient's sex",
)
async def search_codes_for_gender(
    service: Service,
    gender: SexRestriction,
    q: str = "",
    system_kind: CodeSystemKind | None = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 25,
) -> list[MedicalCodeRead]:
    """Codes restricted to ``gender`` plus codes with no sex restriction."""
    return await service.search_codes_for_gender(q, gender, system_kind, limit)


@router.get(
    "/codes/{id_or_code}",
    response_model=CodeDetail,
    summary="Get code detail",
    description="Resolve a code by id or by code value, with its parent and ancestor path.",
)
async def get_code_detail(id_or_code: str, service: Service) -> CodeDetail:
    detail = await service.get_code_detail(id_or_code)
    if detail is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Code {id_or_code} not found",
        )
    return detail


@router.post(
    "/suggest",
    response_model=list[MedicalCodeRead],
    summary="Suggest codes for clinical free text",
)
async def suggest_codes(request: SuggestRequest, service: Service) -> list[MedicalCodeRead]:
    return await service.suggest_codes(request.free_text, request.system_kind, request.limit)


@router.get("/chapters", response_model=list[ChapterInfo], summary="List chapters")
async def list_chapters(service: Service, system_kind: CodeSystemKind | None = None) -> list[ChapterInfo]:
    return await service.list_chapters(system_kind)


@router.get(
    "/chapters/{chapter}/codes",
    response_model=list[MedicalCodeRead],
    summary="List active codes in a chapter",
)
async def get_codes_by_chapter(
    chapter: str,
    service: Service,
    system_kind: CodeSystemKind | None = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> list[MedicalCodeRead]:
    return await service.get_codes_by_chapter(chapter, system_kind, limit)


@router.get("/stats", response_model=CodeStats, summary="Catalog statistics")
async def get_code_stats(service: Service, system_kind: CodeSystemKind | None = None) -> CodeStats:
    return await service.get_code_stats(system_kind)


@router.get(
    "/top-codes",
    response_model=list[TopCodeUsage],
    summary="Most used primary codes",
)
async def top_codes(
    service: Service,
    system_kind: CodeSystemKind | None = None,
    days: Annotated[int, Query(ge=1)] = 30,
    limit: Annotated[int, Query(ge=1)] = 20,
) -> list[TopCodeUsage]:
    """Primary code usage over the trailing ``days`` window (at most 100 rows)."""
    return await service.top_codes(system_kind, days, limit)


@router.post(
    "/systems",
    response_model=CodeSystemRead,
    summary="Create or update a code system",
)
async def upsert_code_system(data: CodeSystemUpsert, service: Service) -> CodeSystemRead:
    return await service.upsert_code_system(data)


@router.post(
    "/import",
    response_model=ImportResult,
    summary="Bulk import codes",
    description="Upsert codes into an existing code system. Invalidates the search cache.",
)
async def bulk_import_codes(request: BulkImportRequest, service: Service) -> ImportResult:
    logger.info(f"Bulk import of {len(request.codes)} codes into {request.system_kind.value}")
    try:
        return await service.bulk_import_codes(request)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post(
    "/systems/{system_id}/rebuild-search-text",
    response_model=RebuildResult,
    summary="Rebuild searchable text",
)
async def rebuild_searchable_text(system_id: str, service: Service) -> RebuildResult:
    return await service.rebuild_searchable_text(system_id)
