"""Pydantic schemas for the medical coding service."""

from coding_core.schemas.base import (
    CodeSystemKind,
    CrossAsterisk,
    DiagnosisCertainty,
    DiagnosisStatus,
    SexRestriction,
)
from coding_core.schemas.coding import (
    BulkImportRequest,
    ChapterInfo,
    CodeDetail,
    CodeStats,
    CodeSystemRead,
    CodeSystemUpsert,
    HierarchyNode,
    ImportResult,
    MedicalCodeInput,
    MedicalCodeRead,
    RebuildResult,
    SearchOptions,
    SuggestRequest,
    TimelineEntry,
    TopCodeUsage,
)
from coding_core.schemas.diagnosis import (
    DiagnosisCreate,
    DiagnosisRead,
    DiagnosisRevisionRead,
    DiagnosisSnapshot,
    DiagnosisUpdate,
)

__all__ = [
    # Enums
    "CodeSystemKind",
    "CrossAsterisk",
    "DiagnosisCertainty",
    "DiagnosisStatus",
    "SexRestriction",
    # Catalog
    "BulkImportRequest",
    "CodeDetail",
    "CodeSystemRead",
    "CodeSystemUpsert",
    "HierarchyNode",
    "ImportResult",
    "MedicalCodeInput",
    "MedicalCodeRead",
    "RebuildResult",
    "SearchOptions",
    "SuggestRequest",
    # Reporting
    "ChapterInfo",
    "CodeStats",
    "TimelineEntry",
    "TopCodeUsage",
    # Diagnosis
    "DiagnosisCreate",
    "DiagnosisRead",
    "DiagnosisRevisionRead",
    "DiagnosisSnapshot",
    "DiagnosisUpdate",
]
