"""Services for the medical coding service.

Services implement business logic and data processing:
- SearchCache: two-tier (in-process + Redis) search result cache
- CatalogImporter: code system upsert, bulk code import, searchable-text rebuild
- CodeSearchEngine: full-text/substring search, code detail, suggestions
- DiagnosisRecorder: diagnosis writes with an append-only revision log
- CodingReports: usage, timeline, chapter and catalog statistics
- CodingService: facade wiring the above around one cache
"""

from coding_core.services.catalog_import import CatalogImporter, build_searchable_text
from coding_core.services.cid10_import import import_cid10_rows, parse_cid10_rows
from coding_core.services.code_search import CodeSearchEngine
from coding_core.services.coding_reports import CHAPTER_NAMES, CodingReports
from coding_core.services.coding_service import CodingService, get_coding_service, reset_coding_service
from coding_core.services.diagnosis_recorder import DiagnosisRecorder
from coding_core.services.outcome import Outcome
from coding_core.services.search_cache import SearchCache
from coding_core.services.symptom_analysis import SymptomAnalysisClient, SymptomAnalyzer

__all__ = [
    "CHAPTER_NAMES",
    "CatalogImporter",
    "CodeSearchEngine",
    "CodingReports",
    "CodingService",
    "DiagnosisRecorder",
    "Outcome",
    "SearchCache",
    "SymptomAnalysisClient",
    "SymptomAnalyzer",
    "build_searchable_text",
    "get_coding_service",
    "import_cid10_rows",
    "parse_cid10_rows",
    "reset_coding_service",
]
