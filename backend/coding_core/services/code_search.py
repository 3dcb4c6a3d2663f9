"""Search engine over the medical code catalog.

Two strategies share one filter builder so they always apply the same
system, chapter, sex and category restrictions, the same ordering and the
same limit:

1. Full-text search on PostgreSQL (``to_tsvector``/``plainto_tsquery``
   over code, display and description), used when requested and the query
   has more than two characters.
2. Case-insensitive substring matching over code, display, short
   description and searchable text. This is the fallback whenever the
   full-text path fails or finds nothing, and on its own it defines the
   correct result set.

Results are cached through ``SearchCache``.
"""

import logging
import re
from sqlalchemy import Select, literal_column, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import func

from coding_core.core.database import is_valid_id
from coding_core.models import CodeSystem, MedicalCode
from coding_core.schemas.base import CodeSystemKind, SexRestriction
from coding_core.schemas.coding import CodeDetail, HierarchyNode, MedicalCodeRead, SearchOptions
from coding_core.services.outcome import Outcome
from coding_core.services.search_cache import SearchCache
from coding_core.services.symptom_analysis import SymptomAnalyzer

logger = logging.getLogger(__name__)

FTS_INDEX_DDL = text(
    "CREATE INDEX IF NOT EXISTS medical_codes_fts_idx ON medical_codes USING GIN "
    "(to_tsvector('simple', coalesce(code,'') || ' ' || coalesce(display,'') || ' ' || coalesce(description,'')))"
)

MAX_HIERARCHY_DEPTH = 5
MIN_FTS_QUERY_LENGTH = 3
MIN_TOKEN_LENGTH = 4
MAX_TOKENS = 12
MAX_SUGGESTIONS = 15
AI_MAX_SYMPTOMS = 8
# Demographics sent with suggestion requests; no patient context is available
AI_DEFAULT_PATIENT_AGE = 40
AI_DEFAULT_PATIENT_GENDER = "M"

_NON_WORD_CHARS = re.compile(r"[^a-z0-9à-ú\s]")


def tokenize(free_text: str) -> list[str]:
    """Split free text into distinct search tokens.

    Lowercases, replaces anything but ASCII letters/digits and accented
    letters with spaces, keeps tokens longer than three characters in
    first-seen order and caps the result at twelve tokens.
    """
    cleaned = _NON_WORD_CHARS.sub(" ", free_text.lower())
    tokens: list[str] = []
    for token in cleaned.split():
        if len(token) >= MIN_TOKEN_LENGTH and token not in tokens:
            tokens.append(token)
    return tokens[:MAX_TOKENS]


def token_score(code: MedicalCodeRead, tokens: list[str]) -> int:
    """Number of distinct tokens present in a code's text."""
    haystack = f"{code.code} {code.display} {code.searchable_text or ''}".lower()
    return sum(1 for token in tokens if token in haystack)


def _fts_document():
    # Must render exactly as the FTS_INDEX_DDL expression for the planner to use the index
    empty = literal_column("''")
    space = literal_column("' '")
    return func.to_tsvector(
        literal_column("'simple'"),
        func.coalesce(MedicalCode.code, empty)
        + space
        + func.coalesce(MedicalCode.display, empty)
        + space
        + func.coalesce(MedicalCode.description, empty),
    )


class CodeSearchEngine:
    """Cached code search, hierarchy lookup and free-text suggestion.

    The full-text index guard lives on the instance; build one engine per
    process and share it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: SearchCache,
        symptom_analyzer: SymptomAnalyzer | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._cache = cache
        self._symptom_analyzer = symptom_analyzer
        self._fts_ensured = False

    @property
    def fts_ensured(self) -> bool:
        return self._fts_ensured

    async def ensure_fts_index(self) -> bool:
        """Create the GIN full-text index once per process.

        The statement is idempotent, so concurrent first calls may both
        issue it safely. Failures (e.g. a database without full-text
        support) are logged and retried on the next call.
        """
        if self._fts_ensured:
            return True
        try:
            async with self._session_factory() as session:
                await session.execute(FTS_INDEX_DDL)
                await session.commit()
        except SQLAlchemyError as e:
            logger.debug(f"Full-text index not available, substring search only: {e}")
            return False
        self._fts_ensured = True
        return True

    def _filtered_select(
        self,
        system_kind: CodeSystemKind | None,
        options: SearchOptions,
    ) -> Select:
        stmt = select(MedicalCode).where(MedicalCode.active.is_(True))
        if system_kind is not None:
            stmt = stmt.join(CodeSystem, MedicalCode.system_id == CodeSystem.id).where(
                CodeSystem.kind == system_kind
            )
        if options.chapter:
            stmt = stmt.where(MedicalCode.chapter == options.chapter)
        if options.sex_restriction is not None:
            stmt = stmt.where(
                or_(
                    MedicalCode.sex_restriction == options.sex_restriction,
                    MedicalCode.sex_restriction.is_(None),
                )
            )
        if options.categories_only:
            stmt = stmt.where(MedicalCode.is_category.is_(True))
        return stmt

    async def _full_text_search(
        self,
        query: str,
        system_kind: CodeSystemKind | None,
        limit: int,
        options: SearchOptions,
    ) -> Outcome[list[MedicalCodeRead]]:
        stmt = (
            self._filtered_select(system_kind, options)
            .where(_fts_document().bool_op("@@")(func.plainto_tsquery(literal_column("'simple'"), query)))
            .order_by(MedicalCode.code)
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return Outcome.success([MedicalCodeRead.model_validate(c) for c in result.scalars().all()])
        except SQLAlchemyError as e:
            logger.warning(f"Full-text search degraded, falling back to substring search: {e}")
            return Outcome.failure(f"full-text search failed: {e}")

    async def _substring_search(
        self,
        query: str,
        system_kind: CodeSystemKind | None,
        limit: int,
        options: SearchOptions,
    ) -> list[MedicalCodeRead]:
        term = query.lower()
        stmt = (
            self._filtered_select(system_kind, options)
            .where(
                or_(
                    MedicalCode.code.icontains(term, autoescape=True),
                    MedicalCode.display.icontains(term, autoescape=True),
                    MedicalCode.short_description.icontains(term, autoescape=True),
                    MedicalCode.searchable_text.icontains(term, autoescape=True),
                )
            )
            .order_by(MedicalCode.code)
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [MedicalCodeRead.model_validate(c) for c in result.scalars().all()]

    async def search_codes(
        self,
        query: str,
        system_kind: CodeSystemKind | None = None,
        limit: int = 25,
        options: SearchOptions | None = None,
    ) -> list[MedicalCodeRead]:
        """Search the catalog, serving repeated searches from the cache.

        An empty query never fails: it returns up to ``limit`` codes that
        pass the filters.
        """
        options = options or SearchOptions()
        q = query.strip()
        key = SearchCache.build_key(q, system_kind, limit, options)

        cached = await self._cache.get(key)
        if cached.ok:
            return [MedicalCodeRead.model_validate(item) for item in cached.value]

        results: list[MedicalCodeRead] = []
        if options.fts and len(q) >= MIN_FTS_QUERY_LENGTH:
            await self.ensure_fts_index()
            results = (await self._full_text_search(q, system_kind, limit, options)).value_or([])

        if not results:
            results = await self._substring_search(q, system_kind, limit, options)

        await self._cache.set(key, [r.model_dump(mode="json") for r in results])
        return results

    async def search_codes_for_gender(
        self,
        query: str,
        gender: SexRestriction,
        system_kind: CodeSystemKind | None = None,
        limit: int = 25,
    ) -> list[MedicalCodeRead]:
        """Search codes valid for a patient of the given sex."""
        return await self.search_codes(query, system_kind, limit, SearchOptions(sex_restriction=gender))

    async def get_code_detail(self, id_or_code: str) -> CodeDetail | None:
        """Resolve a code by id, then by code, with its ancestor path.

        The path runs from the furthest ancestor to the immediate parent and
        holds at most five entries; deeper hierarchies are truncated.
        """
        async with self._session_factory() as session:
            code = None
            if is_valid_id(id_or_code):
                code = await session.get(MedicalCode, id_or_code)
            if code is None:
                result = await session.execute(
                    select(MedicalCode).where(MedicalCode.code == id_or_code).order_by(MedicalCode.created_at).limit(1)
                )
                code = result.scalars().first()
            if code is None:
                return None

            parent: HierarchyNode | None = None
            path: list[HierarchyNode] = []
            current_id = code.parent_id
            depth = 0
            while current_id and depth < MAX_HIERARCHY_DEPTH:
                result = await session.execute(
                    select(MedicalCode.id, MedicalCode.code, MedicalCode.display, MedicalCode.parent_id).where(
                        MedicalCode.id == current_id
                    )
                )
                row = result.first()
                if row is None:
                    break
                node = HierarchyNode(id=row.id, code=row.code, display=row.display)
                if parent is None:
                    parent = node
                path.insert(0, node)
                current_id = row.parent_id
                depth += 1

            detail = CodeDetail.model_validate(code)
            return detail.model_copy(update={"parent": parent, "hierarchy_path": path})

    async def suggest_codes(
        self,
        free_text: str,
        system_kind: CodeSystemKind | None = None,
        limit: int = 5,
    ) -> list[MedicalCodeRead]:
        """Suggest codes for clinical free text.

        Candidates matching any token are ranked by how many distinct tokens
        they contain. When a symptom analyzer is configured, candidates whose
        display contains a proposed diagnosis name move to the front, keeping
        their relative order.
        """
        limit = min(limit or 5, MAX_SUGGESTIONS)
        text_value = free_text.strip()
        if not text_value:
            return []

        tokens = tokenize(text_value)
        if not tokens:
            return []

        clauses = []
        for token in tokens:
            clauses.extend(
                [
                    MedicalCode.code.icontains(token, autoescape=True),
                    MedicalCode.display.icontains(token, autoescape=True),
                    MedicalCode.searchable_text.icontains(token, autoescape=True),
                ]
            )
        stmt = (
            self._filtered_select(system_kind, SearchOptions())
            .where(or_(*clauses))
            .order_by(MedicalCode.code)
            .limit(limit * 3)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            candidates = [MedicalCodeRead.model_validate(c) for c in result.scalars().all()]

        ranked = sorted(candidates, key=lambda c: token_score(c, tokens), reverse=True)[:limit]

        if self._symptom_analyzer is None or not ranked:
            return ranked

        names = await self._ai_diagnosis_names(tokens)
        if not names:
            return ranked
        return sorted(ranked, key=lambda c: any(n in c.display.lower() for n in names), reverse=True)

    async def _ai_diagnosis_names(self, tokens: list[str]) -> list[str]:
        try:
            outcome = await self._symptom_analyzer.possible_diagnoses(
                tokens[:AI_MAX_SYMPTOMS],
                AI_DEFAULT_PATIENT_AGE,
                AI_DEFAULT_PATIENT_GENDER,
            )
        except Exception as e:
            logger.warning(f"Symptom analyzer raised, ignoring AI boost: {e}")
            return []
        return outcome.value_or([])
