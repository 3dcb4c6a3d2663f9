"""Pytest configuration and fixtures for backend tests.

Service tests run against an in-memory SQLite database through aiosqlite.
StaticPool keeps a single connection so every session sees the same
database. SQLite has no full-text search, so searches asking for it
exercise the substring fallback.
"""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import coding_core.models  # noqa: F401
from coding_core.core.database import Base
from coding_core.main import app
from coding_core.schemas.base import CodeSystemKind, CrossAsterisk, SexRestriction
from coding_core.schemas.coding import BulkImportRequest, CodeSystemUpsert, MedicalCodeInput
from coding_core.services.coding_service import CodingService, get_coding_service
from coding_core.services.search_cache import SearchCache


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def search_cache() -> SearchCache:
    """Search cache with no Redis tier."""
    return SearchCache(ttl_seconds=30)


@pytest.fixture
def coding_service(session_factory, search_cache) -> CodingService:
    """Coding service over the test database, without AI enhancement."""
    return CodingService(session_factory, search_cache)


@pytest.fixture
def mock_redis() -> MagicMock:
    """Create a mock asyncio Redis client.

    ``scan_iter`` yields nothing unless a test replaces it.
    """
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.setex = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)

    async def _scan_iter(match=None):
        for key in []:
            yield key

    client.scan_iter = MagicMock(side_effect=_scan_iter)
    return client


# Small ICD-10 catalog used across service tests. Every field that search
# filters on is populated somewhere.
SAMPLE_CODES = [
    MedicalCodeInput(code="A00", display="Cólera", chapter="I", is_category=True),
    MedicalCodeInput(
        code="A00.0",
        display="Cólera devida a Vibrio cholerae 01, biótipo cholerae",
        short_description="Cólera clássica",
        parent_code="A00",
        chapter="I",
        synonyms=["cholera classica"],
    ),
    MedicalCodeInput(code="A00.9", display="Cólera não especificada", parent_code="A00", chapter="I"),
    MedicalCodeInput(
        code="C61",
        display="Neoplasia maligna da próstata",
        chapter="II",
        is_category=True,
        sex_restriction=SexRestriction.MALE,
    ),
    MedicalCodeInput(
        code="N70",
        display="Salpingite e ooforite",
        chapter="XIV",
        is_category=True,
        sex_restriction=SexRestriction.FEMALE,
    ),
    MedicalCodeInput(
        code="G01",
        display="Meningite em doenças bacterianas classificadas em outra parte",
        chapter="VI",
        is_category=True,
        cross_asterisk=CrossAsterisk.MANIFESTATION,
    ),
    MedicalCodeInput(
        code="A17.0",
        display="Meningite tuberculosa",
        chapter="I",
        cross_asterisk=CrossAsterisk.ETIOLOGY,
    ),
    MedicalCodeInput(code="J11", display="Influenza devida a vírus não identificado", chapter="X", is_category=True),
]


@pytest.fixture
async def seeded_service(coding_service: CodingService) -> CodingService:
    """Coding service with an ICD-10 system and the sample catalog."""
    await coding_service.upsert_code_system(CodeSystemUpsert(kind=CodeSystemKind.ICD10, name="ICD-10"))
    await coding_service.bulk_import_codes(
        BulkImportRequest(
            system_kind=CodeSystemKind.ICD10,
            codes=SAMPLE_CODES,
            rebuild_search_text=True,
        )
    )
    return coding_service


@pytest.fixture
def code_id(seeded_service: CodingService):
    """Resolve a seeded code value to its id."""

    async def _resolve(code: str) -> str:
        detail = await seeded_service.get_code_detail(code)
        assert detail is not None, f"code {code} not seeded"
        return detail.id

    return _resolve


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client without database access.

    Use this for endpoints that don't touch the coding service.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def api_client(seeded_service: CodingService) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client whose coding service uses the test database."""
    app.dependency_overrides[get_coding_service] = lambda: seeded_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()
