"""Tests for the coding and diagnosis API endpoints."""

import pytest
from httpx import AsyncClient

PREFIX = "/api/v1"


class TestSearchEndpoints:
    """Tests for catalog search endpoints."""

    @pytest.mark.asyncio
    async def test_search_by_text(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{PREFIX}/coding/search", params={"q": "cólera"})

        assert response.status_code == 200
        codes = [item["code"] for item in response.json()]
        assert "A00" in codes
        assert "A00.0" in codes

    @pytest.mark.asyncio
    async def test_search_with_fts_falls_back(self, api_client: AsyncClient) -> None:
        """SQLite has no full-text index, so results come from substring search."""
        response = await api_client.get(f"{PREFIX}/coding/search", params={"q": "meningite", "fts": True})

        assert response.status_code == 200
        assert {item["code"] for item in response.json()} == {"G01", "A17.0"}

    @pytest.mark.asyncio
    async def test_search_rejects_bad_limit(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{PREFIX}/coding/search", params={"q": "a", "limit": 0})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_search_for_gender(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{PREFIX}/coding/search/gender", params={"gender": "F"})

        assert response.status_code == 200
        codes = {item["code"] for item in response.json()}
        assert "N70" in codes
        assert "C61" not in codes


class TestCodeDetailEndpoint:
    """Tests for code detail."""

    @pytest.mark.asyncio
    async def test_detail_by_code(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{PREFIX}/coding/codes/A00.0")

        assert response.status_code == 200
        data = response.json()
        assert data["parent"]["code"] == "A00"
        assert [node["code"] for node in data["hierarchy_path"]] == ["A00"]

    @pytest.mark.asyncio
    async def test_detail_not_found(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{PREFIX}/coding/codes/Z99.9")
        assert response.status_code == 404


class TestSuggestEndpoint:
    """Tests for free-text suggestions."""

    @pytest.mark.asyncio
    async def test_suggest(self, api_client: AsyncClient) -> None:
        response = await api_client.post(
            f"{PREFIX}/coding/suggest",
            json={"free_text": "Paciente com influenza e febre", "limit": 3},
        )

        assert response.status_code == 200
        assert response.json()[0]["code"] == "J11"

    @pytest.mark.asyncio
    async def test_suggest_limit_above_cap_rejected(self, api_client: AsyncClient) -> None:
        response = await api_client.post(f"{PREFIX}/coding/suggest", json={"free_text": "febre", "limit": 50})
        assert response.status_code == 422


class TestBrowseEndpoints:
    """Tests for chapters and stats."""

    @pytest.mark.asyncio
    async def test_list_chapters(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{PREFIX}/coding/chapters")

        assert response.status_code == 200
        chapters = {item["code"]: item for item in response.json()}
        assert chapters["I"]["name"] == "Doenças infecciosas e parasitárias"
        assert chapters["I"]["count"] == 4

    @pytest.mark.asyncio
    async def test_codes_by_chapter(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{PREFIX}/coding/chapters/I/codes")

        assert response.status_code == 200
        assert [item["code"] for item in response.json()] == ["A00", "A00.0", "A00.9", "A17.0"]

    @pytest.mark.asyncio
    async def test_stats(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{PREFIX}/coding/stats")

        assert response.status_code == 200
        assert response.json() == {
            "total": 8,
            "categories": 5,
            "with_sex_restriction": 2,
            "etiology_codes": 1,
            "manifestation_codes": 1,
        }


class TestCatalogMaintenanceEndpoints:
    """Tests for import endpoints."""

    @pytest.mark.asyncio
    async def test_import_into_missing_system(self, api_client: AsyncClient) -> None:
        response = await api_client.post(
            f"{PREFIX}/coding/import",
            json={"system_kind": "LOINC", "codes": [{"code": "1234-5", "display": "Glucose"}]},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_upsert_system_then_import(self, api_client: AsyncClient) -> None:
        created = await api_client.post(f"{PREFIX}/coding/systems", json={"kind": "CIAP2", "name": "CIAP-2"})
        assert created.status_code == 200
        assert created.json()["kind"] == "CIAP2"

        response = await api_client.post(
            f"{PREFIX}/coding/import",
            json={
                "system_kind": "CIAP2",
                "codes": [{"code": "A03", "display": "Febre"}],
                "rebuild_search_text": True,
            },
        )

        assert response.status_code == 200
        assert response.json() == {"imported": 1, "rebuilt": 1}

    @pytest.mark.asyncio
    async def test_rebuild_unknown_system(self, api_client: AsyncClient) -> None:
        response = await api_client.post(f"{PREFIX}/coding/systems/not-an-id/rebuild-search-text")

        assert response.status_code == 200
        assert response.json() == {"rebuilt": 0}


class TestDiagnosisEndpoints:
    """Tests for diagnosis recording and history."""

    @pytest.mark.asyncio
    async def test_diagnosis_lifecycle(self, api_client: AsyncClient, code_id) -> None:
        primary = await code_id("J11")

        created = await api_client.post(
            f"{PREFIX}/diagnoses",
            json={"patient_id": "P001", "primary_code_id": primary, "notes": "Febre alta"},
        )
        assert created.status_code == 201
        diagnosis = created.json()
        assert diagnosis["status"] == "ACTIVE"

        patched = await api_client.patch(
            f"{PREFIX}/diagnoses/{diagnosis['id']}",
            json={"status": "RESOLVED", "reason": "Alta"},
        )
        assert patched.status_code == 200
        assert patched.json()["status"] == "RESOLVED"
        assert patched.json()["notes"] == "Febre alta"

        fetched = await api_client.get(f"{PREFIX}/diagnoses/{diagnosis['id']}")
        assert fetched.json()["status"] == "RESOLVED"

        revisions = (await api_client.get(f"{PREFIX}/diagnoses/{diagnosis['id']}/revisions")).json()
        assert [r["reason"] for r in revisions] == ["Alta", "create"]
        assert revisions[0]["previous"]["status"] == "ACTIVE"
        assert revisions[1]["previous"] is None

        timeline = (await api_client.get(f"{PREFIX}/diagnoses/patients/P001/timeline")).json()
        assert len(timeline) == 1
        assert timeline[0]["code"] == "J11"
        assert timeline[0]["status"] == "RESOLVED"

    @pytest.mark.asyncio
    async def test_record_with_unknown_code(self, api_client: AsyncClient) -> None:
        response = await api_client.post(
            f"{PREFIX}/diagnoses",
            json={"patient_id": "P001", "primary_code_id": "550e8400-e29b-41d4-a716-446655440000"},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_get_missing_diagnosis(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{PREFIX}/diagnoses/550e8400-e29b-41d4-a716-446655440000")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_update_missing_diagnosis(self, api_client: AsyncClient) -> None:
        response = await api_client.patch(f"{PREFIX}/diagnoses/nope", json={"status": "RESOLVED"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_revisions_of_unknown_diagnosis_empty(self, api_client: AsyncClient) -> None:
        response = await api_client.get(f"{PREFIX}/diagnoses/nope/revisions")

        assert response.status_code == 200
        assert response.json() == []
