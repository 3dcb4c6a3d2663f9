"""Client for the optional AI symptom analysis service.

The service receives a list of symptoms plus basic demographics and
answers with possible diagnoses:

    POST {url}
    {"symptoms": [...], "patientAge": 40, "patientGender": "M"}
    -> {"possibleDiagnoses": [{"name": "...", "probability": 85, ...}]}

Suggestion ranking uses the returned names only as a boost, so every
failure is reported as a degraded ``Outcome`` rather than raised.
"""

import logging
from typing import Any, Protocol

import httpx

from coding_core.core.config import settings
from coding_core.services.outcome import Outcome

logger = logging.getLogger(__name__)


class SymptomAnalyzer(Protocol):
    """Anything that can propose diagnosis names for a set of symptoms."""

    async def possible_diagnoses(
        self,
        symptoms: list[str],
        patient_age: int,
        patient_gender: str,
    ) -> Outcome[list[str]]: ...


class SymptomAnalysisClient:
    """HTTP client for the AI symptom analysis endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    def _get_headers(self) -> dict[str, str]:
        token = self._api_key
        if not token.lower().startswith("bearer "):
            token = f"Bearer {token}"
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": token,
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(headers=self._get_headers(), timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def analyze_symptoms(
        self,
        symptoms: list[str],
        patient_age: int,
        patient_gender: str,
    ) -> dict[str, Any]:
        """Call the analysis endpoint and return the decoded JSON body.

        Raises:
            httpx.HTTPError: On transport errors or non-2xx responses.
            ValueError: If the body is not JSON.
        """
        response = await self._get_client().post(
            self._url,
            json={
                "symptoms": symptoms,
                "patientAge": patient_age,
                "patientGender": patient_gender,
            },
        )
        response.raise_for_status()
        return response.json()

    async def possible_diagnoses(
        self,
        symptoms: list[str],
        patient_age: int,
        patient_gender: str,
    ) -> Outcome[list[str]]:
        """Lowercased names of the diagnoses the service proposes."""
        try:
            payload = await self.analyze_symptoms(symptoms, patient_age, patient_gender)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Symptom analysis unavailable: {e}")
            return Outcome.failure(f"symptom analysis failed: {e}")

        diagnoses = payload.get("possibleDiagnoses") if isinstance(payload, dict) else None
        if not isinstance(diagnoses, list):
            return Outcome.failure("symptom analysis returned no possibleDiagnoses list")

        names = [
            str(d["name"]).strip().lower()
            for d in diagnoses
            if isinstance(d, dict) and d.get("name") and str(d["name"]).strip()
        ]
        return Outcome.success(names)


def build_symptom_analyzer() -> SymptomAnalysisClient | None:
    """Create the client from settings, or None when it is not configured."""
    if not settings.symptom_analysis_configured:
        return None
    return SymptomAnalysisClient(
        url=settings.symptom_analysis_url or "",
        api_key=settings.symptom_analysis_api_key or "",
        timeout=settings.symptom_analysis_timeout,
    )
