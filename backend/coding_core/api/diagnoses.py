"""Diagnosis API endpoints.

Every create or update appends a revision; the trail is exposed
read-only under /diagnoses/{id}/revisions.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from coding_core.core.exceptions import NotFoundError
from coding_core.schemas.coding import TimelineEntry
from coding_core.schemas.diagnosis import (
    DiagnosisCreate,
    DiagnosisRead,
    DiagnosisRevisionRead,
    DiagnosisUpdate,
)
from coding_core.services.coding_service import CodingService, get_coding_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/diagnoses", tags=["Diagnoses"])

Service = Annotated[CodingService, Depends(get_coding_service)]


@router.post(
    "",
    response_model=DiagnosisRead,
    status_code=status.HTTP_201_CREATED,
    summary="Record a diagnosis",
)
async def record_diagnosis(data: DiagnosisCreate, service: Service) -> DiagnosisRead:
    """Record a diagnosis with its secondary codes and first revision.

    Raises:
        HTTPException: 404 if a referenced code does not exist.
    """
    try:
        return await service.record_diagnosis(data)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{diagnosis_id}", response_model=DiagnosisRead, summary="Get a diagnosis")
async def get_diagnosis(diagnosis_id: str, service: Service) -> DiagnosisRead:
    diagnosis = await service.get_diagnosis(diagnosis_id)
    if diagnosis is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Diagnosis {diagnosis_id} not found",
        )
    return diagnosis


@router.patch("/{diagnosis_id}", response_model=DiagnosisRead, summary="Update a diagnosis")
async def update_diagnosis(diagnosis_id: str, data: DiagnosisUpdate, service: Service) -> DiagnosisRead:
    """Apply a partial update; the revision stores before and after snapshots.

    Raises:
        HTTPException: 404 if the diagnosis or a referenced code does not exist.
    """
    try:
        return await service.update_diagnosis(diagnosis_id, data)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get(
    "/{diagnosis_id}/revisions",
    response_model=list[DiagnosisRevisionRead],
    summary="List diagnosis revisions",
    description="Revisions of a diagnosis, newest first (at most 50).",
)
async def list_diagnosis_revisions(diagnosis_id: str, service: Service) -> list[DiagnosisRevisionRead]:
    return await service.list_diagnosis_revisions(diagnosis_id)


@router.get(
    "/patients/{patient_id}/timeline",
    response_model=list[TimelineEntry],
    summary="Patient code timeline",
)
async def patient_code_timeline(
    patient_id: str,
    service: Service,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> list[TimelineEntry]:
    return await service.patient_code_timeline(patient_id, limit)
