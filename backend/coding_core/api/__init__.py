"""API routers for the medical coding service."""

from coding_core.api.coding import router as coding_router
from coding_core.api.diagnoses import router as diagnoses_router

__all__ = [
    "coding_router",
    "diagnoses_router",
]
