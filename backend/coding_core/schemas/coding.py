"""Schemas for the code catalog: systems, codes, search and reporting."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coding_core.schemas.base import CodeSystemKind, CrossAsterisk, SexRestriction


class CodeSystemUpsert(BaseModel):
    """Schema for creating or updating a code system keyed by (kind, version)."""

    kind: CodeSystemKind = Field(..., description="Coding standard")
    name: str = Field(..., min_length=1, description="Human-readable name")
    version: str | None = Field(None, description="Version label; None means unversioned/latest")
    description: str | None = Field(None, description="Free-text description")
    active: bool = Field(True, description="Whether the system is in use")


class CodeSystemRead(BaseModel):
    """Schema for a persisted code system."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    kind: CodeSystemKind
    name: str
    version: str | None = None
    description: str | None = None
    active: bool = True


class MedicalCodeInput(BaseModel):
    """One code in a bulk import batch.

    ``parent_code`` may reference a code imported earlier in the same batch.
    The classification fields are optional; omitted ones keep their stored
    value when the code already exists.
    """

    code: str = Field(..., min_length=1, max_length=32)
    display: str = Field(..., min_length=1)
    description: str | None = None
    short_description: str | None = None
    parent_code: str | None = None
    synonyms: list[str] | None = None
    chapter: str | None = None
    sex_restriction: SexRestriction | None = None
    is_category: bool | None = None
    cross_asterisk: CrossAsterisk | None = None
    searchable_text: str | None = Field(
        None, description="Precomputed searchable text; rebuilt when rebuild_search_text is set"
    )


class BulkImportRequest(BaseModel):
    """Request for importing codes into an existing code system."""

    system_kind: CodeSystemKind
    system_version: str | None = None
    codes: list[MedicalCodeInput] = Field(default_factory=list)
    rebuild_search_text: bool = False


class ImportResult(BaseModel):
    """Outcome of a bulk import."""

    imported: int
    rebuilt: int | None = None


class RebuildResult(BaseModel):
    """Outcome of a searchable-text rebuild."""

    rebuilt: int


class MedicalCodeRead(BaseModel):
    """Schema for a catalog entry as returned by search and browse."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    system_id: str
    code: str
    display: str
    description: str | None = None
    short_description: str | None = None
    parent_id: str | None = None
    synonyms: list[str] = Field(default_factory=list)
    searchable_text: str | None = None
    chapter: str | None = None
    sex_restriction: SexRestriction | None = None
    is_category: bool = False
    cross_asterisk: CrossAsterisk | None = None
    active: bool = True

    @field_validator("synonyms", mode="before")
    @classmethod
    def _synonyms_as_list(cls, value: Any) -> list[str]:
        # Older rows hold NULL or a JSON-encoded string
        if not value:
            return []
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except ValueError:
                return [value]
            return decoded if isinstance(decoded, list) else [str(decoded)]
        return value


class HierarchyNode(BaseModel):
    """An ancestor of a code in its hierarchy path."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    display: str


class CodeDetail(MedicalCodeRead):
    """A code with its immediate parent and root-to-parent path.

    The path holds at most five ancestors; deeper chains are truncated.
    """

    parent: HierarchyNode | None = None
    hierarchy_path: list[HierarchyNode] = Field(default_factory=list)


class SearchOptions(BaseModel):
    """Optional filters for code search."""

    fts: bool = Field(False, description="Try the full-text index first")
    chapter: str | None = None
    sex_restriction: SexRestriction | None = Field(
        None, description="Keep codes restricted to this sex plus unrestricted codes"
    )
    categories_only: bool = False


class SuggestRequest(BaseModel):
    """Free-text request for code suggestions."""

    free_text: str
    system_kind: CodeSystemKind | None = None
    limit: int = Field(5, ge=1, le=15)


class ChapterInfo(BaseModel):
    """A chapter of a code system with its code count."""

    code: str
    name: str
    count: int


class CodeStats(BaseModel):
    """Catalog counts for one or all code systems."""

    total: int = 0
    categories: int = 0
    with_sex_restriction: int = 0
    etiology_codes: int = 0
    manifestation_codes: int = 0


class TopCodeUsage(BaseModel):
    """Primary code usage count in a trailing time window."""

    code: str
    display: str
    usages: int


class TimelineEntry(BaseModel):
    """One diagnosis in a patient's code timeline."""

    diagnosis_id: str
    created_at: datetime
    code: str
    display: str
    status: str
    certainty: str
