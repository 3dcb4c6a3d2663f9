"""SQLAlchemy models for code systems and the medical code catalog."""

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from coding_core.core.database import Base
from coding_core.schemas.base import CodeSystemKind, CrossAsterisk, SexRestriction


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


class CodeSystem(Base):
    """A coding standard, optionally versioned.

    (kind, version) is unique; a NULL version means "unversioned/latest",
    so on PostgreSQL the constraint treats NULLs as equal.
    """

    __tablename__ = "code_systems"
    __table_args__ = (
        UniqueConstraint(
            "kind",
            "version",
            name="uq_code_systems_kind_version",
            postgresql_nulls_not_distinct=True,
        ),
    )

    kind: Mapped[CodeSystemKind] = mapped_column(
        Enum(CodeSystemKind, name="code_system_kind", values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<CodeSystem(kind={self.kind}, version={self.version!r})>"


class MedicalCode(Base):
    """One catalog entry within a code system.

    Codes form a tree through ``parent_id``. ``searchable_text`` is derived
    (lowercased code, display, descriptions and synonyms) and rebuilt by the
    import pipeline.
    """

    __tablename__ = "medical_codes"
    __table_args__ = (
        UniqueConstraint("system_id", "code", name="uq_medical_codes_system_code"),
        Index("ix_medical_codes_system_chapter", "system_id", "chapter"),
    )

    system_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("code_systems.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    display: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    short_description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    parent_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("medical_codes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    synonyms: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    searchable_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    chapter: Mapped[str | None] = mapped_column(String(10), nullable=True)
    sex_restriction: Mapped[SexRestriction | None] = mapped_column(
        Enum(SexRestriction, name="sex_restriction", values_callable=_enum_values),
        nullable=True,
    )
    is_category: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cross_asterisk: Mapped[CrossAsterisk | None] = mapped_column(
        Enum(CrossAsterisk, name="cross_asterisk", values_callable=_enum_values),
        nullable=True,
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<MedicalCode(code='{self.code}', display='{self.display}')>"
