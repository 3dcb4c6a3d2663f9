"""Create code catalog and diagnosis tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Create enum types
    code_system_kind_enum = postgresql.ENUM(
        "ICD10",
        "CID10",
        "CID11",
        "CIAP2",
        "CBHPM",
        "TUSS",
        "LOINC",
        "SNOMED",
        name="code_system_kind",
        create_type=False,
    )
    code_system_kind_enum.create(op.get_bind(), checkfirst=True)

    sex_restriction_enum = postgresql.ENUM("M", "F", name="sex_restriction", create_type=False)
    sex_restriction_enum.create(op.get_bind(), checkfirst=True)

    cross_asterisk_enum = postgresql.ENUM("ETIOLOGY", "MANIFESTATION", name="cross_asterisk", create_type=False)
    cross_asterisk_enum.create(op.get_bind(), checkfirst=True)

    diagnosis_status_enum = postgresql.ENUM(
        "ACTIVE",
        "RESOLVED",
        "CANCELLED",
        "RULED_OUT",
        name="diagnosis_status",
        create_type=False,
    )
    diagnosis_status_enum.create(op.get_bind(), checkfirst=True)

    diagnosis_certainty_enum = postgresql.ENUM(
        "CONFIRMED",
        "PROVISIONAL",
        "SUSPECTED",
        name="diagnosis_certainty",
        create_type=False,
    )
    diagnosis_certainty_enum.create(op.get_bind(), checkfirst=True)

    # Create code_systems table; an unversioned system is unique per kind
    op.create_table(
        "code_systems",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("kind", code_system_kind_enum, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("version", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint(
            "kind",
            "version",
            name="uq_code_systems_kind_version",
            postgresql_nulls_not_distinct=True,
        ),
    )
    op.create_index("ix_code_systems_kind", "code_systems", ["kind"])

    # Create medical_codes table with self-referencing hierarchy
    op.create_table(
        "medical_codes",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "system_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("code_systems.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("display", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("short_description", sa.String(500), nullable=True),
        sa.Column(
            "parent_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("medical_codes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("synonyms", sa.JSON(), nullable=True),
        sa.Column("searchable_text", sa.Text(), nullable=True),
        sa.Column("chapter", sa.String(10), nullable=True),
        sa.Column("sex_restriction", sex_restriction_enum, nullable=True),
        sa.Column("is_category", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cross_asterisk", cross_asterisk_enum, nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("system_id", "code", name="uq_medical_codes_system_code"),
    )
    op.create_index("ix_medical_codes_system_id", "medical_codes", ["system_id"])
    op.create_index("ix_medical_codes_code", "medical_codes", ["code"])
    op.create_index("ix_medical_codes_parent_id", "medical_codes", ["parent_id"])
    op.create_index("ix_medical_codes_system_chapter", "medical_codes", ["system_id", "chapter"])

    # Full-text index used by code search (also ensured lazily at runtime)
    op.execute(
        "CREATE INDEX IF NOT EXISTS medical_codes_fts_idx ON medical_codes USING GIN "
        "(to_tsvector('simple', coalesce(code,'') || ' ' || coalesce(display,'') || ' ' || coalesce(description,'')))"
    )

    # Create diagnoses table
    op.create_table(
        "diagnoses",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("patient_id", sa.String(255), nullable=False),
        sa.Column("consultation_id", sa.String(255), nullable=True),
        sa.Column(
            "primary_code_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("medical_codes.id"),
            nullable=False,
        ),
        sa.Column("status", diagnosis_status_enum, nullable=False, server_default="ACTIVE"),
        sa.Column("certainty", diagnosis_certainty_enum, nullable=False, server_default="CONFIRMED"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("onset_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_diagnoses_patient_id", "diagnoses", ["patient_id"])
    op.create_index("ix_diagnoses_consultation_id", "diagnoses", ["consultation_id"])
    op.create_index("ix_diagnoses_primary_code_id", "diagnoses", ["primary_code_id"])

    # Create diagnosis_secondary_codes table (ordered)
    op.create_table(
        "diagnosis_secondary_codes",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "diagnosis_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("diagnoses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "code_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("medical_codes.id"),
            nullable=False,
        ),
        sa.Column("order", sa.Integer(), nullable=False),
    )
    op.create_index(
        "ix_diagnosis_secondary_codes_diagnosis_order",
        "diagnosis_secondary_codes",
        ["diagnosis_id", "order"],
    )

    # Create diagnosis_revisions table (append-only audit trail)
    op.create_table(
        "diagnosis_revisions",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "diagnosis_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("diagnoses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("previous", sa.JSON(), nullable=True),
        sa.Column("next", sa.JSON(), nullable=False),
        sa.Column("changed_by_user_id", sa.String(255), nullable=True),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "ix_diagnosis_revisions_diagnosis_changed",
        "diagnosis_revisions",
        ["diagnosis_id", "changed_at"],
    )


def downgrade() -> None:
    op.drop_table("diagnosis_revisions")
    op.drop_table("diagnosis_secondary_codes")
    op.drop_table("diagnoses")
    op.execute("DROP INDEX IF EXISTS medical_codes_fts_idx")
    op.drop_table("medical_codes")
    op.drop_table("code_systems")

    # Drop enum types
    op.execute("DROP TYPE IF EXISTS diagnosis_certainty")
    op.execute("DROP TYPE IF EXISTS diagnosis_status")
    op.execute("DROP TYPE IF EXISTS cross_asterisk")
    op.execute("DROP TYPE IF EXISTS sex_restriction")
    op.execute("DROP TYPE IF EXISTS code_system_kind")
