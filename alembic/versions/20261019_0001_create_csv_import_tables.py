"""create reference, csv import and production data tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    # ---------------------------------------------------------------------------
    # Reference data
    # ---------------------------------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False, comment="user, admin"),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "states",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("abbreviation", sa.String(length=8), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.UniqueConstraint("abbreviation"),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "data_sources",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, comment="e.g. BEA, BLS, US Census Bureau"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("url", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    # FK → categories.id, data_sources.id
    op.create_table(
        "statistics",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("ra_number", sa.String(length=32), nullable=True, comment="Reference number such as 1001"),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("data_source_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("unit", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.ForeignKeyConstraint(["data_source_id"], ["data_sources.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_statistics_category_id", "statistics", ["category_id"])
    op.create_index("ix_statistics_name", "statistics", ["name"])

    # ---------------------------------------------------------------------------
    # Import templates and uploads
    # ---------------------------------------------------------------------------
    op.create_table(
        "csv_import_templates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False, comment="Human-readable template name"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("data_source_id", sa.Integer(), nullable=True),
        sa.Column(
            "template_schema",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="columns, expectedHeaders, flexibleColumns",
        ),
        sa.Column(
            "validation_rules",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="stateName, year, value, custom rule lists",
        ),
        sa.Column("sample_data", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.ForeignKeyConstraint(["data_source_id"], ["data_sources.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_csv_import_templates_is_active", "csv_import_templates", ["is_active"])

    op.create_table(
        "csv_imports",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("file_hash", sa.String(length=64), nullable=False, comment="SHA-256 of the normalized file text"),
        sa.Column("duplicate_of", sa.Integer(), nullable=True, comment="Earliest import with the same file hash"),
        sa.Column("template_id", sa.Integer(), nullable=True),
        sa.Column(
            "status",
            sa.String(length=32),
            nullable=False,
            comment="uploaded, staged, validated, failed, published, rolled_back",
        ),
        sa.Column("uploaded_by", sa.Integer(), nullable=False),
        sa.Column("metadata_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("total_rows", sa.Integer(), nullable=True),
        sa.Column("valid_rows", sa.Integer(), nullable=True),
        sa.Column("invalid_rows", sa.Integer(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("staged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("validated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rolled_back_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["duplicate_of"], ["csv_imports.id"]),
        sa.ForeignKeyConstraint(["template_id"], ["csv_import_templates.id"]),
        sa.ForeignKeyConstraint(["uploaded_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_csv_imports_file_hash", "csv_imports", ["file_hash"])
    op.create_index("ix_csv_imports_status", "csv_imports", ["status"])
    op.create_index("ix_csv_imports_uploaded_by", "csv_imports", ["uploaded_by"])
    op.create_index("ix_csv_imports_uploaded_at", "csv_imports", ["uploaded_at"])

    op.create_table(
        "csv_import_metadata",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("csv_import_id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(length=120), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("data_type", sa.String(length=16), nullable=False, comment="string, number, date, boolean"),
        sa.ForeignKeyConstraint(["csv_import_id"], ["csv_imports.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("csv_import_id", "key", name="uq_csv_import_metadata_import_key"),
    )

    op.create_table(
        "csv_import_staging",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("csv_import_id", sa.Integer(), nullable=False),
        sa.Column(
            "row_number",
            sa.Integer(),
            nullable=False,
            comment="1-based CSV line number; the header is line 1",
        ),
        sa.Column("state_name", sa.String(length=120), nullable=True),
        sa.Column("state_id", sa.Integer(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("category_name", sa.String(length=120), nullable=True),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("statistic_name", sa.String(length=255), nullable=True),
        sa.Column("statistic_id", sa.Integer(), nullable=True),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column(
            "raw_data",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Original row plus additional_columns for flexible templates",
        ),
        sa.Column("validation_status", sa.String(length=16), nullable=False, comment="staged, valid, invalid"),
        sa.Column("validation_errors", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("is_processed", sa.Boolean(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["csv_import_id"], ["csv_imports.id"]),
        sa.ForeignKeyConstraint(["state_id"], ["states.id"]),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.ForeignKeyConstraint(["statistic_id"], ["statistics.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_csv_import_staging_import", "csv_import_staging", ["csv_import_id"])
    op.create_index("ix_csv_import_staging_import_row", "csv_import_staging", ["csv_import_id", "row_number"])

    # ---------------------------------------------------------------------------
    # Production data
    # ---------------------------------------------------------------------------
    op.create_table(
        "import_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("data_source_id", sa.Integer(), nullable=True),
        sa.Column("data_year", sa.Integer(), nullable=True),
        sa.Column("record_count", sa.Integer(), nullable=False),
        sa.Column("csv_import_id", sa.Integer(), nullable=True, comment="Upload that produced this session"),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["data_source_id"], ["data_sources.id"]),
        sa.ForeignKeyConstraint(["csv_import_id"], ["csv_imports.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_import_sessions_csv_import_id", "import_sessions", ["csv_import_id"])

    op.create_table(
        "data_points",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("import_session_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("state_id", sa.Integer(), nullable=False),
        sa.Column("statistic_id", sa.Integer(), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["import_session_id"], ["import_sessions.id"]),
        sa.ForeignKeyConstraint(["state_id"], ["states.id"]),
        sa.ForeignKeyConstraint(["statistic_id"], ["statistics.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_data_points_import_session_id", "data_points", ["import_session_id"])
    op.create_index(
        "ix_data_points_state_statistic_year",
        "data_points",
        ["state_id", "statistic_id", "year"],
    )


def downgrade() -> None:
    op.drop_index("ix_data_points_state_statistic_year", table_name="data_points")
    op.drop_index("ix_data_points_import_session_id", table_name="data_points")
    op.drop_table("data_points")
    op.drop_index("ix_import_sessions_csv_import_id", table_name="import_sessions")
    op.drop_table("import_sessions")
    op.drop_index("ix_csv_import_staging_import_row", table_name="csv_import_staging")
    op.drop_index("ix_csv_import_staging_import", table_name="csv_import_staging")
    op.drop_table("csv_import_staging")
    op.drop_table("csv_import_metadata")
    op.drop_index("ix_csv_imports_uploaded_at", table_name="csv_imports")
    op.drop_index("ix_csv_imports_uploaded_by", table_name="csv_imports")
    op.drop_index("ix_csv_imports_status", table_name="csv_imports")
    op.drop_index("ix_csv_imports_file_hash", table_name="csv_imports")
    op.drop_table("csv_imports")
    op.drop_index("ix_csv_import_templates_is_active", table_name="csv_import_templates")
    op.drop_table("csv_import_templates")
    op.drop_index("ix_statistics_name", table_name="statistics")
    op.drop_index("ix_statistics_category_id", table_name="statistics")
    op.drop_table("statistics")
    op.drop_table("data_sources")
    op.drop_table("categories")
    op.drop_table("states")
    op.drop_table("users")
