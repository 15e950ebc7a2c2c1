"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    if "projects" in existing_tables:
        return

    op.create_table(
        "projects",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("figma_file_key", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "component_versions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("component_key", sa.String(200), nullable=False),
        sa.Column("component_name", sa.String(300), nullable=False),
        sa.Column("version", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, default="draft"),
        sa.Column("snapshot", sa.JSON, nullable=True),
        sa.Column("diff", sa.JSON, nullable=True),
        sa.Column("bump_type", sa.String(10), nullable=True),
        sa.Column("created_by", sa.String(200), nullable=False),
        sa.Column("reviewed_by", sa.String(200), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("thumbnail_url", sa.Text, nullable=True),
        sa.Column("changelog_message", sa.Text, nullable=True),
        sa.Column("superseded_by", sa.String(36), nullable=True),
    )
    op.create_index(
        "ix_component_versions_project_key", "component_versions", ["project_id", "component_key"]
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "component_version_id", sa.String(36),
            sa.ForeignKey("component_versions.id"), nullable=False,
        ),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("performed_by", sa.String(200), nullable=False),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_audit_log_component_version_id", "audit_log", ["component_version_id"])

    op.create_table(
        "library_versions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("version", sa.String(30), nullable=False),
        sa.Column("bump_type", sa.String(10), nullable=False),
        sa.Column("changelog_message", sa.Text, nullable=True),
        sa.Column("published_by", sa.String(200), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_library_versions_project_id", "library_versions", ["project_id"])

    op.create_table(
        "library_version_components",
        sa.Column(
            "library_version_id", sa.String(36),
            sa.ForeignKey("library_versions.id"), primary_key=True,
        ),
        sa.Column(
            "component_version_id", sa.String(36),
            sa.ForeignKey("component_versions.id"), primary_key=True,
        ),
        sa.Column("component_key", sa.String(200), nullable=False),
        sa.Column("component_name", sa.String(300), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("library_version_components")
    op.drop_index("ix_library_versions_project_id", table_name="library_versions")
    op.drop_table("library_versions")
    op.drop_index("ix_audit_log_component_version_id", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_component_versions_project_key", table_name="component_versions")
    op.drop_table("component_versions")
    op.drop_table("projects")
