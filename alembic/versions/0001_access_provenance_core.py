"""access, provenance and registry mirror tables

Revision ID: 0001_access_provenance_core
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_access_provenance_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=256), nullable=False),
        sa.Column("global_role", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_global_role", "users", ["global_role"])

    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=64), nullable=False, server_default="active"),
        sa.Column("tags", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("visibility", sa.String(length=16), nullable=False, server_default="private"),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_projects_owner_id", "projects", ["owner_id"])
    op.create_index("ix_projects_visibility", "projects", ["visibility"])
    op.create_index("ix_projects_archived_at", "projects", ["archived_at"])

    op.create_table(
        "project_memberships",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("invited_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_membership_user"),
    )
    op.create_index("ix_project_membership_user", "project_memberships", ["user_id"])

    op.create_table(
        "audit_log_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action", sa.String(length=16), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("metadata_json", postgresql.JSONB(), nullable=True),
    )
    op.create_index("ix_audit_scope_type_ts", "audit_log_entries", ["project_id", "entity_type", "timestamp"])
    op.create_index("ix_audit_entity", "audit_log_entries", ["entity_type", "entity_id"])
    op.create_index("ix_audit_actor", "audit_log_entries", ["actor_id"])
    op.create_index("ix_audit_timestamp", "audit_log_entries", ["timestamp"])

    op.create_table(
        "field_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("audit_log_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("field_path", sa.String(length=256), nullable=False),
        sa.Column("old_value", postgresql.JSONB(none_as_null=True), nullable=True),
        sa.Column("old_value_present", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("new_value", postgresql.JSONB(none_as_null=True), nullable=True),
        sa.Column("changed_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_field_versions_audit_log_id", "field_versions", ["audit_log_id"])
    op.create_index("ix_field_versions_entity_changed", "field_versions", ["entity_type", "entity_id", "changed_at"])

    op.create_table(
        "registry_source_states",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("interval_days", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("sync_in_progress", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sync_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sync_total", sa.Integer(), nullable=True),
        sa.Column("sync_processed", sa.Integer(), nullable=True),
        sa.Column("sync_message", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("key", name="uq_registry_source_key"),
    )

    op.create_table(
        "registry_institutions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("source_key", sa.String(length=128), nullable=False),
        sa.Column("external_id", sa.String(length=128), nullable=False),
        sa.Column("registry_code", sa.String(length=64), nullable=True),
        sa.Column("name", sa.String(length=1024), nullable=False),
        sa.Column("legal_name", sa.String(length=1024), nullable=True),
        sa.Column("institution_type", sa.String(length=128), nullable=True),
        sa.Column("region_code", sa.String(length=64), nullable=True),
        sa.Column("city", sa.String(length=256), nullable=True),
        sa.Column("address", sa.String(length=1024), nullable=True),
        sa.Column("website", sa.String(length=512), nullable=True),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("source_key", "external_id", name="uq_registry_institution_source_external_id"),
        sa.UniqueConstraint("registry_code", name="uq_registry_institution_registry_code"),
    )
    op.create_index("ix_registry_institution_name", "registry_institutions", ["name"])
    op.create_index("ix_registry_institution_source", "registry_institutions", ["source_key"])


def downgrade():
    op.drop_index("ix_registry_institution_source", table_name="registry_institutions")
    op.drop_index("ix_registry_institution_name", table_name="registry_institutions")
    op.drop_table("registry_institutions")

    op.drop_table("registry_source_states")

    op.drop_index("ix_field_versions_entity_changed", table_name="field_versions")
    op.drop_index("ix_field_versions_audit_log_id", table_name="field_versions")
    op.drop_table("field_versions")

    op.drop_index("ix_audit_timestamp", table_name="audit_log_entries")
    op.drop_index("ix_audit_actor", table_name="audit_log_entries")
    op.drop_index("ix_audit_entity", table_name="audit_log_entries")
    op.drop_index("ix_audit_scope_type_ts", table_name="audit_log_entries")
    op.drop_table("audit_log_entries")

    op.drop_index("ix_project_membership_user", table_name="project_memberships")
    op.drop_table("project_memberships")

    op.drop_index("ix_projects_archived_at", table_name="projects")
    op.drop_index("ix_projects_visibility", table_name="projects")
    op.drop_index("ix_projects_owner_id", table_name="projects")
    op.drop_table("projects")

    op.drop_index("ix_users_global_role", table_name="users")
    op.drop_table("users")
