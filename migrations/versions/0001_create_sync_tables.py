"""create integration sync tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

integration_type = sa.Enum("API", "GRAPHQL", "MANUAL", name="integrationtype")
sync_status = sa.Enum("RUNNING", "SUCCESS", "FAILED", name="syncstatus")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "integrations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", integration_type, nullable=False),
        sa.Column("config", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("sync_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("sync_interval", sa.Integer(), nullable=True),
        sa.Column("retry_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("next_sync_at", sa.DateTime(), nullable=True),
        sa.Column("last_sync", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_integrations_id"), "integrations", ["id"])
    op.create_index(op.f("ix_integrations_type"), "integrations", ["type"])
    op.create_index(op.f("ix_integrations_sync_enabled"), "integrations", ["sync_enabled"])
    op.create_index(op.f("ix_integrations_next_sync_at"), "integrations", ["next_sync_at"])

    op.create_table(
        "data_fields",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("integration_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("path", sa.String(length=500), nullable=False),
        sa.Column("data_type", sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["integration_id"], ["integrations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_data_fields_id"), "data_fields", ["id"])
    op.create_index(op.f("ix_data_fields_integration_id"), "data_fields", ["integration_id"])

    op.create_table(
        "data_values",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("data_field_id", sa.Integer(), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("synced_at", sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["data_field_id"], ["data_fields.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_data_values_id"), "data_values", ["id"])
    op.create_index(op.f("ix_data_values_data_field_id"), "data_values", ["data_field_id"])
    op.create_index(op.f("ix_data_values_synced_at"), "data_values", ["synced_at"])

    op.create_table(
        "sync_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("integration_id", sa.Integer(), nullable=False),
        sa.Column("status", sync_status, nullable=False),
        sa.Column("records_count", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["integration_id"], ["integrations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_sync_logs_id"), "sync_logs", ["id"])
    op.create_index(op.f("ix_sync_logs_integration_id"), "sync_logs", ["integration_id"])


def downgrade():
    op.drop_index(op.f("ix_sync_logs_integration_id"), table_name="sync_logs")
    op.drop_index(op.f("ix_sync_logs_id"), table_name="sync_logs")
    op.drop_table("sync_logs")

    op.drop_index(op.f("ix_data_values_synced_at"), table_name="data_values")
    op.drop_index(op.f("ix_data_values_data_field_id"), table_name="data_values")
    op.drop_index(op.f("ix_data_values_id"), table_name="data_values")
    op.drop_table("data_values")

    op.drop_index(op.f("ix_data_fields_integration_id"), table_name="data_fields")
    op.drop_index(op.f("ix_data_fields_id"), table_name="data_fields")
    op.drop_table("data_fields")

    op.drop_index(op.f("ix_integrations_next_sync_at"), table_name="integrations")
    op.drop_index(op.f("ix_integrations_sync_enabled"), table_name="integrations")
    op.drop_index(op.f("ix_integrations_type"), table_name="integrations")
    op.drop_index(op.f("ix_integrations_id"), table_name="integrations")
    op.drop_table("integrations")

    sync_status.drop(op.get_bind(), checkfirst=True)
    integration_type.drop(op.get_bind(), checkfirst=True)
