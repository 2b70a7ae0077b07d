"""Initial schema: model catalog, generation jobs and media descriptors."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "model_route",
        sa.Column("identifier", sa.String(length=128), primary_key=True),
        sa.Column("provider", sa.String(length=32), nullable=False),
        sa.Column("model_type", sa.String(length=16), nullable=False, server_default="image"),
        sa.Column("display_name", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("remote_model", sa.String(length=256)),
        sa.Column("remote_version", sa.String(length=128)),
        sa.Column("input_schema_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("supports_webhook", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        sa.Column("supports_cancel", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        sa.Column("webhook_events_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        sa.Column("cost_per_use", sa.Float()),
        sa.Column("avg_latency_seconds", sa.Float()),
        sa.Column("schema_synced_at", sa.DateTime()),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )

    op.create_table(
        "generation_job",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("external_id", sa.String(length=128)),
        sa.Column(
            "model_identifier",
            sa.String(length=128),
            sa.ForeignKey("model_route.identifier"),
            nullable=False,
        ),
        sa.Column("input_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("output_json", sa.Text()),
        sa.Column("error", sa.Text()),
        sa.Column("metrics_json", sa.Text()),
        sa.Column(
            "submitted_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("started_at", sa.DateTime()),
        sa.Column("completed_at", sa.DateTime()),
        sa.Column("duration_seconds", sa.Float()),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=64)),
        sa.Column("field_id", sa.String(length=64)),
        sa.Column("webhook_url", sa.String(length=512)),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index(
        "ix_generation_job_external_id", "generation_job", ["external_id"], unique=True
    )
    op.create_index("ix_generation_job_model_identifier", "generation_job", ["model_identifier"])
    op.create_index("ix_generation_job_status", "generation_job", ["status"])

    op.create_table(
        "media_descriptor",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "job_id",
            sa.String(length=64),
            sa.ForeignKey("generation_job.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("ordinal", sa.Integer(), nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("format", sa.String(length=16), nullable=False, server_default="unknown"),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.UniqueConstraint("job_id", "ordinal", name="uq_media_descriptor_job_ordinal"),
    )
    op.create_index("ix_media_descriptor_job_id", "media_descriptor", ["job_id"])


def downgrade() -> None:
    op.drop_index("ix_media_descriptor_job_id", table_name="media_descriptor")
    op.drop_table("media_descriptor")
    op.drop_index("ix_generation_job_status", table_name="generation_job")
    op.drop_index("ix_generation_job_model_identifier", table_name="generation_job")
    op.drop_index("ix_generation_job_external_id", table_name="generation_job")
    op.drop_table("generation_job")
    op.drop_table("model_route")
