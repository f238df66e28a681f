from __future__ import annotations

from alembic import op
import sqlalchemy as sa

from app.models.types import GUID, UTCDateTime

revision = "20251205_01"
down_revision = None
branch_labels = None
depends_on = None

CREDENTIAL_STATUSES = ("unpublished", "issued", "revoked", "deleted")
PROCESSING_OUTCOMES = ("success", "failed")


def upgrade() -> None:
    op.create_table(
        "credential_records",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("created_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("record_id", sa.String(length=255), nullable=True),
        sa.Column("owner_id", GUID(), nullable=False),
        sa.Column("issuer_name", sa.String(length=100), nullable=True),
        sa.Column("data_link", sa.String(length=1024), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=True),
        sa.Column("verified_at", UTCDateTime(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*CREDENTIAL_STATUSES, name="credentialstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("status_updated_at", UTCDateTime(), nullable=True),
    )
    op.create_index(op.f("ix_credential_records_record_id"), "credential_records", ["record_id"], unique=True)
    op.create_index(op.f("ix_credential_records_owner_id"), "credential_records", ["owner_id"], unique=False)
    op.create_index(op.f("ix_credential_records_status"), "credential_records", ["status"], unique=False)

    op.create_table(
        "reconciliation_checkpoints",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("created_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("job_name", sa.String(length=100), nullable=False),
        sa.Column("last_processed_to", UTCDateTime(), nullable=False),
    )
    op.create_index(
        op.f("ix_reconciliation_checkpoints_job_name"), "reconciliation_checkpoints", ["job_name"], unique=True
    )

    op.create_table(
        "credential_event_processing_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("record_id", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=50), nullable=True),
        sa.Column(
            "outcome",
            sa.Enum(*PROCESSING_OUTCOMES, name="processingoutcome", native_enum=False),
            nullable=False,
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("processed_at", UTCDateTime(), nullable=False),
        sa.Column("batch_from", UTCDateTime(), nullable=False),
        sa.Column("batch_to", UTCDateTime(), nullable=False),
        sa.Column("created_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        op.f("ix_credential_event_processing_log_record_id"),
        "credential_event_processing_log",
        ["record_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_credential_event_processing_log_event_type"),
        "credential_event_processing_log",
        ["event_type"],
        unique=False,
    )
    op.create_index(
        op.f("ix_credential_event_processing_log_outcome"),
        "credential_event_processing_log",
        ["outcome"],
        unique=False,
    )
    op.create_index(
        op.f("ix_credential_event_processing_log_processed_at"),
        "credential_event_processing_log",
        ["processed_at"],
        unique=False,
    )
    op.create_index(
        "ix_credential_event_processing_log_batch",
        "credential_event_processing_log",
        ["batch_from", "batch_to"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_credential_event_processing_log_batch", table_name="credential_event_processing_log")
    op.drop_index(
        op.f("ix_credential_event_processing_log_processed_at"), table_name="credential_event_processing_log"
    )
    op.drop_index(op.f("ix_credential_event_processing_log_outcome"), table_name="credential_event_processing_log")
    op.drop_index(
        op.f("ix_credential_event_processing_log_event_type"), table_name="credential_event_processing_log"
    )
    op.drop_index(
        op.f("ix_credential_event_processing_log_record_id"), table_name="credential_event_processing_log"
    )
    op.drop_table("credential_event_processing_log")
    op.drop_index(op.f("ix_reconciliation_checkpoints_job_name"), table_name="reconciliation_checkpoints")
    op.drop_table("reconciliation_checkpoints")
    op.drop_index(op.f("ix_credential_records_status"), table_name="credential_records")
    op.drop_index(op.f("ix_credential_records_owner_id"), table_name="credential_records")
    op.drop_index(op.f("ix_credential_records_record_id"), table_name="credential_records")
    op.drop_table("credential_records")
