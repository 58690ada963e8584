"""Initial schema: users, processes, documents, decisions, audit_events

Revision ID: 0001
Revises: None
Create Date: 2026-10-19

On PostgreSQL, triggers make audit_events and decisions append-only.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

IMMUTABLE_TABLES = ("audit_events", "decisions")


def upgrade() -> None:
    """Create all tables."""

    # --- users (no FK deps) ---
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255)),
        sa.Column("national_id", sa.String(20), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("national_id", name="uq_users_national_id"),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])

    # --- processes (FK -> users) ---
    op.create_table(
        "processes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("state", sa.String(50), nullable=False, server_default="draft"),
        sa.Column("beneficiary_id", sa.Uuid(), nullable=False),
        sa.Column("landlord_id", sa.Uuid(), nullable=True),
        sa.Column("created_by_id", sa.Uuid(), nullable=True),
        sa.Column("form", sa.JSON(), nullable=True),
        sa.Column("pdf_ref", sa.String(500), nullable=True),
        sa.Column("pdf_hash", sa.String(64), nullable=True),
        sa.Column("pdf_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("signed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("signed_by_id", sa.Uuid(), nullable=True),
        sa.Column("signed_at", sa.DateTime(), nullable=True),
        sa.Column("signature_hash", sa.String(64), nullable=True),
        sa.Column("signature_ip", sa.String(45), nullable=True),
        sa.Column("signature_user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("closed_by_id", sa.Uuid(), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_processes"),
        sa.UniqueConstraint("code", name="uq_processes_code"),
        sa.ForeignKeyConstraint(["beneficiary_id"], ["users.id"], name="fk_processes_beneficiary_id_users"),
        sa.ForeignKeyConstraint(["landlord_id"], ["users.id"], name="fk_processes_landlord_id_users"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], name="fk_processes_created_by_id_users"),
        sa.ForeignKeyConstraint(["signed_by_id"], ["users.id"], name="fk_processes_signed_by_id_users"),
        sa.ForeignKeyConstraint(["closed_by_id"], ["users.id"], name="fk_processes_closed_by_id_users"),
    )
    op.create_index("ix_processes_code", "processes", ["code"])
    op.create_index("ix_processes_state", "processes", ["state"])
    op.create_index("ix_processes_beneficiary_id", "processes", ["beneficiary_id"])
    op.create_index("ix_processes_landlord_id", "processes", ["landlord_id"])
    op.create_index("ix_processes_created_at", "processes", ["created_at"])

    # --- process_code_counters (no FK deps) ---
    op.create_table(
        "process_code_counters",
        sa.Column("year", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("year", name="pk_process_code_counters"),
    )

    # --- pdf_history (FK -> processes, users) ---
    op.create_table(
        "pdf_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("process_id", sa.Uuid(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("artifact_ref", sa.String(500), nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("created_by_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_pdf_history"),
        sa.UniqueConstraint("process_id", "version", name="uq_pdf_history_process_version"),
        sa.ForeignKeyConstraint(["process_id"], ["processes.id"], name="fk_pdf_history_process_id_processes"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], name="fk_pdf_history_created_by_id_users"),
    )
    op.create_index("ix_pdf_history_process_id", "pdf_history", ["process_id"])

    # --- documents (FK -> processes, users) ---
    op.create_table(
        "documents",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("process_id", sa.Uuid(), nullable=False),
        sa.Column("catalog_type", sa.String(100), nullable=False),
        sa.Column("original_filename", sa.String(255), nullable=False),
        sa.Column("stored_ref", sa.String(500), nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("validation_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("validated_by_id", sa.Uuid(), nullable=True),
        sa.Column("validated_at", sa.DateTime(), nullable=True),
        sa.Column("uploaded_by_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_documents"),
        sa.UniqueConstraint("process_id", "catalog_type", "version", name="uq_documents_type_version"),
        sa.ForeignKeyConstraint(["process_id"], ["processes.id"], name="fk_documents_process_id_processes"),
        sa.ForeignKeyConstraint(["uploaded_by_id"], ["users.id"], name="fk_documents_uploaded_by_id_users"),
        sa.ForeignKeyConstraint(["validated_by_id"], ["users.id"], name="fk_documents_validated_by_id_users"),
    )
    op.create_index("ix_documents_process_id", "documents", ["process_id"])
    op.create_index("ix_documents_created_at", "documents", ["created_at"])
    op.create_index(
        "uq_documents_one_active_per_type",
        "documents",
        ["process_id", "catalog_type"],
        unique=True,
        sqlite_where=sa.text("active = 1"),
        postgresql_where=sa.text("active"),
    )

    # --- document_downloads (FK -> documents, users) ---
    op.create_table(
        "document_downloads",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_document_downloads"),
        sa.ForeignKeyConstraint(
            ["document_id"], ["documents.id"],
            name="fk_document_downloads_document_id_documents", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_document_downloads_user_id_users"),
    )
    op.create_index("ix_document_downloads_document_id", "document_downloads", ["document_id"])

    # --- decisions (FK -> processes, users) ---
    op.create_table(
        "decisions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("process_id", sa.Uuid(), nullable=False),
        sa.Column("from_state", sa.String(50), nullable=False),
        sa.Column("to_state", sa.String(50), nullable=False),
        sa.Column("approved", sa.Boolean(), nullable=False),
        sa.Column("rationale", sa.Text(), nullable=True),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("actor_role", sa.String(50), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_decisions"),
        sa.ForeignKeyConstraint(["process_id"], ["processes.id"], name="fk_decisions_process_id_processes"),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], name="fk_decisions_actor_id_users"),
    )
    op.create_index("ix_decisions_process_id", "decisions", ["process_id"])
    op.create_index("ix_decisions_actor_id", "decisions", ["actor_id"])
    op.create_index("ix_decisions_created_at", "decisions", ["created_at"])

    # --- audit_events (FK -> processes, users) ---
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("process_id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column("actor_role", sa.String(50), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_audit_events"),
        sa.ForeignKeyConstraint(["process_id"], ["processes.id"], name="fk_audit_events_process_id_processes"),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], name="fk_audit_events_actor_id_users"),
    )
    op.create_index("ix_audit_events_process_id", "audit_events", ["process_id"])
    op.create_index("ix_audit_events_kind", "audit_events", ["kind"])
    op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"])
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])

    if op.get_bind().dialect.name != "postgresql":
        return

    # Trigger function rejecting UPDATE and DELETE on append-only tables
    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_ledger_mutation()
        RETURNS TRIGGER AS $trigger$
        BEGIN
            RAISE EXCEPTION '% rows are immutable. Record ID: %', TG_TABLE_NAME, OLD.id;
        END;
        $trigger$ LANGUAGE plpgsql;
    """)

    for table in IMMUTABLE_TABLES:
        op.execute(f"""
            CREATE TRIGGER {table}_prevent_update
            BEFORE UPDATE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION prevent_ledger_mutation();
        """)
        op.execute(f"""
            CREATE TRIGGER {table}_prevent_delete
            BEFORE DELETE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION prevent_ledger_mutation();
        """)


def downgrade() -> None:
    """Drop all tables."""

    if op.get_bind().dialect.name == "postgresql":
        for table in IMMUTABLE_TABLES:
            op.execute(f"DROP TRIGGER IF EXISTS {table}_prevent_update ON {table};")
            op.execute(f"DROP TRIGGER IF EXISTS {table}_prevent_delete ON {table};")
        op.execute("DROP FUNCTION IF EXISTS prevent_ledger_mutation();")

    op.drop_table("audit_events")
    op.drop_table("decisions")
    op.drop_table("document_downloads")
    op.drop_index("uq_documents_one_active_per_type", table_name="documents")
    op.drop_table("documents")
    op.drop_table("pdf_history")
    op.drop_table("process_code_counters")
    op.drop_table("processes")
    op.drop_table("users")
