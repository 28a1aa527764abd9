"""Initial schema.

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

Creates all tables for letter tracking:
- accounts (login credentials)
- departments (1:1 with accounts)
- couriers
- outgoing_letters
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Apply migration: Initial schema."""
    # Create enum types first
    account_role = postgresql.ENUM(
        "super_admin", "rd_department", "other_department", name="account_role", create_type=False
    )
    account_role.create(op.get_bind(), checkfirst=True)

    record_status = postgresql.ENUM("active", "inactive", name="record_status", create_type=False)
    record_status.create(op.get_bind(), checkfirst=True)

    letter_priority = postgresql.ENUM(
        "high", "medium", "low", name="letter_priority", create_type=False
    )
    letter_priority.create(op.get_bind(), checkfirst=True)

    letter_status = postgresql.ENUM(
        "PENDING_DISPATCH",
        "DISPATCHED",
        "DELIVERED",
        "RETURNED",
        name="letter_status",
        create_type=False,
    )
    letter_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "accounts",
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("password_digest", sa.String(255), nullable=False),
        sa.Column("role", account_role, nullable=False),
        sa.PrimaryKeyConstraint("account_id", name=op.f("pk_accounts")),
        sa.UniqueConstraint("username", name=op.f("uq_accounts_username")),
    )

    op.create_table(
        "departments",
        sa.Column(
            "department_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("head", sa.String(255), nullable=False),
        sa.Column("contact", sa.String(255), nullable=False),
        sa.Column("status", record_status, nullable=False),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        # Deferred so the account can be deleted before its department
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.account_id"],
            name=op.f("fk_departments_account_id_accounts"),
            deferrable=True,
            initially="DEFERRED",
        ),
        sa.PrimaryKeyConstraint("department_id", name=op.f("pk_departments")),
        sa.UniqueConstraint("account_id", name=op.f("uq_departments_account_id")),
    )

    op.create_table(
        "couriers",
        sa.Column(
            "courier_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.Column("service_name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("contact_person", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(100), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("status", record_status, nullable=False),
        sa.PrimaryKeyConstraint("courier_id", name=op.f("pk_couriers")),
        sa.UniqueConstraint("code", name=op.f("uq_couriers_code")),
    )

    op.create_table(
        "outgoing_letters",
        sa.Column(
            "letter_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.Column("from_department", sa.String(255), nullable=False),
        sa.Column("to", sa.String(255), nullable=False),
        sa.Column("priority", letter_priority, nullable=False),
        sa.Column("subject", sa.String(500), nullable=True),
        sa.Column("qr_code", sa.String(255), nullable=False),
        sa.Column("courier_service_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", letter_status, nullable=False),
        sa.Column("dispatched_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("image_ref", sa.String(500), nullable=True),
        sa.ForeignKeyConstraint(
            ["courier_service_id"],
            ["couriers.courier_id"],
            name=op.f("fk_outgoing_letters_courier_service_id_couriers"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("letter_id", name=op.f("pk_outgoing_letters")),
        sa.UniqueConstraint("qr_code", name=op.f("uq_outgoing_letters_qr_code")),
    )
    op.create_index(
        "ix_outgoing_letters_from_department",
        "outgoing_letters",
        ["from_department"],
        unique=False,
    )
    op.create_index("ix_outgoing_letters_status", "outgoing_letters", ["status"], unique=False)
    op.create_index(
        "ix_outgoing_letters_created_at", "outgoing_letters", ["created_at"], unique=False
    )


def downgrade() -> None:
    """Revert migration: Initial schema."""
    # Drop tables in reverse order (respecting foreign key dependencies)
    op.drop_table("outgoing_letters")
    op.drop_table("couriers")
    op.drop_table("departments")
    op.drop_table("accounts")

    op.execute("DROP TYPE IF EXISTS letter_status")
    op.execute("DROP TYPE IF EXISTS letter_priority")
    op.execute("DROP TYPE IF EXISTS record_status")
    op.execute("DROP TYPE IF EXISTS account_role")
