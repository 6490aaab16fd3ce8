"""initial_schema

Revision ID: 3c9e1f0b7a21
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the users, grow_cycles and grow_programs tables and the user_role /
cycle_status PostgreSQL enum types.  Stage lists, pin bindings and stage
history are JSONB document columns on grow_cycles.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c9e1f0b7a21"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# ── Enum type names (PostgreSQL CREATE TYPE) ────────────────────────────────
ENUM_USER_ROLE = postgresql.ENUM(
    "owner", "admin", "member", "viewer", name="user_role", create_type=False
)
ENUM_CYCLE_STATUS = postgresql.ENUM(
    "active", "paused", "completed", "aborted", name="cycle_status", create_type=False
)


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("uuid_generate_v4()"),
        nullable=False,
    )


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
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. Create enum types ────────────────────────────────────────────
    ENUM_USER_ROLE.create(op.get_bind(), checkfirst=True)
    ENUM_CYCLE_STATUS.create(op.get_bind(), checkfirst=True)

    # ── 2. Auth ─────────────────────────────────────────────────────────

    # users
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("organization_id", sa.String(128), nullable=True),
        sa.Column(
            "role",
            ENUM_USER_ROLE,
            server_default=sa.text("'viewer'"),
            nullable=False,
        ),
        sa.Column(
            "is_active",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_organization_id", "users", ["organization_id"])

    # ── 3. Grow cycles ──────────────────────────────────────────────────

    # grow_cycles
    op.create_table(
        "grow_cycles",
        _uuid_pk(),
        sa.Column("module_id", sa.String(128), nullable=False),
        sa.Column("organization_id", sa.String(128), nullable=True),
        sa.Column("program_id", sa.String(128), nullable=True),
        sa.Column("program_name", sa.String(255), nullable=False),
        sa.Column("crop_type", sa.String(100), nullable=True),
        sa.Column("total_days", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            ENUM_CYCLE_STATUS,
            server_default=sa.text("'active'"),
            nullable=False,
        ),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("paused_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("stages", postgresql.JSONB(), nullable=False),
        sa.Column(
            "pin_bindings",
            postgresql.JSONB(),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "stage_history",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "daily_log",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("harvest", postgresql.JSONB(), nullable=True),
        sa.Column(
            "version",
            sa.Integer(),
            server_default=sa.text("1"),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_grow_cycles_module_status", "grow_cycles", ["module_id", "status"]
    )

    # grow_programs
    op.create_table(
        "grow_programs",
        _uuid_pk(),
        sa.Column("organization_id", sa.String(128), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("crop_type", sa.String(100), nullable=False),
        sa.Column("description", sa.String(2048), nullable=True),
        sa.Column("total_days", sa.Integer(), nullable=False),
        sa.Column("stages", postgresql.JSONB(), nullable=False),
        sa.Column("image_emoji", sa.String(16), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_grow_programs_organization_id", "grow_programs", ["organization_id"]
    )


def downgrade() -> None:
    # ── Drop tables in reverse dependency order ─────────────────────────
    op.drop_table("grow_programs")
    op.drop_table("grow_cycles")
    op.drop_table("users")

    # ── Drop enum types ─────────────────────────────────────────────────
    ENUM_CYCLE_STATUS.drop(op.get_bind(), checkfirst=True)
    ENUM_USER_ROLE.drop(op.get_bind(), checkfirst=True)
