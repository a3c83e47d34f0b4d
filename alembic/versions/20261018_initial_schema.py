"""Create users, sessions, password resets and the per-category asset tables.

Revision ID: 20261018_initial_schema
Revises: None
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.sql import func
from sqlalchemy.dialects import postgresql

from asset_tracker.categories import CATEGORIES


revision = "20261018_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_type(bind):
    if bind.dialect.name == "postgresql":
        return postgresql.UUID(as_uuid=True)
    return sa.String(36)


def _create_asset_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("serial_number", sa.String(length=128), nullable=True),
        sa.Column("employee_name", sa.String(length=256), nullable=True),
        sa.Column("qr_code", sa.Text(), nullable=True),
        sa.Column("barcode", sa.Text(), nullable=True),
        sa.Column("submitted_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    )
    op.create_index(f"ix_{name}_created_at", name, ["created_at"])


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    if "users" not in tables:
        op.create_table(
            "users",
            sa.Column("id", _uuid_type(bind), primary_key=True),
            sa.Column("username", sa.String(length=64), nullable=False),
            sa.Column("role", sa.String(length=32), nullable=False),
            sa.Column("password_hash", sa.String(length=256), nullable=False),
            sa.Column("email", sa.String(length=256), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
            sa.UniqueConstraint("username", name="uq_users_username"),
        )

    if "password_resets" not in tables:
        op.create_table(
            "password_resets",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("username", sa.String(length=64), nullable=False),
            sa.Column("token_hash", sa.String(length=64), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
            sa.ForeignKeyConstraint(["username"], ["users.username"], ondelete="CASCADE"),
            sa.UniqueConstraint("username", name="uq_password_resets_username"),
            sa.UniqueConstraint("token_hash", name="uq_password_resets_token_hash"),
        )

    if "user_sessions" not in tables:
        op.create_table(
            "user_sessions",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("username", sa.String(length=64), nullable=False),
            sa.Column("role", sa.String(length=32), nullable=False),
            sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_user_sessions_expires_at", "user_sessions", ["expires_at"])

    for name in CATEGORIES:
        if name not in tables:
            _create_asset_table(name)

    if bind.dialect.name == "postgresql":
        # Refresh updated_at on raw SQL updates too, not only ORM ones.
        op.execute(
            """
            CREATE OR REPLACE FUNCTION update_updated_at_column()
            RETURNS TRIGGER AS $$
            BEGIN
              NEW.updated_at = NOW();
              RETURN NEW;
            END;
            $$ language 'plpgsql';
            """
        )
        for name in CATEGORIES:
            op.execute(f"DROP TRIGGER IF EXISTS update_{name}_updated_at ON {name}")
            op.execute(
                f"CREATE TRIGGER update_{name}_updated_at BEFORE UPDATE ON {name} "
                "FOR EACH ROW EXECUTE PROCEDURE update_updated_at_column()"
            )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    for name in CATEGORIES:
        if name in tables:
            if bind.dialect.name == "postgresql":
                op.execute(f"DROP TRIGGER IF EXISTS update_{name}_updated_at ON {name}")
            op.drop_table(name)
    if bind.dialect.name == "postgresql":
        op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")
    for name in ("user_sessions", "password_resets", "users"):
        if name in tables:
            op.drop_table(name)
