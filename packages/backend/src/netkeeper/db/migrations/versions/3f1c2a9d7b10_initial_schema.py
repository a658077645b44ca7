"""Initial schema: admin identity, networks, access keys, audit events

The single-admin rule is the uq_users_admin_slot constraint plus the
check pinning admin_slot to 1. Access keys cascade from their network,
and key_consumptions cascade from their key.

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-18 09:12:44.118201
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

json_type = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("username", sa.String(64), primary_key=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("admin_slot", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("admin_slot", name="uq_users_admin_slot"),
        sa.CheckConstraint("admin_slot = 1", name="ck_users_admin_slot"),
    )

    op.create_table(
        "networks",
        sa.Column("netid", sa.String(32), primary_key=True),
        sa.Column("addressrange", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "access_keys",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "network_id",
            sa.String(32),
            sa.ForeignKey("networks.netid", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("value", sa.String(128), nullable=False, unique=True),
        sa.Column("uses", sa.Integer(), nullable=False),
        sa.Column("uses_remaining", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("network_id", "name", name="uq_access_keys_network_name"),
        sa.CheckConstraint("uses_remaining >= 0", name="ck_access_keys_uses_remaining"),
    )
    op.create_index("ix_access_keys_network", "access_keys", ["network_id"])

    op.create_table(
        "key_consumptions",
        sa.Column("attempt_id", sa.String(128), primary_key=True),
        sa.Column(
            "access_key_id",
            sa.Integer(),
            sa.ForeignKey("access_keys.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_key_consumptions_key", "key_consumptions", ["access_key_id"])

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("stream_id", sa.String(100), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("data", json_type, nullable=False),
        sa.Column("meta", json_type, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_events_stream", "events", ["stream_id", "id"])


def downgrade() -> None:
    op.drop_index("ix_events_stream", table_name="events")
    op.drop_table("events")
    op.drop_index("ix_key_consumptions_key", table_name="key_consumptions")
    op.drop_table("key_consumptions")
    op.drop_index("ix_access_keys_network", table_name="access_keys")
    op.drop_table("access_keys")
    op.drop_table("networks")
    op.drop_table("users")
