"""SQLAlchemy ORM models — single source of truth for the database schema.

Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic migrations are generated from these models.

Invariants live in the schema, not in application code:
- users.admin_slot is UNIQUE and pinned to 1 → at most one admin row
- access_keys (network_id, name) is UNIQUE → key names are per-network
- access_keys.uses_remaining >= 0 → a key can never be over-consumed
- access_keys.network_id cascades → deleting a network removes its keys
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

ADMIN_SLOT = 1


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ══════════════════════════════════════════════════════════════
# Identity
# ══════════════════════════════════════════════════════════════


class Identity(Base):
    """The administrative identity. There is at most one.

    The admin_slot column is what enforces that: every row must carry
    the value 1 and the column is unique, so a second insert fails at
    the database no matter how concurrent bootstrap attempts interleave.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("admin_slot", name="uq_users_admin_slot"),
        CheckConstraint(f"admin_slot = {ADMIN_SLOT}", name="ck_users_admin_slot"),
    )

    username: Mapped[str] = mapped_column(String(64), primary_key=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    admin_slot: Mapped[int] = mapped_column(
        Integer, nullable=False, default=ADMIN_SLOT
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Networks + access keys
# ══════════════════════════════════════════════════════════════


class Network(Base):
    """A named virtual network with its address range."""

    __tablename__ = "networks"

    netid: Mapped[str] = mapped_column(String(32), primary_key=True)
    addressrange: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    access_keys: Mapped[list["AccessKey"]] = relationship(
        back_populates="network",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class AccessKey(Base):
    """A bounded-use enrollment credential scoped to one network.

    uses is the count the key was created with; uses_remaining only ever
    moves down, one conditional UPDATE at a time.
    """

    __tablename__ = "access_keys"
    __table_args__ = (
        UniqueConstraint("network_id", "name", name="uq_access_keys_network_name"),
        CheckConstraint("uses_remaining >= 0", name="ck_access_keys_uses_remaining"),
        Index("ix_access_keys_network", "network_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    network_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("networks.netid", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    uses: Mapped[int] = mapped_column(Integer, nullable=False)
    uses_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    network: Mapped["Network"] = relationship(back_populates="access_keys")


class KeyConsumption(Base):
    """One successful, idempotent consumption of an access key.

    Written in the same transaction as the decrement. The primary key on
    attempt_id means a retried attempt can never decrement twice.
    """

    __tablename__ = "key_consumptions"
    __table_args__ = (
        Index("ix_key_consumptions_key", "access_key_id"),
    )

    attempt_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    access_key_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("access_keys.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Audit trail
# ══════════════════════════════════════════════════════════════


class Event(Base):
    """Append-only audit log of lifecycle changes.

    Rows are written in the same transaction as the change they describe,
    so the log never claims something that was rolled back.
    """

    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_stream", "stream_id", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stream_id: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    meta: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
