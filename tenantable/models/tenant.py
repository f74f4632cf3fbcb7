"""Tenant registry SQLAlchemy model.

Provides the database-backed row for the global ``tenants`` table:

- **TenantRow**: one row per tenant, read by every request through
  :class:`tenantable.repository.SqlTenantRepository`.
- **TenantScopedMixin**: column mixin that adds the ``tenant_id`` column
  used by :class:`tenantable.scoping.TenantScopedRepository`.

The ``tenants`` table is on the global allow-list of the table-name
resolver and is never prefixed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tenantable.db import Base
from tenantable.tenant import TenantRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Mixin
# ---------------------------------------------------------------------------


class TenantScopedMixin:
    """Column mixin that adds an indexed ``tenant_id`` foreign key.

    Apply to any model stored in shared tables::

        class Student(Base, TenantScopedMixin):
            __tablename__ = "students"
            ...
    """

    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )


# ---------------------------------------------------------------------------
# TenantRow
# ---------------------------------------------------------------------------


class TenantRow(Base):
    """Row in the global tenant registry.

    Attributes
    ----------
    id:          Integer primary key, never reused.
    name:        Display name.
    subdomain:   Unique subdomain (nullable).
    domain:      Unique custom hostname (nullable).
    is_active:   Disabled tenants fail resolution.
    settings:    Arbitrary JSON configuration.
    database_*:  Connection fields for an optional dedicated database.
    """

    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    subdomain: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    domain: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    settings: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    database_host: Mapped[str | None] = mapped_column(String(255), nullable=True)
    database_username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    database_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    database_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def to_record(self) -> TenantRecord:
        return TenantRecord(
            id=self.id,
            name=self.name or "",
            subdomain=self.subdomain,
            domain=self.domain,
            is_active=bool(self.is_active),
            settings=self.settings or {},
            database_host=self.database_host,
            database_username=self.database_username,
            database_password=self.database_password,
            database_name=self.database_name,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
