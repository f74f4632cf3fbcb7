"""
Tenant lookup contract and implementations.

The core only reads tenants. Every lookup is a synchronous point read and
returns ``None`` when nothing matches; turning a miss into
``TenantNotFoundError`` is the caller's decision (see
:mod:`tenantable.context`).

Example:
    repo = SqlTenantRepository.from_url("sqlite:///tenants.db")
    tenant = repo.find_by_subdomain("school-alpha")
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol, runtime_checkable

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, sessionmaker

from tenantable.db import make_engine, make_session_factory
from tenantable.models.tenant import TenantRow
from tenantable.tenant import TenantRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class TenantRepository(Protocol):
    """Read-only tenant lookups."""

    def find_by_id(self, tenant_id: int) -> TenantRecord | None: ...

    def find_by_subdomain(self, subdomain: str) -> TenantRecord | None: ...

    def find_by_domain(self, domain: str) -> TenantRecord | None: ...

    def list_tenants(self, active: bool | None = None) -> list[TenantRecord]: ...


class InMemoryTenantRepository:
    """Dictionary-backed repository for tests, fixtures and small deployments."""

    def __init__(self, tenants: Iterable[TenantRecord] = ()) -> None:
        self._tenants: dict[int, TenantRecord] = {}
        for tenant in tenants:
            self.add(tenant)

    def add(self, tenant: TenantRecord) -> TenantRecord:
        self._tenants[tenant.id] = tenant
        return tenant

    def find_by_id(self, tenant_id: int) -> TenantRecord | None:
        return self._tenants.get(tenant_id)

    def find_by_subdomain(self, subdomain: str) -> TenantRecord | None:
        for tenant in self._tenants.values():
            if tenant.subdomain is not None and tenant.subdomain == subdomain:
                return tenant
        return None

    def find_by_domain(self, domain: str) -> TenantRecord | None:
        domain = domain.lower()
        for tenant in self._tenants.values():
            if tenant.domain is not None and tenant.domain == domain:
                return tenant
        return None

    def list_tenants(self, active: bool | None = None) -> list[TenantRecord]:
        tenants = sorted(self._tenants.values(), key=lambda t: t.id)
        if active is None:
            return tenants
        return [t for t in tenants if t.is_active is active]

    def __len__(self) -> int:
        return len(self._tenants)


class SqlTenantRepository:
    """Repository over the ``tenants`` table using SQLAlchemy ORM sessions.

    Each lookup opens a short-lived session; no state is shared between
    units of work.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @classmethod
    def from_engine(cls, engine: Engine) -> "SqlTenantRepository":
        return cls(make_session_factory(engine))

    @classmethod
    def from_url(cls, url: str) -> "SqlTenantRepository":
        return cls.from_engine(make_engine(url))

    def _one(self, session: Session, stmt) -> TenantRecord | None:
        row = session.scalars(stmt).first()
        return row.to_record() if row is not None else None

    def find_by_id(self, tenant_id: int) -> TenantRecord | None:
        with self._session_factory() as session:
            row = session.get(TenantRow, tenant_id)
            return row.to_record() if row is not None else None

    def find_by_subdomain(self, subdomain: str) -> TenantRecord | None:
        with self._session_factory() as session:
            return self._one(session, select(TenantRow).where(TenantRow.subdomain == subdomain))

    def find_by_domain(self, domain: str) -> TenantRecord | None:
        with self._session_factory() as session:
            return self._one(session, select(TenantRow).where(TenantRow.domain == domain.lower()))

    def list_tenants(self, active: bool | None = None) -> list[TenantRecord]:
        stmt = select(TenantRow).order_by(TenantRow.id)
        if active is not None:
            stmt = stmt.where(TenantRow.is_active == active)
        with self._session_factory() as session:
            rows = session.scalars(stmt).all()
            logger.debug(f"Loaded {len(rows)} tenants (active={active})")
            return [row.to_record() for row in rows]
