"""Tests for tenantable.repository."""

from __future__ import annotations

import pytest
from sqlalchemy.pool import StaticPool

from tenantable.db import Base, make_engine, make_session_factory
from tenantable.models import TenantRow
from tenantable.repository import (
    InMemoryTenantRepository,
    SqlTenantRepository,
    TenantRepository,
)
from tenantable.tenant import TenantRecord


@pytest.fixture
def engine():
    engine = make_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_repository(engine) -> SqlTenantRepository:
    factory = make_session_factory(engine)
    with factory() as session:
        session.add_all(
            [
                TenantRow(
                    id=1,
                    name="School Alpha",
                    subdomain="school-alpha",
                    domain="alpha.edu",
                    settings={"theme": "dark"},
                ),
                TenantRow(id=2, name="School Beta", subdomain="school-beta"),
                TenantRow(id=3, name="School Closed", subdomain="school-closed", is_active=False),
            ]
        )
        session.commit()
    return SqlTenantRepository.from_engine(engine)


class TestInMemoryRepository:

    def test_satisfies_protocol(self, repository):
        assert isinstance(repository, TenantRepository)

    def test_lookups(self, repository, alpha, beta):
        assert repository.find_by_id(1) is alpha
        assert repository.find_by_subdomain("school-beta") is beta
        assert repository.find_by_domain("ALPHA.edu") is alpha

    def test_misses(self, repository):
        assert repository.find_by_id(99) is None
        assert repository.find_by_subdomain("ghost") is None
        assert repository.find_by_domain("ghost.org") is None

    def test_list_filters(self, repository):
        assert [t.id for t in repository.list_tenants()] == [1, 2, 3]
        assert [t.id for t in repository.list_tenants(active=True)] == [1, 2]
        assert [t.id for t in repository.list_tenants(active=False)] == [3]

    def test_add(self):
        repo = InMemoryTenantRepository()
        repo.add(TenantRecord(id=5, name="Five"))
        assert len(repo) == 1
        assert repo.find_by_id(5).name == "Five"


class TestSqlRepository:

    def test_satisfies_protocol(self, sql_repository):
        assert isinstance(sql_repository, TenantRepository)

    def test_find_by_id(self, sql_repository):
        tenant = sql_repository.find_by_id(1)
        assert isinstance(tenant, TenantRecord)
        assert tenant.name == "School Alpha"
        assert tenant.settings == {"theme": "dark"}
        assert tenant.is_active is True

    def test_find_by_subdomain(self, sql_repository):
        assert sql_repository.find_by_subdomain("school-beta").id == 2
        assert sql_repository.find_by_subdomain("ghost") is None

    def test_find_by_domain_case_insensitive(self, sql_repository):
        assert sql_repository.find_by_domain("Alpha.EDU").id == 1
        assert sql_repository.find_by_domain("ghost.org") is None

    def test_inactive_is_returned(self, sql_repository):
        tenant = sql_repository.find_by_id(3)
        assert tenant is not None
        assert tenant.is_active is False

    def test_list_tenants(self, sql_repository):
        assert [t.id for t in sql_repository.list_tenants()] == [1, 2, 3]
        assert [t.id for t in sql_repository.list_tenants(active=True)] == [1, 2]
        assert [t.id for t in sql_repository.list_tenants(active=False)] == [3]

    def test_missing_id(self, sql_repository):
        assert sql_repository.find_by_id(404) is None

    def test_null_settings_decoded_as_empty(self, engine):
        factory = make_session_factory(engine)
        with factory() as session:
            session.add(TenantRow(id=9, name="Nine", settings=None))
            session.commit()
        assert SqlTenantRepository.from_engine(engine).find_by_id(9).settings == {}
