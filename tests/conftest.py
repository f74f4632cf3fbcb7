"""Shared fixtures for the tenantable test suite."""

from __future__ import annotations

import pytest

from tenantable.config.settings import Settings
from tenantable.events import EventDispatcher
from tenantable.repository import InMemoryTenantRepository
from tenantable.tenant import TenantRecord


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Keep host env vars from leaking into base-domain and sweep logic."""
    monkeypatch.delenv("TENANT_BASE_DOMAIN", raising=False)
    monkeypatch.delenv("TENANTABLE_TENANT_ID", raising=False)


@pytest.fixture
def alpha() -> TenantRecord:
    return TenantRecord(
        id=1,
        name="School Alpha",
        subdomain="school-alpha",
        domain="alpha.edu",
        settings={"theme": "dark", "mail": {"from": "office@alpha.edu"}},
    )


@pytest.fixture
def beta() -> TenantRecord:
    return TenantRecord(id=2, name="School Beta", subdomain="school-beta")


@pytest.fixture
def closed() -> TenantRecord:
    return TenantRecord(id=3, name="School Closed", subdomain="school-closed", is_active=False)


@pytest.fixture
def repository(alpha, beta, closed) -> InMemoryTenantRepository:
    return InMemoryTenantRepository([alpha, beta, closed])


@pytest.fixture
def config(tmp_path) -> Settings:
    return Settings(
        TENANTABLE_BASE_DOMAIN="example.com",
        TENANTABLE_STORAGE_ROOT=tmp_path,
    )


@pytest.fixture
def events() -> EventDispatcher:
    dispatcher = EventDispatcher()
    dispatcher.keep_history = True
    return dispatcher
