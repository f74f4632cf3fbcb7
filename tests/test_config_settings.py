"""Tests for tenantable.config.settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError


class TestSettings:
    """Test the Settings pydantic-settings class."""

    def _make(self, **kwargs):
        """Create a Settings instance from explicit values."""
        from tenantable.config.settings import Settings
        return Settings(**kwargs)

    # -- defaults --

    def test_defaults(self):
        s = self._make()
        assert s.TENANTABLE_BASE_DOMAIN == "localhost"
        assert s.TENANTABLE_IDENTIFICATION == ["subdomain"]
        assert s.TENANTABLE_PATH_SEGMENT == 1
        assert s.TENANTABLE_TENANT_HEADER == "X-Tenant"
        assert s.TENANTABLE_TENANT_QUERY_PARAM == "tenant"
        assert s.TENANTABLE_PROTECTED_FIELDS == ["tenant_id", "school_id", "org_id"]
        assert s.TENANTABLE_REQUIRE_TENANT is True
        assert s.TENANTABLE_THROW_EXCEPTIONS is False
        assert s.TENANTABLE_TABLE_FORMAT == "tenant_{id}_{table}"
        assert "tenants" in s.TENANTABLE_GLOBAL_TABLES
        assert s.TENANTABLE_ADAPTERS == ["table", "cache", "storage", "session", "logging", "settings"]
        assert s.TENANTABLE_STORAGE_ROOT == Path("writable")
        assert s.TENANTABLE_REDIS_DB_PER_TENANT is False
        assert s.TENANTABLE_REDIS_MAX_DATABASE == 15
        assert s.TENANTABLE_DATABASE_URL.startswith("sqlite:///")

    # -- _known_strategies validator --

    def test_strategy_chain_accepted(self):
        s = self._make(TENANTABLE_IDENTIFICATION=["request", "domain_or_subdomain"])
        assert s.TENANTABLE_IDENTIFICATION == ["request", "domain_or_subdomain"]

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValidationError):
            self._make(TENANTABLE_IDENTIFICATION=["cookie"])

    def test_empty_strategy_list_rejected(self):
        with pytest.raises(ValidationError):
            self._make(TENANTABLE_IDENTIFICATION=[])

    # -- _known_adapters validator --

    def test_redis_adapter_opt_in(self):
        s = self._make(TENANTABLE_ADAPTERS=["table", "redis"])
        assert s.TENANTABLE_ADAPTERS == ["table", "redis"]

    def test_unknown_adapter_rejected(self):
        with pytest.raises(ValidationError):
            self._make(TENANTABLE_ADAPTERS=["table", "mailer"])

    def test_duplicate_adapter_rejected(self):
        with pytest.raises(ValidationError):
            self._make(TENANTABLE_ADAPTERS=["cache", "cache"])

    # -- _format_has_placeholders validator --

    def test_table_format_needs_both_placeholders(self):
        with pytest.raises(ValidationError):
            self._make(TENANTABLE_TABLE_FORMAT="tenant_{id}")
        with pytest.raises(ValidationError):
            self._make(TENANTABLE_TABLE_FORMAT="{table}_x")

    # -- _segment_is_positive validator --

    def test_path_segment_is_one_based(self):
        with pytest.raises(ValidationError):
            self._make(TENANTABLE_PATH_SEGMENT=0)

    # -- _normalize_domain validator --

    def test_base_domain_normalized(self):
        s = self._make(TENANTABLE_BASE_DOMAIN="  .Example.COM ")
        assert s.TENANTABLE_BASE_DOMAIN == "example.com"

    # -- _blank_disables validator --

    def test_blank_header_disables(self):
        s = self._make(TENANTABLE_TENANT_HEADER="", TENANTABLE_TENANT_QUERY_PARAM="  ")
        assert s.TENANTABLE_TENANT_HEADER is None
        assert s.TENANTABLE_TENANT_QUERY_PARAM is None

    # -- environment --

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("TENANTABLE_BASE_DOMAIN", "schools.io")
        monkeypatch.setenv("TENANTABLE_IDENTIFICATION", '["path", "subdomain"]')
        monkeypatch.setenv("TENANTABLE_REQUIRE_TENANT", "false")
        s = self._make()
        assert s.TENANTABLE_BASE_DOMAIN == "schools.io"
        assert s.TENANTABLE_IDENTIFICATION == ["path", "subdomain"]
        assert s.TENANTABLE_REQUIRE_TENANT is False

    def test_module_singleton(self):
        from tenantable.config import Settings, settings
        assert isinstance(settings, Settings)
