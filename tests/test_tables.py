"""Tests for tenantable.tables."""

from __future__ import annotations

import pytest

from tenantable.exceptions import NoTenantContextError
from tenantable.tables import TableNameResolver, compile_table_pattern


class TestResolve:

    def test_default_template(self):
        resolver = TableNameResolver().set_tenant(7)
        assert resolver.resolve("students") == "tenant_7_students"

    def test_global_tables_unchanged(self):
        resolver = TableNameResolver().set_tenant(7)
        for name in ("tenants", "migrations", "alembic_version"):
            assert resolver.resolve(name) == name

    def test_global_tables_without_tenant(self):
        assert TableNameResolver().resolve("tenants") == "tenants"

    def test_without_tenant_raises(self):
        with pytest.raises(NoTenantContextError):
            TableNameResolver().resolve("students")

    def test_after_clear_raises(self):
        resolver = TableNameResolver().set_tenant(1)
        resolver.resolve("students")
        resolver.clear()
        with pytest.raises(NoTenantContextError):
            resolver.resolve("students")

    def test_tenant_change_clears_cache(self):
        resolver = TableNameResolver().set_tenant(1)
        assert resolver.resolve("students") == "tenant_1_students"
        resolver.set_tenant(2)
        assert resolver.resolve("students") == "tenant_2_students"

    def test_template_change_clears_cache(self):
        resolver = TableNameResolver().set_tenant(3)
        resolver.resolve("students")
        resolver.set_template("{table}__t{id}")
        assert resolver.resolve("students") == "students__t3"

    def test_template_requires_placeholders(self):
        with pytest.raises(ValueError):
            TableNameResolver(template="tenant_{id}")
        with pytest.raises(ValueError):
            TableNameResolver().set_template("{table}")

    def test_resolve_many(self):
        resolver = TableNameResolver().set_tenant(4)
        assert resolver.resolve_many(["students", "tenants"]) == {
            "students": "tenant_4_students",
            "tenants": "tenants",
        }

    def test_large_ids_not_truncated(self):
        big = 10**20
        resolver = TableNameResolver().set_tenant(big)
        assert resolver.resolve("x") == f"tenant_{big}_x"
        assert resolver.extract_tenant_id(resolver.resolve("x")) == big


class TestGlobalTables:

    def test_add_global_table(self):
        resolver = TableNameResolver().set_tenant(1)
        assert resolver.resolve("countries") == "tenant_1_countries"
        resolver.add_global_table("countries")
        assert resolver.is_global_table("countries")
        assert resolver.resolve("countries") == "countries"

    def test_add_is_idempotent(self):
        resolver = TableNameResolver(global_tables=["tenants"])
        resolver.add_global_table("tenants")
        assert resolver.global_tables == ("tenants",)


class TestExtract:

    def test_round_trip(self):
        resolver = TableNameResolver()
        for tenant_id in (1, 9, 10, 12345):
            resolver.set_tenant(tenant_id)
            for name in ("students", "class_rooms", "a"):
                assert resolver.extract_tenant_id(resolver.resolve(name)) == tenant_id

    def test_non_matching(self):
        resolver = TableNameResolver()
        assert resolver.extract_tenant_id("students") is None
        assert resolver.extract_tenant_id("tenant_x_students") is None
        assert resolver.extract_tenant_id("tenant_1_") is None

    def test_literal_parts_escaped(self):
        resolver = TableNameResolver(template="t.{id}.{table}")
        assert resolver.extract_tenant_id("t.5.users") == 5
        assert resolver.extract_tenant_id("tx5xusers") is None

    def test_repeated_id_must_agree(self):
        pattern = compile_table_pattern("t{id}_{table}_{id}")
        assert pattern.match("t3_users_3")
        assert pattern.match("t3_users_4") is None

    def test_tenant_ids_in(self):
        resolver = TableNameResolver()
        names = ["tenants", "tenant_2_students", "tenant_1_students", "tenant_2_grades", "misc"]
        assert resolver.tenant_ids_in(names) == [1, 2]


class TestTenantTables:

    def test_requires_tenant(self):
        with pytest.raises(NoTenantContextError):
            TableNameResolver().tenant_tables(["students"])

    def test_lists_physical_names(self):
        resolver = TableNameResolver().set_tenant(5)
        assert resolver.tenant_tables(["a", "tenants"]) == ["tenant_5_a", "tenants"]
