"""Tests for tenantable.bootstrap (orchestrator and adapters)."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from tenantable.bootstrap import (
    CacheAdapter,
    LoggingAdapter,
    RedisAdapter,
    SessionAdapter,
    SettingsAdapter,
    StorageAdapter,
    SubsystemOrchestrator,
    TableAdapter,
    TenantAware,
    build_adapters,
    cache_key,
    current_cache_prefix,
)
from tenantable.bootstrap.adapters import flatten
from tenantable.context import TenantContext
from tenantable.events import TenancyEnded, TenancyInitialized
from tenantable.exceptions import NoTenantContextError, TenantNotFoundError
from tenantable.log_context import TenantLogFilter, get_log_context
from tenantable.tables import TableNameResolver


class RecordingAdapter:
    """Adapter that records its calls."""

    def __init__(self, name: str, calls: list, fail_boot: bool = False, fail_shutdown: bool = False):
        self.name = name
        self.calls = calls
        self.fail_boot = fail_boot
        self.fail_shutdown = fail_shutdown

    def boot(self, tenant_id, tenant):
        self.calls.append((self.name, "boot", tenant_id))
        if self.fail_boot:
            raise OSError(f"{self.name} exploded")

    def shutdown(self):
        self.calls.append((self.name, "shutdown"))
        if self.fail_shutdown:
            raise OSError(f"{self.name} shutdown exploded")


@pytest.fixture
def context():
    return TenantContext(base_domain="example.com")


@pytest.fixture
def calls():
    return []


@pytest.fixture
def orchestrator(context, repository, events, calls):
    orch = SubsystemOrchestrator(context, repository=repository, events=events)
    orch.register_adapter("first", RecordingAdapter("first", calls))
    orch.register_adapter("second", RecordingAdapter("second", calls))
    return orch


# ===========================================================================
# Orchestrator
# ===========================================================================

class TestOrchestratorBoot:

    def test_boot_runs_adapters_in_order(self, orchestrator, context, repository, calls, alpha):
        context.set_tenant_by_id(1, repository)
        orchestrator.boot()
        assert calls == [("first", "boot", 1), ("second", "boot", 1)]
        assert orchestrator.last_tenant_id == 1

    def test_boot_is_idempotent(self, orchestrator, context, repository, calls, events):
        context.set_tenant_by_id(1, repository)
        orchestrator.boot()
        orchestrator.boot()
        assert len(calls) == 2
        assert len([e for e in events.history if isinstance(e, TenancyInitialized)]) == 1

    def test_reboots_on_tenant_change(self, orchestrator, context, repository, calls):
        context.set_tenant_by_id(1, repository)
        orchestrator.boot()
        context.set_tenant_by_id(2, repository)
        orchestrator.boot()
        assert calls[-2:] == [("first", "boot", 2), ("second", "boot", 2)]
        assert orchestrator.last_tenant_id == 2

    def test_first_boot_without_tenant_is_noop(self, orchestrator, calls, events):
        orchestrator.boot()
        assert calls == []
        assert events.history == []

    def test_boot_after_tenant_cleared(self, orchestrator, context, repository, calls, events):
        context.set_tenant_by_id(1, repository)
        orchestrator.boot()
        context.clear()
        orchestrator.boot()
        assert calls[-2:] == [("first", "boot", None), ("second", "boot", None)]
        assert orchestrator.last_tenant_id is None
        initialized = [e for e in events.history if isinstance(e, TenancyInitialized)]
        assert len(initialized) == 1

    def test_emits_initialized(self, orchestrator, context, repository, events, alpha):
        context.set_tenant_by_id(1, repository)
        orchestrator.boot()
        assert events.history == [TenancyInitialized(tenant_id=1, tenant=alpha)]

    def test_failure_isolation(self, context, repository, calls, caplog):
        orch = SubsystemOrchestrator(context, repository=repository)
        orch.register_adapter("ok1", RecordingAdapter("ok1", calls))
        orch.register_adapter("broken", RecordingAdapter("broken", calls, fail_boot=True))
        orch.register_adapter("ok2", RecordingAdapter("ok2", calls))
        context.set_tenant_by_id(1, repository)

        with caplog.at_level(logging.ERROR):
            orch.boot()

        assert [c[0] for c in calls] == ["ok1", "broken", "ok2"]
        assert orch.get_errors() == {"broken": "broken exploded"}
        assert not orch.was_successful()
        assert orch.last_tenant_id == 1
        assert "broken" in caplog.text

    def test_errors_reset_on_next_boot(self, context, repository, calls):
        orch = SubsystemOrchestrator(context, repository=repository)
        broken = RecordingAdapter("broken", calls, fail_boot=True)
        orch.register_adapter("broken", broken)
        context.set_tenant_by_id(1, repository)
        orch.boot()
        broken.fail_boot = False
        context.set_tenant_by_id(2, repository)
        orch.boot()
        assert orch.was_successful()
        assert orch.get_errors() == {}

    def test_check_and_boot(self, orchestrator, context, repository, calls):
        orchestrator.check_and_boot()
        assert calls == []
        context.set_tenant_by_id(2, repository)
        orchestrator.check_and_boot()
        orchestrator.check_and_boot()
        assert calls == [("first", "boot", 2), ("second", "boot", 2)]


class TestBootForTenant:

    def test_forces_reboot_for_same_id(self, orchestrator, calls):
        orchestrator.boot_for_tenant(1)
        orchestrator.boot_for_tenant(1)
        assert calls.count(("first", "boot", 1)) == 2

    def test_unknown_tenant(self, orchestrator, calls):
        with pytest.raises(TenantNotFoundError):
            orchestrator.boot_for_tenant(404)
        assert calls == []

    def test_requires_repository(self, context):
        with pytest.raises(RuntimeError):
            SubsystemOrchestrator(context).boot_for_tenant(1)


class TestOrchestratorShutdown:

    def test_shutdown_emits_ended_first(self, context, repository, events):
        order = []
        orch = SubsystemOrchestrator(context, repository=repository, events=events)
        adapter = MagicMock(spec=["boot", "shutdown"])
        adapter.shutdown.side_effect = lambda: order.append("adapter")
        events.listen(TenancyEnded, lambda e: order.append("event"))
        orch.register_adapter("mock", adapter)
        orch.boot_for_tenant(1)
        orch.shutdown()
        assert order == ["event", "adapter"]

    def test_shutdown_event_payload(self, orchestrator, events, alpha):
        orchestrator.boot_for_tenant(1)
        orchestrator.shutdown()
        assert events.history[-1] == TenancyEnded(tenant_id=1, tenant=alpha)
        assert orchestrator.last_tenant_id is None

    def test_shutdown_before_boot_is_safe(self, orchestrator, events, calls):
        orchestrator.shutdown()
        orchestrator.shutdown()
        assert events.history == [TenancyEnded(None, None), TenancyEnded(None, None)]
        assert calls == [("first", "shutdown"), ("second", "shutdown")] * 2

    def test_shutdown_failure_isolated(self, context, repository, calls):
        orch = SubsystemOrchestrator(context, repository=repository)
        orch.register_adapter("bad", RecordingAdapter("bad", calls, fail_shutdown=True))
        orch.register_adapter("good", RecordingAdapter("good", calls))
        orch.shutdown()
        assert ("good", "shutdown") in calls

    def test_shutdown_clears_errors(self, context, repository, calls):
        orch = SubsystemOrchestrator(context, repository=repository)
        orch.register_adapter("bad", RecordingAdapter("bad", calls, fail_boot=True))
        orch.boot_for_tenant(1)
        orch.shutdown()
        assert orch.get_errors() == {}


class TestRegistry:

    def test_register_get_unregister(self, context):
        orch = SubsystemOrchestrator(context)
        adapter = CacheAdapter()
        orch.register_adapter("cache", adapter)
        assert orch.get_adapter("cache") is adapter
        orch.unregister_adapter("cache")
        assert orch.get_adapter("cache") is None

    def test_rejects_non_adapter(self, context):
        with pytest.raises(TypeError):
            SubsystemOrchestrator(context).register_adapter("bad", object())

    def test_build_adapters_default_order(self, config):
        adapters = build_adapters(list(config.TENANTABLE_ADAPTERS), TableNameResolver(), config)
        assert list(adapters) == ["table", "cache", "storage", "session", "logging", "settings"]
        assert all(isinstance(a, TenantAware) for a in adapters.values())

    def test_build_adapters_unknown(self, config):
        with pytest.raises(ValueError):
            build_adapters(["nope"], TableNameResolver(), config)

    def test_build_adapters_fresh_instances(self, config):
        first = build_adapters(["cache"], TableNameResolver(), config)
        second = build_adapters(["cache"], TableNameResolver(), config)
        assert first["cache"] is not second["cache"]


# ===========================================================================
# Adapters
# ===========================================================================

class TestTableAdapter:

    def test_wires_resolver(self, alpha):
        resolver = TableNameResolver()
        adapter = TableAdapter(resolver)
        adapter.boot(1, alpha)
        assert resolver.resolve("students") == "tenant_1_students"
        adapter.shutdown()
        with pytest.raises(NoTenantContextError):
            resolver.resolve("students")

    def test_boot_without_tenant_clears(self, alpha):
        resolver = TableNameResolver().set_tenant(1)
        TableAdapter(resolver).boot(None, None)
        assert not resolver.has_tenant()


class TestCacheAdapter:

    def test_prefix_set_and_restored(self, alpha):
        adapter = CacheAdapter()
        assert current_cache_prefix() == ""
        adapter.boot(1, alpha)
        assert current_cache_prefix() == "tenant_1_"
        assert cache_key("users") == "tenant_1_users"
        assert adapter.cache_key("users") == "tenant_1_users"
        adapter.boot(2, None)
        assert adapter.prefix == "tenant_2_"
        adapter.shutdown()
        assert current_cache_prefix() == ""

    def test_no_tenant_empty_prefix(self):
        adapter = CacheAdapter()
        adapter.boot(None, None)
        assert cache_key("users") == "users"
        adapter.shutdown()


class TestStorageAdapter:

    def test_creates_tenant_directory(self, tmp_path, alpha):
        adapter = StorageAdapter(tmp_path)
        adapter.boot(1, alpha)
        expected = tmp_path / "uploads" / "tenant_1"
        assert expected.is_dir()
        assert adapter.storage_path() == expected

    def test_derived_path_without_boot(self, tmp_path):
        adapter = StorageAdapter(tmp_path)
        assert adapter.storage_path() == tmp_path / "uploads" / "tenant_default"
        assert adapter.storage_path(5) == tmp_path / "uploads" / "tenant_5"

    def test_shutdown_clears_path(self, tmp_path, alpha):
        adapter = StorageAdapter(tmp_path)
        adapter.boot(1, alpha)
        adapter.shutdown()
        assert adapter.current_path is None

    def test_boot_without_tenant_selects_nothing(self, tmp_path):
        adapter = StorageAdapter(tmp_path)
        adapter.boot(None, None)
        assert adapter.current_path is None
        assert not (tmp_path / "uploads").exists()


class TestSessionAdapter:

    def test_tenant_session_path_and_cookie(self, tmp_path, alpha):
        adapter = SessionAdapter(tmp_path, configured_path="/var/sessions")
        adapter.boot(1, alpha)
        assert adapter.save_path == str(tmp_path / "session" / "tenant_1")
        assert (tmp_path / "session" / "tenant_1").is_dir()
        assert adapter.cookie_name == "tenant_1_session"

    def test_global_session_path(self, tmp_path):
        adapter = SessionAdapter(tmp_path)
        adapter.boot(None, None)
        assert adapter.save_path.endswith("tenant_global")
        assert adapter.cookie_name == "session"

    def test_shutdown_restores_configured_path(self, tmp_path, alpha):
        adapter = SessionAdapter(tmp_path, configured_path="/var/sessions")
        adapter.boot(1, alpha)
        adapter.shutdown()
        assert adapter.save_path == "/var/sessions"
        assert adapter.cookie_name == "session"


class TestLoggingAdapter:

    def test_context_published_and_cleared(self, alpha):
        adapter = LoggingAdapter()
        adapter.boot(1, alpha)
        assert get_log_context() == {"tenant_id": 1, "tenant_name": "School Alpha"}
        adapter.shutdown()
        assert get_log_context() is None

    def test_filter_copies_context(self, alpha):
        adapter = LoggingAdapter()
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        adapter.boot(1, alpha)
        try:
            assert TenantLogFilter().filter(record) is True
        finally:
            adapter.shutdown()
        assert record.tenant_id == 1
        assert record.tenant_name == "School Alpha"

    def test_filter_outside_tenant(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        TenantLogFilter().filter(record)
        assert record.tenant_id == "-"


class TestSettingsAdapter:

    def test_get_dotted_and_top_level(self, alpha):
        adapter = SettingsAdapter()
        adapter.boot(1, alpha)
        assert adapter.get("theme") == "dark"
        assert adapter.get("mail.from") == "office@alpha.edu"
        assert adapter.get("mail") == {"from": "office@alpha.edu"}
        assert adapter.get("missing", "fallback") == "fallback"
        assert adapter.flat() == {"theme": "dark", "mail.from": "office@alpha.edu"}
        assert adapter.all() == alpha.settings

    def test_shutdown_clears(self, alpha):
        adapter = SettingsAdapter()
        adapter.boot(1, alpha)
        adapter.shutdown()
        assert adapter.all() == {}
        assert adapter.get("theme") is None

    def test_flatten(self):
        assert flatten({"a": {"b": {"c": 1}}, "d": {}}) == {"a.b.c": 1, "d": {}}


class TestRedisAdapter:

    def test_default_prefix(self, alpha):
        adapter = RedisAdapter()
        adapter.boot(1, alpha)
        assert adapter.key("jobs") == "tenant:1:jobs"
        assert adapter.connection_kwargs() == {}

    def test_custom_prefix(self, beta):
        beta.settings = {"redis": {"prefix": "beta:"}}
        adapter = RedisAdapter()
        adapter.boot(2, beta)
        assert adapter.prefix == "beta:"

    def test_database_slot(self, beta):
        adapter = RedisAdapter(db_per_tenant=True, max_database=15, base_kwargs={"host": "redis"})
        adapter.boot(17, beta)
        assert adapter.database == 0
        assert adapter.connection_kwargs() == {"host": "redis", "db": 0}
        adapter.boot(2, beta)
        assert adapter.database == 1

    def test_no_tenant_clears_namespace_and_shutdown_resets(self, alpha):
        adapter = RedisAdapter(db_per_tenant=True)
        adapter.boot(None, None)
        assert adapter.prefix == ""
        adapter.boot(1, alpha)
        assert adapter.prefix == "tenant:1:"
        assert adapter.database == 0
        adapter.boot(None, None)
        assert adapter.prefix == ""
        assert adapter.database is None
        assert adapter.connection_kwargs() == {}
        adapter.boot(1, alpha)
        adapter.shutdown()
        assert adapter.prefix == ""
        assert adapter.database is None

    def test_cleared_tenant_drops_namespace_through_orchestrator(self, context, repository):
        orch = SubsystemOrchestrator(context, repository=repository)
        adapter = RedisAdapter(db_per_tenant=True)
        orch.register_adapter("redis", adapter)
        context.set_tenant_by_id(1, repository)
        orch.boot()
        assert adapter.key("jobs") == "tenant:1:jobs"
        context.clear()
        orch.boot()
        assert adapter.key("jobs") == "jobs"
        assert adapter.database is None

    def test_slot_never_reaches_table_names(self, config, alpha):
        resolver = TableNameResolver()
        adapters = build_adapters(["table", "redis"], resolver, config)
        for adapter in adapters.values():
            adapter.boot(40, alpha)
        assert resolver.resolve("students") == "tenant_40_students"
