"""
Subsystem adapters booted for the active tenant.

Every adapter implements the :class:`TenantAware` capability::

    boot(tenant_id, tenant)   # tenant_id/tenant may be None
    shutdown()

Adapters are instantiated per :class:`~tenantable.scope.TenancyScope`; none
of them keeps module-level state except through ContextVars, so concurrent
scopes never see each other's prefixes or paths.

Adapters:
    - TableAdapter: points the scope's TableNameResolver at the tenant
    - CacheAdapter: ambient cache key prefix ``tenant_<id>_``
    - StorageAdapter: ``<root>/uploads/tenant_<id>``
    - SessionAdapter: ``<root>/session/tenant_<id|global>`` and cookie name
    - LoggingAdapter: ambient log context for TenantLogFilter
    - SettingsAdapter: the tenant's settings blob as a lookup surface
    - RedisAdapter: Redis key prefix and optional database slot (opt-in)
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from tenantable.config.settings import Settings
from tenantable.log_context import get_log_context, set_log_context
from tenantable.tables import TableNameResolver
from tenantable.tenant import TenantRecord, decode_settings

logger = logging.getLogger(__name__)

_cache_prefix: ContextVar[str] = ContextVar("tenant_cache_prefix", default="")

DEFAULT_SESSION_COOKIE = "session"


@runtime_checkable
class TenantAware(Protocol):
    """Capability every bootable subsystem provides."""

    def boot(self, tenant_id: int | None, tenant: TenantRecord | None) -> None: ...

    def shutdown(self) -> None: ...


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------

class TableAdapter:
    """Wires a TableNameResolver to the booted tenant."""

    def __init__(self, resolver: TableNameResolver) -> None:
        self.resolver = resolver

    def boot(self, tenant_id: int | None, tenant: TenantRecord | None) -> None:
        if tenant_id is not None:
            self.resolver.set_tenant(tenant_id)
        else:
            self.resolver.clear()

    def shutdown(self) -> None:
        self.resolver.clear()


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

def current_cache_prefix() -> str:
    return _cache_prefix.get()


def cache_key(key: str) -> str:
    """Prefix ``key`` with the ambient tenant cache prefix."""
    return f"{_cache_prefix.get()}{key}"


class CacheAdapter:
    """Sets the ambient cache key prefix, restoring the previous one on shutdown."""

    def __init__(self) -> None:
        self._previous: str | None = None

    def boot(self, tenant_id: int | None, tenant: TenantRecord | None) -> None:
        if self._previous is None:
            self._previous = _cache_prefix.get()
        _cache_prefix.set(f"tenant_{tenant_id}_" if tenant_id is not None else "")

    def shutdown(self) -> None:
        if self._previous is not None:
            _cache_prefix.set(self._previous)
        self._previous = None

    @property
    def prefix(self) -> str:
        return _cache_prefix.get()

    def cache_key(self, key: str) -> str:
        return cache_key(key)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class StorageAdapter:
    """Creates and selects the tenant's upload directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self.current_path: Path | None = None

    def boot(self, tenant_id: int | None, tenant: TenantRecord | None) -> None:
        if tenant_id is None:
            self.current_path = None
            return
        path = self.root / "uploads" / f"tenant_{tenant_id}"
        path.mkdir(parents=True, exist_ok=True)
        self.current_path = path

    def shutdown(self) -> None:
        self.current_path = None

    def storage_path(self, tenant_id: int | None = None) -> Path:
        """Live tenant directory, else the derived ``tenant_<id|default>`` path."""
        if self.current_path is not None:
            return self.current_path
        return self.root / "uploads" / f"tenant_{tenant_id if tenant_id is not None else 'default'}"


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class SessionAdapter:
    """Selects a per-tenant session save path and cookie name.

    Session stores read the save path when they open, so this adapter must
    boot before any session store is opened for the unit of work. The
    orchestrator cannot enforce that ordering; the caller has to.
    """

    def __init__(
        self,
        root: Path | str,
        configured_path: str = "",
        cookie_name: str = DEFAULT_SESSION_COOKIE,
    ) -> None:
        self.root = Path(root)
        self.configured_path = configured_path
        self.default_cookie_name = cookie_name
        self.save_path = configured_path
        self.cookie_name = cookie_name

    def boot(self, tenant_id: int | None, tenant: TenantRecord | None) -> None:
        suffix = tenant_id if tenant_id is not None else "global"
        path = self.root / "session" / f"tenant_{suffix}"
        path.mkdir(parents=True, exist_ok=True)
        self.save_path = str(path)
        self.cookie_name = (
            f"tenant_{tenant_id}_session" if tenant_id is not None else self.default_cookie_name
        )

    def shutdown(self) -> None:
        self.save_path = self.configured_path
        self.cookie_name = self.default_cookie_name


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

class LoggingAdapter:
    """Publishes ``{tenant_id, tenant_name}`` as the ambient log context.

    Shutdown restores whatever context was active before the first boot.
    """

    def __init__(self) -> None:
        self._saved = False
        self._previous: dict[str, Any] | None = None

    def boot(self, tenant_id: int | None, tenant: TenantRecord | None) -> None:
        if not self._saved:
            self._previous = get_log_context()
            self._saved = True
        if tenant_id is None:
            set_log_context(None)
            return
        name = tenant.display_name if tenant is not None else "unknown"
        set_log_context({"tenant_id": tenant_id, "tenant_name": name})

    def shutdown(self) -> None:
        if self._saved:
            set_log_context(self._previous)
        self._previous = None
        self._saved = False

    @property
    def context(self) -> dict[str, Any] | None:
        return get_log_context()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def flatten(data: Mapping[str, Any], parent: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys: ``{"a": {"b": 1}} -> {"a.b": 1}``."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{parent}.{key}" if parent else str(key)
        if isinstance(value, Mapping) and value:
            flat.update(flatten(value, dotted))
        else:
            flat[dotted] = value
    return flat


class SettingsAdapter:
    """Exposes the tenant's settings for the duration of the unit of work."""

    def __init__(self) -> None:
        self._settings: dict[str, Any] = {}
        self._flat: dict[str, Any] = {}

    def boot(self, tenant_id: int | None, tenant: TenantRecord | None) -> None:
        self._settings = decode_settings(tenant.settings) if tenant_id is not None and tenant else {}
        self._flat = flatten(self._settings)

    def shutdown(self) -> None:
        self._settings = {}
        self._flat = {}

    def get(self, key: str, default: Any = None) -> Any:
        """Dotted keys look in the flattened map, then top-level keys."""
        if key in self._flat:
            return self._flat[key]
        return self._settings.get(key, default)

    def all(self) -> dict[str, Any]:
        return dict(self._settings)

    def flat(self) -> dict[str, Any]:
        return dict(self._flat)


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

class RedisAdapter:
    """Redis key prefix and optional per-tenant database slot.

    The slot is ``(tenant_id - 1) % (max_database + 1)``. Tenants sharing a
    slot are still separated by the key prefix. The remapping never leaves
    this adapter.
    """

    def __init__(
        self,
        db_per_tenant: bool = False,
        max_database: int = 15,
        base_kwargs: Mapping[str, Any] | None = None,
    ) -> None:
        self.db_per_tenant = db_per_tenant
        self.max_database = max_database
        self.base_kwargs = dict(base_kwargs or {})
        self.prefix = ""
        self.database: int | None = None

    def boot(self, tenant_id: int | None, tenant: TenantRecord | None) -> None:
        if tenant_id is None:
            self.prefix = ""
            self.database = None
            return
        redis_settings = (tenant.settings.get("redis") if tenant else None) or {}
        custom = redis_settings.get("prefix") if isinstance(redis_settings, Mapping) else None
        self.prefix = custom or f"tenant:{tenant_id}:"
        if self.db_per_tenant:
            self.database = (tenant_id - 1) % (self.max_database + 1)
            logger.debug(f"Redis database {self.database} selected for tenant {tenant_id}")

    def shutdown(self) -> None:
        self.prefix = ""
        self.database = None

    def key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def connection_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for a Redis client bound to the booted tenant."""
        kwargs = dict(self.base_kwargs)
        if self.database is not None:
            kwargs["db"] = self.database
        return kwargs


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

AdapterFactory = Callable[[TableNameResolver, Settings], TenantAware]

ADAPTER_FACTORIES: dict[str, AdapterFactory] = {
    "table": lambda resolver, config: TableAdapter(resolver),
    "cache": lambda resolver, config: CacheAdapter(),
    "storage": lambda resolver, config: StorageAdapter(config.TENANTABLE_STORAGE_ROOT),
    "session": lambda resolver, config: SessionAdapter(
        config.TENANTABLE_STORAGE_ROOT, config.TENANTABLE_SESSION_PATH
    ),
    "logging": lambda resolver, config: LoggingAdapter(),
    "settings": lambda resolver, config: SettingsAdapter(),
    "redis": lambda resolver, config: RedisAdapter(
        config.TENANTABLE_REDIS_DB_PER_TENANT, config.TENANTABLE_REDIS_MAX_DATABASE
    ),
}


def build_adapters(
    names: list[str],
    resolver: TableNameResolver,
    config: Settings,
) -> dict[str, TenantAware]:
    """Fresh adapter instances for ``names``, in order.

    Raises:
        ValueError: On an unknown adapter name.
    """
    adapters: dict[str, TenantAware] = {}
    for name in names:
        factory = ADAPTER_FACTORIES.get(name)
        if factory is None:
            raise ValueError(f"Unknown bootstrap adapter: {name!r}")
        adapters[name] = factory(resolver, config)
    return adapters
