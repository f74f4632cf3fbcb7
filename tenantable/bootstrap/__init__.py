from tenantable.bootstrap.adapters import (
    ADAPTER_FACTORIES,
    CacheAdapter,
    LoggingAdapter,
    RedisAdapter,
    SessionAdapter,
    SettingsAdapter,
    StorageAdapter,
    TableAdapter,
    TenantAware,
    build_adapters,
    cache_key,
    current_cache_prefix,
)
from tenantable.bootstrap.orchestrator import SubsystemOrchestrator

__all__ = [
    "ADAPTER_FACTORIES",
    "CacheAdapter",
    "LoggingAdapter",
    "RedisAdapter",
    "SessionAdapter",
    "SettingsAdapter",
    "StorageAdapter",
    "SubsystemOrchestrator",
    "TableAdapter",
    "TenantAware",
    "build_adapters",
    "cache_key",
    "current_cache_prefix",
]
