"""
Per-unit-of-work tenancy scope.

A :class:`TenancyScope` owns everything tenant-specific for one request or
job: its own :class:`~tenantable.context.TenantContext`, its own
:class:`~tenantable.tables.TableNameResolver` and its own
:class:`~tenantable.bootstrap.SubsystemOrchestrator` with fresh adapter
instances. While entered, the scope is published through a ContextVar so
helpers such as :func:`get_tenant_id` and :func:`table` can find it; each
thread and asyncio task sees only its own scope.

Leaving the scope always shuts the subsystems down, clears the context and
restores the previously active scope, even when the body raised.

Example:
    with TenancyScope(repository) as scope:
        scope.boot_for_tenant(7)
        table("students")          # "tenant_7_students"

    async with TenancyScope(repository) as scope:
        scope.detect(view)
        scope.boot()
        await handle()
"""

from __future__ import annotations

import functools
import inspect
import logging
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Any, Callable, TypeVar

from tenantable.bootstrap.adapters import SettingsAdapter, StorageAdapter, build_adapters
from tenantable.bootstrap.orchestrator import SubsystemOrchestrator
from tenantable.config.settings import Settings, settings as default_settings
from tenantable.context import TenantContext
from tenantable.events import EventSink, NullEventSink
from tenantable.exceptions import NoTenantContextError
from tenantable.identification import IdentificationStrategy, build_strategy
from tenantable.repository import TenantRepository
from tenantable.request import RequestView
from tenantable.tables import TableNameResolver
from tenantable.tenant import TenantRecord

logger = logging.getLogger(__name__)

_current_scope: ContextVar["TenancyScope | None"] = ContextVar("tenancy_scope", default=None)


class TenancyScope:
    """Owner of the tenancy state for one unit of work.

    Args:
        repository: Tenant lookups.
        config: Settings; defaults to the module-level settings.
        events: Sink for lifecycle and audit events.
        base_domain: Explicit base domain override.
        adapters: Adapter names to boot, in order. Defaults to
            ``config.TENANTABLE_ADAPTERS``.
    """

    def __init__(
        self,
        repository: TenantRepository,
        config: Settings | None = None,
        events: EventSink | None = None,
        base_domain: str | None = None,
        adapters: list[str] | None = None,
    ) -> None:
        self.config = config or default_settings
        self.repository = repository
        self.events = events if events is not None else NullEventSink()
        self.context = TenantContext(base_domain=base_domain, config=self.config)
        self.resolver = TableNameResolver(
            template=self.config.TENANTABLE_TABLE_FORMAT,
            global_tables=self.config.TENANTABLE_GLOBAL_TABLES,
        )
        names = adapters if adapters is not None else list(self.config.TENANTABLE_ADAPTERS)
        self.orchestrator = SubsystemOrchestrator(
            self.context,
            repository=repository,
            events=self.events,
            adapters=build_adapters(names, self.resolver, self.config),
        )
        self._token: Token[TenancyScope | None] | None = None

    # ------------------------------------------------------------------
    # Tenant access
    # ------------------------------------------------------------------

    @property
    def tenant(self) -> TenantRecord | None:
        return self.context.tenant

    @property
    def tenant_id(self) -> int | None:
        return self.context.tenant_id

    def has_tenant(self) -> bool:
        return self.context.has_tenant()

    # ------------------------------------------------------------------
    # Resolution and boot
    # ------------------------------------------------------------------

    def strategy(self) -> IdentificationStrategy:
        return build_strategy(
            self.config.TENANTABLE_IDENTIFICATION,
            self.config,
            base_domain=self.context.base_domain,
        )

    def detect(
        self,
        view: RequestView,
        strategy: IdentificationStrategy | None = None,
    ) -> TenantRecord | None:
        """Identify and resolve the tenant of ``view``.

        Raises:
            TenantNotFoundError: A key was found but matches no tenant.
            TenantInactiveError: The tenant is disabled.
        """
        return self.context.detect(view, strategy or self.strategy(), self.repository)

    def boot(self) -> None:
        self.orchestrator.boot()

    def boot_for_tenant(self, tenant_id: int) -> TenantRecord:
        """Resolve ``tenant_id`` and boot every adapter for it."""
        self.orchestrator.boot_for_tenant(tenant_id)
        if self.context.tenant is None:
            raise NoTenantContextError(f"boot tenant {tenant_id}")
        return self.context.tenant

    def table(self, logical: str) -> str:
        return self.resolver.resolve(logical)

    def close(self) -> None:
        """Shut subsystems down and clear the context."""
        try:
            self.orchestrator.shutdown()
        finally:
            self.context.clear()
            self.resolver.clear()

    # ------------------------------------------------------------------
    # Context manager protocol
    # ------------------------------------------------------------------

    def __enter__(self) -> "TenancyScope":
        self._token = _current_scope.set(self)
        logger.debug("Entered tenancy scope")
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        try:
            self.close()
        finally:
            if self._token is not None:
                _current_scope.reset(self._token)
                self._token = None
            logger.debug("Exited tenancy scope")

    async def __aenter__(self) -> "TenancyScope":
        return self.__enter__()

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)

    def __repr__(self) -> str:
        return f"<TenancyScope tenant_id={self.tenant_id}>"


# ---------------------------------------------------------------------------
# Ambient helpers
# ---------------------------------------------------------------------------

def current_scope() -> TenancyScope | None:
    """The scope entered in the current thread/task, if any."""
    return _current_scope.get()


def require_scope() -> TenancyScope:
    scope = _current_scope.get()
    if scope is None:
        raise NoTenantContextError("access tenancy state outside a TenancyScope")
    return scope


def get_current_tenant() -> TenantRecord | None:
    scope = _current_scope.get()
    return scope.tenant if scope is not None else None


def get_tenant_id() -> int | None:
    scope = _current_scope.get()
    return scope.tenant_id if scope is not None else None


def has_tenant() -> bool:
    return get_tenant_id() is not None


def require_tenant() -> TenantRecord:
    """Get the current tenant or raise.

    Raises:
        NoTenantContextError: No scope or no resolved tenant.
    """
    tenant = get_current_tenant()
    if tenant is None:
        raise NoTenantContextError()
    return tenant


def table(logical: str) -> str:
    """Physical table name for ``logical`` in the current scope."""
    scope = _current_scope.get()
    if scope is None:
        raise NoTenantContextError(f"determine table name for '{logical}'")
    return scope.table(logical)


def storage_path() -> Path:
    """Upload directory for the current tenant."""
    scope = require_scope()
    adapter = scope.orchestrator.get_adapter("storage")
    if isinstance(adapter, StorageAdapter):
        return adapter.storage_path(scope.tenant_id)
    root = Path(scope.config.TENANTABLE_STORAGE_ROOT)
    suffix = scope.tenant_id if scope.tenant_id is not None else "default"
    return root / "uploads" / f"tenant_{suffix}"


def tenant_setting(key: str, default: Any = None) -> Any:
    """Look up a setting of the current tenant (dotted keys allowed)."""
    scope = _current_scope.get()
    if scope is None:
        return default
    adapter = scope.orchestrator.get_adapter("settings")
    if isinstance(adapter, SettingsAdapter):
        return adapter.get(key, default)
    return default


def tenant_url(path: str = "", subdomain: str | None = None, config: Settings | None = None) -> str:
    """Absolute URL on the tenant's subdomain.

    Falls back to the application URL when no subdomain is known. The
    scheme follows ``TENANTABLE_APP_URL``.
    """
    config = config or default_settings
    scope = _current_scope.get()
    if subdomain is None and scope is not None and scope.tenant is not None:
        subdomain = scope.tenant.subdomain
    path = path.lstrip("/")
    if not subdomain:
        return f"{config.TENANTABLE_APP_URL.rstrip('/')}/{path}"
    scheme = "https" if config.TENANTABLE_APP_URL.startswith("https://") else "http"
    base_domain = scope.context.base_domain if scope is not None else config.TENANTABLE_BASE_DOMAIN
    return f"{scheme}://{subdomain}.{base_domain}/{path}"


# ---------------------------------------------------------------------------
# Decorators
# ---------------------------------------------------------------------------

F = TypeVar("F", bound=Callable[..., Any])


def with_tenant(tenant_id: int, repository: TenantRepository, **scope_kwargs: Any) -> Callable[[F], F]:
    """Decorator to run a function inside a scope booted for ``tenant_id``.

    Example:
        @with_tenant(7, repository)
        def rebuild_index():
            ...
    """
    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                async with TenancyScope(repository, **scope_kwargs) as scope:
                    scope.boot_for_tenant(tenant_id)
                    return await func(*args, **kwargs)
            return async_wrapper  # type: ignore
        else:
            @functools.wraps(func)
            def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
                with TenancyScope(repository, **scope_kwargs) as scope:
                    scope.boot_for_tenant(tenant_id)
                    return func(*args, **kwargs)
            return sync_wrapper  # type: ignore

    return decorator


def tenant_required(func: F) -> F:
    """Decorator that raises NoTenantContextError unless a tenant is resolved."""
    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            require_tenant()
            return await func(*args, **kwargs)
        return async_wrapper  # type: ignore
    else:
        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            require_tenant()
            return func(*args, **kwargs)
        return sync_wrapper  # type: ignore
