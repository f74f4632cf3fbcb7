"""
Ordered boot/shutdown of tenant-aware subsystems.

The orchestrator watches the scope's :class:`~tenantable.context.TenantContext`
and, whenever the resolved tenant changes, boots every registered adapter in
order. Each adapter runs inside its own failure boundary: one failing
subsystem is recorded and logged, the rest still boot.

Example:
    orchestrator = SubsystemOrchestrator(context, repository, events)
    orchestrator.register_adapter("cache", CacheAdapter())
    orchestrator.boot()
    ...
    orchestrator.shutdown()
"""

from __future__ import annotations

import logging
from typing import Mapping

from tenantable.bootstrap.adapters import TenantAware
from tenantable.context import TenantContext
from tenantable.events import EventSink, NullEventSink, TenancyEnded, TenancyInitialized
from tenantable.repository import TenantRepository

logger = logging.getLogger(__name__)


class SubsystemOrchestrator:
    """Boots and shuts down adapters for the context's current tenant.

    Attributes:
        context: Resolution state the orchestrator reads the tenant from.
        repository: Used by :meth:`boot_for_tenant`.
        events: Receives TenancyInitialized / TenancyEnded.
        last_tenant_id: Tenant id of the last boot, None before any boot
            and after shutdown.
    """

    def __init__(
        self,
        context: TenantContext,
        repository: TenantRepository | None = None,
        events: EventSink | None = None,
        adapters: Mapping[str, TenantAware] | None = None,
    ) -> None:
        self.context = context
        self.repository = repository
        self.events = events if events is not None else NullEventSink()
        self.last_tenant_id: int | None = None
        self._adapters: dict[str, TenantAware] = dict(adapters or {})
        self._errors: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register_adapter(self, name: str, adapter: TenantAware) -> "SubsystemOrchestrator":
        """Register (or replace) an adapter. New names run last."""
        if not isinstance(adapter, TenantAware):
            raise TypeError(f"Adapter {name!r} must provide boot() and shutdown()")
        self._adapters[name] = adapter
        return self

    def unregister_adapter(self, name: str) -> "SubsystemOrchestrator":
        self._adapters.pop(name, None)
        return self

    def get_adapter(self, name: str) -> TenantAware | None:
        return self._adapters.get(name)

    @property
    def adapters(self) -> dict[str, TenantAware]:
        return dict(self._adapters)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def boot(self) -> None:
        """Boot all adapters for the current tenant.

        A no-op when the current tenant id equals the last booted one.
        """
        tenant_id = self.context.tenant_id
        tenant = self.context.tenant
        if tenant_id == self.last_tenant_id:
            return

        self._errors = {}
        for name, adapter in self._adapters.items():
            try:
                adapter.boot(tenant_id, tenant)
            except Exception as exc:
                self._errors[name] = str(exc)
                logger.error(
                    f"Adapter '{name}' failed to boot for tenant {tenant_id}: {exc}",
                    exc_info=True,
                )
        self.last_tenant_id = tenant_id

        if tenant_id is not None and tenant is not None:
            self.events.emit(TenancyInitialized(tenant_id=tenant_id, tenant=tenant))
            logger.debug(f"Booted {len(self._adapters)} adapters for tenant {tenant_id}")

    def check_and_boot(self) -> None:
        """Boot only if the context's tenant differs from the last boot.

        Alias of :meth:`boot`, which applies the same guard.
        """
        if self.context.tenant_id != self.last_tenant_id:
            self.boot()

    def boot_for_tenant(self, tenant_id: int) -> None:
        """Resolve ``tenant_id`` and force a full boot.

        Raises:
            TenantNotFoundError: Unknown id.
            TenantInactiveError: Disabled tenant.
        """
        if self.repository is None:
            raise RuntimeError("boot_for_tenant() needs a tenant repository")
        self.context.set_tenant_by_id(tenant_id, self.repository)
        self.last_tenant_id = None
        self.boot()

    def shutdown(self) -> None:
        """Emit TenancyEnded, then shut every adapter down.

        Safe to call repeatedly and before any boot.
        """
        self.events.emit(TenancyEnded(tenant_id=self.last_tenant_id, tenant=self.context.tenant))
        for name, adapter in self._adapters.items():
            try:
                adapter.shutdown()
            except Exception as exc:
                logger.error(f"Adapter '{name}' failed to shut down: {exc}", exc_info=True)
        self.last_tenant_id = None
        self._errors = {}

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def was_successful(self) -> bool:
        return not self._errors

    def get_errors(self) -> dict[str, str]:
        """Adapter name to error message for the last boot."""
        return dict(self._errors)

    def __repr__(self) -> str:
        names = ", ".join(self._adapters)
        return f"<SubsystemOrchestrator last_tenant_id={self.last_tenant_id} adapters=[{names}]>"
