"""
Run a unit of work once per tenant.

Each tenant gets a fresh :class:`~tenantable.scope.TenancyScope`, booted by
id, with ``TENANTABLE_TENANT_ID`` exported so child processes can rebuild
the same scope through :func:`scope_from_environment`. The environment is
restored and the scope released after every tenant, whether the work
succeeded or not. One tenant failing never stops the sweep.

Example:
    report = run_for_tenants(
        lambda scope: reindex(scope.table("students")),
        repository=repository,
    )
    if not report.ok:
        for result in report.failed:
            print(result.tenant_id, result.error)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from tenantable.config.settings import Settings
from tenantable.events import EventSink
from tenantable.repository import TenantRepository
from tenantable.scope import TenancyScope
from tenantable.tenant import TenantRecord

logger = logging.getLogger(__name__)

TENANT_ID_ENV = "TENANTABLE_TENANT_ID"


@dataclass
class TenantRunResult:
    """Outcome of the work for one tenant."""

    tenant_id: int
    name: str
    ok: bool
    value: Any = None
    error: str | None = None


@dataclass
class SweepReport:
    """Per-tenant results of a sweep, in run order."""

    results: list[TenantRunResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[TenantRunResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[TenantRunResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    def __len__(self) -> int:
        return len(self.results)


def parse_tenant_ids(value: str) -> list[int]:
    """Parse ``"1,2,3"`` into ids.

    Raises:
        ValueError: Empty list or a non-integer entry.
    """
    ids = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        tenant_id = int(part)
        if tenant_id < 1:
            raise ValueError(f"Tenant ids are positive integers, got {tenant_id}")
        ids.append(tenant_id)
    if not ids:
        raise ValueError("No tenant ids given")
    return ids


def select_tenants(
    repository: TenantRepository,
    tenant_ids: Iterable[int] | None = None,
) -> list[TenantRecord]:
    """Explicit ids in the given order (unknown ids skipped), else all active tenants."""
    if tenant_ids is None:
        return repository.list_tenants(active=True)
    selected = []
    for tenant_id in tenant_ids:
        tenant = repository.find_by_id(tenant_id)
        if tenant is None:
            logger.warning(f"Skipping unknown tenant {tenant_id}")
            continue
        selected.append(tenant)
    return selected


def run_for_tenants(
    work: Callable[[TenancyScope], Any],
    *,
    repository: TenantRepository,
    tenant_ids: Iterable[int] | None = None,
    config: Settings | None = None,
    events: EventSink | None = None,
) -> SweepReport:
    """Run ``work`` once per selected tenant inside its own booted scope.

    Args:
        work: Callable receiving the booted scope.
        repository: Tenant lookups.
        tenant_ids: Tenants to run for; defaults to every active tenant.
        config: Settings passed to each scope.
        events: Event sink passed to each scope.

    Returns:
        A report with one result per tenant.
    """
    report = SweepReport()
    for tenant in select_tenants(repository, tenant_ids):
        previous = os.environ.get(TENANT_ID_ENV)
        os.environ[TENANT_ID_ENV] = str(tenant.id)
        try:
            with TenancyScope(repository, config=config, events=events) as scope:
                scope.boot_for_tenant(tenant.id)
                value = work(scope)
            report.results.append(TenantRunResult(tenant.id, tenant.display_name, True, value=value))
            logger.info(f"Tenant {tenant.id} ({tenant.display_name}) done")
        except Exception as exc:
            logger.error(f"Tenant {tenant.id} ({tenant.display_name}) failed: {exc}", exc_info=True)
            report.results.append(
                TenantRunResult(tenant.id, tenant.display_name, False, error=str(exc) or type(exc).__name__)
            )
        finally:
            if previous is None:
                os.environ.pop(TENANT_ID_ENV, None)
            else:
                os.environ[TENANT_ID_ENV] = previous
    return report


def scope_from_environment(
    repository: TenantRepository,
    config: Settings | None = None,
    events: EventSink | None = None,
) -> TenancyScope:
    """Build a scope booted for ``TENANTABLE_TENANT_ID``, if set.

    Without the variable the scope has no tenant.

    Raises:
        ValueError: The variable is not an integer.
        TenantNotFoundError, TenantInactiveError: The id does not resolve.
    """
    scope = TenancyScope(repository, config=config, events=events)
    raw = os.environ.get(TENANT_ID_ENV, "").strip()
    if raw:
        scope.boot_for_tenant(int(raw))
    return scope
