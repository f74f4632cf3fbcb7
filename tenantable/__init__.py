"""
tenantable - per-request tenant resolution and isolation.

Resolves which tenant a request or job belongs to, boots tenant-specific
subsystems (table names, cache prefix, storage, session, logging, settings)
for it, and blocks cross-tenant field tampering.

Example:
    from tenantable import TenancyPipeline, InMemoryTenantRepository, TenantRecord

    repository = InMemoryTenantRepository([TenantRecord(id=1, subdomain="school-alpha")])
    pipeline = TenancyPipeline(repository, base_domain="example.com")
"""

__version__ = "0.1.0"

from tenantable.context import TenantContext, resolve_base_domain
from tenantable.events import (
    EventDispatcher,
    EventSink,
    TenancyEnded,
    TenancyInitialized,
    TenantTamperingDetected,
)
from tenantable.exceptions import (
    NoTenantContextError,
    TenancyError,
    TenantInactiveError,
    TenantNotFoundError,
)
from tenantable.guard import TamperGuard
from tenantable.identification import (
    ChainStrategy,
    DomainOrSubdomainStrategy,
    DomainStrategy,
    HeaderOrQueryStrategy,
    IdentificationStrategy,
    KeyKind,
    PathStrategy,
    SubdomainStrategy,
    TenantKey,
    build_strategy,
)
from tenantable.pipeline import TenancyMiddleware, TenancyPipeline, TenancyRejection
from tenantable.repository import InMemoryTenantRepository, SqlTenantRepository, TenantRepository
from tenantable.request import CallerIdentity, RequestView
from tenantable.scope import (
    TenancyScope,
    current_scope,
    get_current_tenant,
    get_tenant_id,
    has_tenant,
    require_tenant,
    table,
    tenant_required,
    tenant_url,
    with_tenant,
)
from tenantable.sweep import SweepReport, run_for_tenants, scope_from_environment
from tenantable.tables import TableNameResolver
from tenantable.tenant import TenantRecord

__all__ = [
    "__version__",
    "CallerIdentity",
    "ChainStrategy",
    "DomainOrSubdomainStrategy",
    "DomainStrategy",
    "EventDispatcher",
    "EventSink",
    "HeaderOrQueryStrategy",
    "IdentificationStrategy",
    "InMemoryTenantRepository",
    "KeyKind",
    "NoTenantContextError",
    "PathStrategy",
    "RequestView",
    "SqlTenantRepository",
    "SubdomainStrategy",
    "SweepReport",
    "TableNameResolver",
    "TamperGuard",
    "TenancyEnded",
    "TenancyError",
    "TenancyInitialized",
    "TenancyMiddleware",
    "TenancyPipeline",
    "TenancyRejection",
    "TenancyScope",
    "TenantContext",
    "TenantInactiveError",
    "TenantKey",
    "TenantNotFoundError",
    "TenantRecord",
    "TenantRepository",
    "TenantTamperingDetected",
    "build_strategy",
    "current_scope",
    "get_current_tenant",
    "get_tenant_id",
    "has_tenant",
    "require_tenant",
    "resolve_base_domain",
    "run_for_tenants",
    "scope_from_environment",
    "table",
    "tenant_required",
    "tenant_url",
    "with_tenant",
]
