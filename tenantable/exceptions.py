"""Exception taxonomy for tenant resolution and tenant-scoped operations.

Three conditions are kept distinct so callers can map them to different
outcomes:

- :class:`TenantNotFoundError`: a key or id resolved to no record.
  Recoverable; usually a 404 or a silent "no tenant" pass-through.
- :class:`TenantInactiveError`: the record exists but is disabled.
  Recoverable; usually a 403.
- :class:`NoTenantContextError`: an operation that needs an active tenant
  ran without one. Always an ordering bug, never swallowed.
"""

from __future__ import annotations


class TenancyError(Exception):
    """Base class for all tenancy errors."""


class TenantNotFoundError(TenancyError, LookupError):
    """Raised when no tenant record matches a key or id."""

    def __init__(self, message: str, key: str | int | None = None) -> None:
        super().__init__(message)
        self.key = key

    @classmethod
    def for_subdomain(cls, subdomain: str) -> "TenantNotFoundError":
        return cls(f"Tenant not found for subdomain: {subdomain}", key=subdomain)

    @classmethod
    def for_domain(cls, domain: str) -> "TenantNotFoundError":
        return cls(f"Tenant not found for domain: {domain}", key=domain)

    @classmethod
    def for_id(cls, tenant_id: int) -> "TenantNotFoundError":
        return cls(f"Tenant not found with ID: {tenant_id}", key=tenant_id)


class TenantInactiveError(TenancyError, PermissionError):
    """Raised when the matching tenant record is not active."""

    def __init__(self, message: str, key: str | int | None = None) -> None:
        super().__init__(message)
        self.key = key

    @classmethod
    def for_key(cls, key: str) -> "TenantInactiveError":
        return cls(f"Tenant '{key}' is currently inactive", key=key)

    @classmethod
    def for_id(cls, tenant_id: int) -> "TenantInactiveError":
        return cls(f"Tenant with ID {tenant_id} is currently inactive", key=tenant_id)


class NoTenantContextError(TenancyError, RuntimeError):
    """Raised when a tenant-scoped operation runs without an active tenant."""

    def __init__(self, operation: str | None = None) -> None:
        if operation:
            message = (
                f"No tenant set in context. Cannot {operation}. "
                "Ensure the request pipeline resolves a tenant or set one explicitly."
            )
        else:
            message = (
                "No tenant set in context. Ensure the request pipeline resolves "
                "a tenant before accessing tenant-scoped resources."
            )
        super().__init__(message)
        self.operation = operation
