from tenantable.models.tenant import TenantRow, TenantScopedMixin

__all__ = ["TenantRow", "TenantScopedMixin"]
