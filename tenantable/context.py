"""
Tenant resolution state for one unit of work.

A :class:`TenantContext` starts Unresolved and becomes Resolved once a
tenant key or id has been matched to an active record. It only goes back to
Unresolved through :meth:`TenantContext.clear`. The "no tenant" state is a
normal value: identification may legitimately find nothing.

Each :class:`~tenantable.scope.TenancyScope` owns exactly one context; there
is no process-wide instance.

Example:
    context = TenantContext(base_domain="example.com")
    tenant = context.detect(view, strategy, repository)
    if context.has_tenant():
        ...
    context.clear()
"""

from __future__ import annotations

import logging
import os

from tenantable.config.settings import BASE_DOMAIN_SENTINEL, Settings, settings as default_settings
from tenantable.exceptions import TenantInactiveError, TenantNotFoundError
from tenantable.identification import IdentificationStrategy, KeyKind, TenantKey
from tenantable.repository import TenantRepository
from tenantable.request import RequestView
from tenantable.tenant import TenantRecord

logger = logging.getLogger(__name__)

BASE_DOMAIN_ENV = "TENANT_BASE_DOMAIN"


def resolve_base_domain(override: str | None = None, config: Settings | None = None) -> str:
    """Pick the base domain used for subdomain extraction.

    Precedence: explicit override, then the ``TENANT_BASE_DOMAIN``
    environment variable, then the configured value unless it is the
    shipped ``localhost`` default, then ``localhost``.

    Args:
        override: Explicit base domain, highest priority.
        config: Settings to read; defaults to the module-level settings.

    Returns:
        Lowercased base domain without a leading dot.
    """
    if override:
        return override.strip().lower().lstrip(".")
    env_value = os.environ.get(BASE_DOMAIN_ENV, "").strip()
    if env_value:
        return env_value.lower().lstrip(".")
    configured = (config or default_settings).TENANTABLE_BASE_DOMAIN
    if configured and configured != BASE_DOMAIN_SENTINEL:
        return configured
    return BASE_DOMAIN_SENTINEL


class TenantContext:
    """Resolution state machine for the current tenant.

    Attributes:
        base_domain: Base domain used by host-based strategies.
        detection_attempted: True once :meth:`detect` has run.
        resolved_key: Key (or subdomain) the current tenant was resolved by.
    """

    def __init__(self, base_domain: str | None = None, config: Settings | None = None) -> None:
        self.base_domain = resolve_base_domain(base_domain, config)
        self.detection_attempted = False
        self.resolved_key: str | None = None
        self._tenant: TenantRecord | None = None

    @property
    def tenant(self) -> TenantRecord | None:
        return self._tenant

    @property
    def tenant_id(self) -> int | None:
        return self._tenant.id if self._tenant is not None else None

    def has_tenant(self) -> bool:
        return self._tenant is not None

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_by_key(self, key: TenantKey, repository: TenantRepository) -> TenantRecord | None:
        """Resolve a candidate key to an active tenant.

        On a miss the key's fallback is tried; when nothing matches the
        result is None if the key is ``missing_ok``.

        Raises:
            TenantNotFoundError: No record matches and no miss is allowed.
            TenantInactiveError: The matching record is disabled.
        """
        record = self._lookup(key, repository)
        if record is None:
            if key.fallback is not None:
                logger.debug(f"No tenant for {key.kind.value} {key.value!r}, trying fallback")
                return self.resolve_by_key(key.fallback, repository)
            if key.missing_ok:
                logger.debug(f"No tenant for {key.kind.value} {key.value!r}")
                return None
            raise _not_found(key)

        if not record.is_active:
            raise TenantInactiveError.for_key(key.value)

        self._set(record, key.value)
        return record

    def set_tenant_by_id(self, tenant_id: int, repository: TenantRepository) -> TenantRecord:
        """Resolve a known tenant id.

        ``resolved_key`` becomes the record's subdomain.

        Raises:
            TenantNotFoundError: No record has this id.
            TenantInactiveError: The record is disabled.
        """
        record = repository.find_by_id(tenant_id)
        if record is None:
            raise TenantNotFoundError.for_id(tenant_id)
        if not record.is_active:
            raise TenantInactiveError.for_id(tenant_id)
        self._set(record, record.subdomain)
        return record

    resolve_by_id = set_tenant_by_id

    def set_tenant_by_subdomain(self, subdomain: str, repository: TenantRepository) -> TenantRecord:
        record = self.resolve_by_key(TenantKey(subdomain, KeyKind.SUBDOMAIN), repository)
        if record is None:
            raise TenantNotFoundError.for_subdomain(subdomain)
        return record

    def detect(
        self,
        view: RequestView,
        strategy: IdentificationStrategy,
        repository: TenantRepository,
    ) -> TenantRecord | None:
        """Run identification for a request and resolve any key found.

        Returns:
            The resolved tenant, or None when the request carries no
            tenant signal.
        """
        self.detection_attempted = True
        key = strategy.identify(view)
        if key is None:
            logger.debug(f"No tenant signal for host={view.host!r} path={view.path!r}")
            return None
        return self.resolve_by_key(key, repository)

    def clear(self) -> None:
        """Return to the Unresolved state."""
        self._tenant = None
        self.resolved_key = None
        self.detection_attempted = False

    def _set(self, record: TenantRecord, key: str | None) -> None:
        self._tenant = record
        self.resolved_key = key
        logger.debug(f"Resolved tenant {record.id} ({record.display_name})")

    @staticmethod
    def _lookup(key: TenantKey, repository: TenantRepository) -> TenantRecord | None:
        if key.kind is KeyKind.DOMAIN:
            return repository.find_by_domain(key.value)
        if key.kind is KeyKind.ID:
            try:
                tenant_id = int(key.value)
            except ValueError:
                return None
            return repository.find_by_id(tenant_id)
        return repository.find_by_subdomain(key.value)

    def __repr__(self) -> str:
        return f"<TenantContext tenant_id={self.tenant_id} base_domain={self.base_domain!r}>"


def _not_found(key: TenantKey) -> TenantNotFoundError:
    if key.kind is KeyKind.DOMAIN:
        return TenantNotFoundError.for_domain(key.value)
    if key.kind is KeyKind.ID:
        return TenantNotFoundError(f"Tenant not found with ID: {key.value}", key=key.value)
    return TenantNotFoundError.for_subdomain(key.value)
