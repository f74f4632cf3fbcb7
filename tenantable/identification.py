"""
Tenant identification strategies.

A strategy maps a :class:`~tenantable.request.RequestView` to a candidate
:class:`TenantKey`, or ``None`` when the request carries no tenant signal.
Strategies are pure: they never touch the repository and never raise for a
missing signal. Turning a key into a tenant record happens in
:meth:`tenantable.context.TenantContext.resolve_by_key`.

Strategies:
    - SubdomainStrategy: ``school.example.com`` -> ``school``
    - DomainStrategy: full host, matched against the stored custom domain
    - DomainOrSubdomainStrategy: domain first, then subdomain
    - PathStrategy: ``/school/dashboard`` -> ``school``
    - HeaderOrQueryStrategy: ``X-Tenant: school`` or ``?tenant=school``
    - ChainStrategy: first strategy that yields a key wins

Example:
    strategy = build_strategy(["request", "subdomain"], settings)
    key = strategy.identify(view)
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from tenantable.config.settings import Settings
from tenantable.request import RequestView

logger = logging.getLogger(__name__)

_DEV_EXACT = frozenset({"localhost", "127.0.0.1", "::1", "0.0.0.0"})
_DEV_TLD = re.compile(r"\.(test|local|example)$")
_PRIVATE_IP = re.compile(r"^(10\.|172\.(1[6-9]|2\d|3[01])\.|192\.168\.)")


class KeyKind(str, Enum):
    """Which tenant field a candidate key is matched against."""

    SUBDOMAIN = "subdomain"
    DOMAIN = "domain"
    ID = "id"


@dataclass(frozen=True)
class TenantKey:
    """Candidate tenant key produced by a strategy.

    Attributes:
        value: The raw key (subdomain, hostname, path segment, ...).
        kind: Field the key is looked up by.
        fallback: Key to try when this one matches no record.
        missing_ok: When True and nothing matches (including the
            fallback), resolution ends with no tenant instead of an error.
    """

    value: str
    kind: KeyKind = KeyKind.SUBDOMAIN
    fallback: "TenantKey | None" = None
    missing_ok: bool = False


# ---------------------------------------------------------------------------
# Host helpers
# ---------------------------------------------------------------------------


def strip_port(host: str) -> str:
    """Remove a trailing ``:port`` from a host, keeping bare IPv6 intact."""
    host = host.strip().lower()
    if host.startswith("["):
        end = host.find("]")
        return host[1:end] if end != -1 else host
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    return host


def is_dev_host(host: str) -> bool:
    """Whether a host is a local/development host that never names a tenant.

    Covers ``localhost``, loopback and unspecified addresses, ``localhost:<port>``,
    private IPv4 ranges and the ``.test``/``.local``/``.example`` TLDs.
    """
    raw = host.strip().lower()
    if raw in _DEV_EXACT or raw.startswith("localhost:"):
        return True
    bare = strip_port(raw)
    if bare in _DEV_EXACT:
        return True
    if _DEV_TLD.search(bare):
        return True
    return _PRIVATE_IP.match(bare) is not None


def extract_subdomain(host: str, base_domain: str) -> str | None:
    """Extract the subdomain part of a host under ``base_domain``.

    The remainder left after removing ``base_domain`` is the subdomain, with
    a trailing dot trimmed. No label boundary is required, so
    ``schoolexample.com`` under ``example.com`` gives ``school``. Returns None
    for the bare base domain and for hosts not ending with the base domain.
    A first label is never guessed.
    """
    host = strip_port(host)
    if not host or not base_domain:
        return None
    base_domain = base_domain.lower().lstrip(".")
    if not host.endswith(base_domain):
        return None
    subdomain = host[: -len(base_domain)].rstrip(".")
    return subdomain or None


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class IdentificationStrategy(ABC):
    """Base class for all identification strategies."""

    name: str = "strategy"

    @abstractmethod
    def identify(self, view: RequestView) -> TenantKey | None:
        """Return the candidate key for ``view`` or None if absent."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


class SubdomainStrategy(IdentificationStrategy):
    """Identify the tenant from the subdomain of the request host."""

    name = "subdomain"

    def __init__(self, base_domain: str) -> None:
        self.base_domain = base_domain

    def identify(self, view: RequestView) -> TenantKey | None:
        if not view.host or is_dev_host(view.host):
            return None
        subdomain = extract_subdomain(view.host, self.base_domain)
        if subdomain is None:
            return None
        return TenantKey(subdomain, KeyKind.SUBDOMAIN)

    def __repr__(self) -> str:
        return f"<SubdomainStrategy base_domain={self.base_domain!r}>"


class DomainStrategy(IdentificationStrategy):
    """Identify the tenant by its full custom hostname."""

    name = "domain"

    def identify(self, view: RequestView) -> TenantKey | None:
        host = strip_port(view.host)
        if not host:
            return None
        return TenantKey(host, KeyKind.DOMAIN)


class DomainOrSubdomainStrategy(IdentificationStrategy):
    """Try the full domain first, then fall back to the subdomain.

    The fallback is unconditional: whenever the domain lookup finds no
    record, the subdomain key (if any) is tried next.
    """

    name = "domain_or_subdomain"

    def __init__(self, base_domain: str) -> None:
        self._domain = DomainStrategy()
        self._subdomain = SubdomainStrategy(base_domain)

    def identify(self, view: RequestView) -> TenantKey | None:
        domain_key = self._domain.identify(view)
        if domain_key is None:
            return None
        subdomain_key = self._subdomain.identify(view)
        if subdomain_key is None:
            return TenantKey(domain_key.value, KeyKind.DOMAIN, missing_ok=True)
        return TenantKey(domain_key.value, KeyKind.DOMAIN, fallback=subdomain_key)


class PathStrategy(IdentificationStrategy):
    """Identify the tenant from a URI path segment (1-indexed)."""

    name = "path"

    def __init__(self, segment_index: int = 1) -> None:
        if segment_index < 1:
            raise ValueError("segment_index is 1-based")
        self.segment_index = segment_index

    def identify(self, view: RequestView) -> TenantKey | None:
        segments = [s for s in view.path.split("/") if s]
        if len(segments) < self.segment_index:
            return None
        return TenantKey(segments[self.segment_index - 1], KeyKind.SUBDOMAIN)


class HeaderOrQueryStrategy(IdentificationStrategy):
    """Identify the tenant from a header, then from a query parameter.

    Either source can be disabled by passing None.
    """

    name = "request"

    def __init__(self, header: str | None = "X-Tenant", query_param: str | None = "tenant") -> None:
        self.header = header
        self.query_param = query_param

    def identify(self, view: RequestView) -> TenantKey | None:
        if self.header is not None:
            value = (view.header(self.header) or "").strip()
            if value:
                return TenantKey(value, KeyKind.SUBDOMAIN)
        if self.query_param is not None:
            raw = view.query_value(self.query_param)
            value = str(raw).strip() if raw is not None else ""
            if value:
                return TenantKey(value, KeyKind.SUBDOMAIN)
        return None


class ChainStrategy(IdentificationStrategy):
    """Priority chain: the first strategy returning a key wins."""

    name = "chain"

    def __init__(self, strategies: Sequence[IdentificationStrategy]) -> None:
        if not strategies:
            raise ValueError("ChainStrategy needs at least one strategy")
        self.strategies = list(strategies)

    def identify(self, view: RequestView) -> TenantKey | None:
        for strategy in self.strategies:
            key = strategy.identify(view)
            if key is not None:
                logger.debug(f"{strategy.name} identified tenant key {key.value!r}")
                return key
        return None

    def __repr__(self) -> str:
        names = ", ".join(s.name for s in self.strategies)
        return f"<ChainStrategy [{names}]>"


def build_strategy(
    names: Sequence[str],
    settings: Settings,
    base_domain: str | None = None,
) -> IdentificationStrategy:
    """Build a strategy (or chain) from configuration names.

    Args:
        names: Strategy names in priority order.
        settings: Source of header/query/path options.
        base_domain: Already-resolved base domain for host strategies.
            Defaults to the configured value.

    Raises:
        ValueError: On an empty list or an unknown name.
    """
    domain = base_domain if base_domain is not None else settings.TENANTABLE_BASE_DOMAIN
    factories = {
        "subdomain": lambda: SubdomainStrategy(domain),
        "domain": DomainStrategy,
        "domain_or_subdomain": lambda: DomainOrSubdomainStrategy(domain),
        "path": lambda: PathStrategy(settings.TENANTABLE_PATH_SEGMENT),
        "request": lambda: HeaderOrQueryStrategy(
            settings.TENANTABLE_TENANT_HEADER,
            settings.TENANTABLE_TENANT_QUERY_PARAM,
        ),
    }
    if not names:
        raise ValueError("No identification strategy configured")
    strategies = []
    for name in names:
        if name not in factories:
            raise ValueError(f"Unknown identification strategy: {name!r}")
        strategies.append(factories[name]())
    return strategies[0] if len(strategies) == 1 else ChainStrategy(strategies)
