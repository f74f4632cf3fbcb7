"""tenantable configuration -- pydantic-settings backed, read-only at runtime."""

from .settings import (
    BASE_DOMAIN_SENTINEL,
    KNOWN_ADAPTERS,
    KNOWN_STRATEGIES,
    Settings,
    settings,
)

__all__ = [
    "BASE_DOMAIN_SENTINEL",
    "KNOWN_ADAPTERS",
    "KNOWN_STRATEGIES",
    "Settings",
    "settings",
]
