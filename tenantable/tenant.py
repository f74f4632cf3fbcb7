"""
Tenant record for tenantable.

A tenant is one customer organization sharing the deployment. The record is
read-only from the point of view of this package: it is provisioned and
updated elsewhere and only looked up here, by id, subdomain or custom domain.

Example:
    from tenantable.tenant import TenantRecord

    tenant = TenantRecord(
        id=1,
        name="School Alpha",
        subdomain="school-alpha",
        settings={"theme": "dark", "mail": {"from": "office@alpha.edu"}},
    )
    tenant.display_name  # "School Alpha"
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

# Subdomain rules: lowercase alphanumerics with inner hyphens, 2-50 chars.
SUBDOMAIN_MIN_LENGTH = 2
SUBDOMAIN_MAX_LENGTH = 50
SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$")


def is_valid_subdomain(value: str) -> bool:
    """Check a subdomain against the tenant subdomain rules.

    Args:
        value: Candidate subdomain.

    Returns:
        True if the value may be stored as a tenant subdomain.
    """
    if not SUBDOMAIN_MIN_LENGTH <= len(value) <= SUBDOMAIN_MAX_LENGTH:
        return False
    return SUBDOMAIN_PATTERN.match(value) is not None


def decode_settings(raw: Any) -> dict[str, Any]:
    """Decode a settings blob that may be stored as JSON text.

    Args:
        raw: None, a mapping, or a JSON string.

    Returns:
        A plain dict. Undecodable or non-object values yield an empty dict.
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, (str, bytes)):
        try:
            decoded = json.loads(raw)
        except ValueError:
            return {}
        return decoded if isinstance(decoded, dict) else {}
    return {}


@dataclass
class TenantRecord:
    """A tenant (organization) known to the deployment.

    Attributes:
        id: Positive integer id. Stable and never reused.
        name: Human-readable display name.
        subdomain: Unique subdomain used for host-based identification.
        domain: Unique custom hostname used for domain identification.
        is_active: Whether the tenant may be resolved. Defaults to True.
        settings: Opaque per-tenant settings (JSON-like).
        database_host: Host of an optional dedicated database.
        database_username: User for the dedicated database.
        database_password: Password for the dedicated database.
        database_name: Name of the dedicated database.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    id: int
    name: str = ""
    subdomain: str | None = None
    domain: str | None = None
    is_active: bool = True
    settings: dict[str, Any] = field(default_factory=dict)
    database_host: str | None = None
    database_username: str | None = None
    database_password: str | None = field(default=None, repr=False)
    database_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        """Validate identity fields."""
        if isinstance(self.id, bool) or not isinstance(self.id, int) or self.id < 1:
            raise ValueError(f"Tenant id must be a positive integer, got {self.id!r}")
        if self.subdomain is not None and not is_valid_subdomain(self.subdomain):
            raise ValueError(f"Invalid tenant subdomain: {self.subdomain!r}")
        if self.domain is not None:
            self.domain = self.domain.lower()
        self.settings = decode_settings(self.settings)

    @property
    def display_name(self) -> str:
        """Name, else subdomain, else a generic label."""
        return self.name or self.subdomain or f"tenant #{self.id}"

    @property
    def has_dedicated_database(self) -> bool:
        """Whether connection fields for a dedicated database are set."""
        return bool(self.database_name)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TenantRecord":
        """Build a record from a row-like mapping.

        Unknown keys are ignored, ``is_active`` is coerced to bool and a
        JSON-encoded ``settings`` column is decoded.

        Args:
            data: Mapping with at least an ``id`` key.

        Returns:
            A new TenantRecord.
        """
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            subdomain=data.get("subdomain") or None,
            domain=data.get("domain") or None,
            is_active=bool(data.get("is_active", True)),
            settings=decode_settings(data.get("settings")),
            database_host=data.get("database_host"),
            database_username=data.get("database_username"),
            database_password=data.get("database_password"),
            database_name=data.get("database_name"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary.

        The database password is never included.

        Returns:
            Dictionary representation of the record.
        """
        return {
            "id": self.id,
            "name": self.name,
            "subdomain": self.subdomain,
            "domain": self.domain,
            "is_active": self.is_active,
            "settings": self.settings,
            "database_host": self.database_host,
            "database_username": self.database_username,
            "database_name": self.database_name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
