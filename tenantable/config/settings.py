"""tenantable configuration via environment / .env file."""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Sentinel shipped as the default base domain. A configured value equal to
# this is treated as "not configured" when resolving the base domain.
BASE_DOMAIN_SENTINEL = "localhost"

KNOWN_STRATEGIES = ("subdomain", "domain", "domain_or_subdomain", "path", "request")
KNOWN_ADAPTERS = ("table", "cache", "storage", "session", "logging", "settings", "redis")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Identification ---
    TENANTABLE_BASE_DOMAIN: str = BASE_DOMAIN_SENTINEL
    TENANTABLE_IDENTIFICATION: list[str] = ["subdomain"]
    TENANTABLE_PATH_SEGMENT: int = 1
    TENANTABLE_TENANT_HEADER: str | None = "X-Tenant"
    TENANTABLE_TENANT_QUERY_PARAM: str | None = "tenant"
    TENANTABLE_BYPASS_ROUTES: list[str] = ["api/*", "health", "_health"]

    # --- Security ---
    TENANTABLE_PROTECTED_FIELDS: list[str] = ["tenant_id", "school_id", "org_id"]
    TENANTABLE_REQUIRE_TENANT: bool = True
    TENANTABLE_SUPERADMIN_GROUPS: list[str] = ["superadmin"]
    TENANTABLE_THROW_EXCEPTIONS: bool = False

    # --- Table isolation ---
    TENANTABLE_TABLE_FORMAT: str = "tenant_{id}_{table}"
    TENANTABLE_GLOBAL_TABLES: list[str] = ["tenants", "migrations", "alembic_version"]

    # --- Bootstrap ---
    TENANTABLE_ADAPTERS: list[str] = ["table", "cache", "storage", "session", "logging", "settings"]
    TENANTABLE_STORAGE_ROOT: Path = Path("writable")
    TENANTABLE_SESSION_PATH: str = ""
    TENANTABLE_REDIS_DB_PER_TENANT: bool = False
    TENANTABLE_REDIS_MAX_DATABASE: int = 15

    # --- Tenant registry ---
    TENANTABLE_DATABASE_URL: str = "sqlite:///tenantable.db"

    # --- URLs ---
    TENANTABLE_APP_URL: str = "http://localhost"

    @field_validator("TENANTABLE_IDENTIFICATION")
    @classmethod
    def _known_strategies(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("at least one identification strategy is required")
        unknown = [name for name in v if name not in KNOWN_STRATEGIES]
        if unknown:
            raise ValueError(f"unknown identification strategies: {unknown}")
        return v

    @field_validator("TENANTABLE_ADAPTERS")
    @classmethod
    def _known_adapters(cls, v: list[str]) -> list[str]:
        unknown = [name for name in v if name not in KNOWN_ADAPTERS]
        if unknown:
            raise ValueError(f"unknown bootstrap adapters: {unknown}")
        if len(set(v)) != len(v):
            raise ValueError("bootstrap adapters must be unique")
        return v

    @field_validator("TENANTABLE_TABLE_FORMAT")
    @classmethod
    def _format_has_placeholders(cls, v: str) -> str:
        if "{id}" not in v or "{table}" not in v:
            raise ValueError("table format must contain both {id} and {table}")
        return v

    @field_validator("TENANTABLE_PATH_SEGMENT")
    @classmethod
    def _segment_is_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("path segment index is 1-based")
        return v

    @field_validator("TENANTABLE_BASE_DOMAIN")
    @classmethod
    def _normalize_domain(cls, v: str) -> str:
        return v.strip().lower().lstrip(".")

    @field_validator("TENANTABLE_TENANT_HEADER", "TENANTABLE_TENANT_QUERY_PARAM", mode="before")
    @classmethod
    def _blank_disables(cls, v: str | None) -> str | None:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v


settings = Settings()
