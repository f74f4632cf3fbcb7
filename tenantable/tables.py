"""
Table-name isolation for table-per-tenant schemas.

Logical table names are mapped to physical ones through a template with
``{id}`` and ``{table}`` placeholders::

    students  ->  tenant_7_students

Global tables (the tenant registry, migration bookkeeping) are shared and
never rewritten. Resolving a tenant table without an active tenant raises
:class:`~tenantable.exceptions.NoTenantContextError`; the bare logical name
is never returned in that case.

Example:
    resolver = TableNameResolver()
    resolver.set_tenant(7)
    resolver.resolve("students")                      # "tenant_7_students"
    resolver.extract_tenant_id("tenant_7_students")   # 7
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from tenantable.exceptions import NoTenantContextError

logger = logging.getLogger(__name__)

DEFAULT_TABLE_FORMAT = "tenant_{id}_{table}"
DEFAULT_GLOBAL_TABLES = ("tenants", "migrations", "alembic_version")

_PLACEHOLDER = re.compile(r"(\{id\}|\{table\})")


def compile_table_pattern(template: str) -> re.Pattern[str]:
    """Build the inverse regex of a table-name template.

    Literal parts are escaped, ``{id}`` becomes a numeric capture (repeats
    must match the same digits) and ``{table}`` a greedy wildcard.
    """
    parts = []
    seen_id = False
    for piece in _PLACEHOLDER.split(template):
        if piece == "{id}":
            parts.append("(?P=id)" if seen_id else r"(?P<id>\d+)")
            seen_id = True
        elif piece == "{table}":
            parts.append(".+")
        else:
            parts.append(re.escape(piece))
    return re.compile("^" + "".join(parts) + "$")


def _check_template(template: str) -> None:
    if "{id}" not in template or "{table}" not in template:
        raise ValueError(f"Table format must contain {{id}} and {{table}}: {template!r}")


class TableNameResolver:
    """Maps logical table names to the current tenant's physical tables.

    Resolved names are cached per logical name; the cache is dropped
    whenever the tenant or the template changes.
    """

    def __init__(
        self,
        template: str = DEFAULT_TABLE_FORMAT,
        global_tables: Iterable[str] = DEFAULT_GLOBAL_TABLES,
    ) -> None:
        _check_template(template)
        self._template = template
        self._pattern = compile_table_pattern(template)
        self._global_tables: list[str] = []
        self._tenant_id: int | None = None
        self._cache: dict[str, str] = {}
        for table in global_tables:
            self.add_global_table(table)

    # ------------------------------------------------------------------
    # Tenant
    # ------------------------------------------------------------------

    @property
    def tenant_id(self) -> int | None:
        return self._tenant_id

    def has_tenant(self) -> bool:
        return self._tenant_id is not None

    def set_tenant(self, tenant_id: int) -> "TableNameResolver":
        self._tenant_id = tenant_id
        self._cache.clear()
        return self

    def clear(self) -> "TableNameResolver":
        self._tenant_id = None
        self._cache.clear()
        return self

    # ------------------------------------------------------------------
    # Template / global tables
    # ------------------------------------------------------------------

    @property
    def template(self) -> str:
        return self._template

    def set_template(self, template: str) -> "TableNameResolver":
        _check_template(template)
        self._template = template
        self._pattern = compile_table_pattern(template)
        self._cache.clear()
        return self

    @property
    def global_tables(self) -> tuple[str, ...]:
        return tuple(self._global_tables)

    def add_global_table(self, table: str) -> "TableNameResolver":
        if table not in self._global_tables:
            self._global_tables.append(table)
            self._cache.pop(table, None)
        return self

    def is_global_table(self, table: str) -> bool:
        return table in self._global_tables

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, logical: str) -> str:
        """Physical table name for ``logical`` under the current tenant.

        Raises:
            NoTenantContextError: ``logical`` is not global and no tenant
                is set.
        """
        if self.is_global_table(logical):
            return logical
        cached = self._cache.get(logical)
        if cached is not None:
            return cached
        if self._tenant_id is None:
            raise NoTenantContextError(f"determine table name for '{logical}'")
        physical = self._template.replace("{id}", str(self._tenant_id)).replace("{table}", logical)
        self._cache[logical] = physical
        return physical

    def resolve_many(self, names: Iterable[str]) -> dict[str, str]:
        return {name: self.resolve(name) for name in names}

    def tenant_tables(self, names: Iterable[str]) -> list[str]:
        """Physical names of ``names`` for the current tenant.

        Raises:
            NoTenantContextError: No tenant is set.
        """
        if self._tenant_id is None:
            raise NoTenantContextError("list tenant tables")
        return [self.resolve(name) for name in names]

    def extract_tenant_id(self, physical: str) -> int | None:
        """Recover the tenant id from a physical table name, or None."""
        match = self._pattern.match(physical)
        if match is None:
            return None
        return int(match.group("id"))

    def tenant_ids_in(self, table_names: Iterable[str]) -> list[int]:
        """Distinct tenant ids present in a table listing, sorted.

        Example:
            resolver.tenant_ids_in(inspect(engine).get_table_names())
        """
        ids = {self.extract_tenant_id(name) for name in table_names}
        ids.discard(None)
        return sorted(ids)  # type: ignore[arg-type]

    def __repr__(self) -> str:
        return f"<TableNameResolver template={self._template!r} tenant_id={self._tenant_id}>"
