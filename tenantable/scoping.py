"""
Row-level tenant scoping for shared-table models.

:class:`TenantScopedRepository` decorates a plain :class:`SqlRepository` and
confines every operation to the current tenant's rows:

- reads add ``WHERE <column> = :tenant_id``
- inserts stamp the column with the current tenant
- updates never change the column
- deletes only touch the current tenant's rows

Any scoped call without a tenant raises
:class:`~tenantable.exceptions.NoTenantContextError`. The only way around
the filter is the explicit :func:`without_tenant_scope` block.

Example:
    students = TenantScopedRepository(SqlRepository(session, Student))
    with TenancyScope(repository) as scope:
        scope.boot_for_tenant(7)
        students.insert({"name": "Ada"})     # tenant_id=7
        students.find()                      # only tenant 7's rows

    with without_tenant_scope():
        students.find()                      # every tenant's rows
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Callable, Generic, Iterator, TypeVar

from sqlalchemy import Select, inspect, select
from sqlalchemy.orm import Session

from tenantable.exceptions import NoTenantContextError
from tenantable.scope import get_tenant_id

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

_bypass: ContextVar[bool] = ContextVar("tenant_scope_bypass", default=False)


@contextmanager
def without_tenant_scope() -> Iterator[None]:
    """Disable tenant filtering inside the block (superadmin use).

    Restores the previous setting on exit, also when nested.
    """
    token = _bypass.set(True)
    try:
        yield
    finally:
        _bypass.reset(token)


def is_bypassing_tenant_scope() -> bool:
    return _bypass.get()


# ---------------------------------------------------------------------------
# Plain repository
# ---------------------------------------------------------------------------

class SqlRepository(Generic[ModelT]):
    """Minimal CRUD over one ORM model in a caller-owned session.

    The repository flushes but never commits; transaction boundaries stay
    with the caller.
    """

    def __init__(self, session: Session, model: type[ModelT]) -> None:
        self.session = session
        self.model = model

    @property
    def primary_key(self) -> Any:
        return inspect(self.model).primary_key[0]

    def select(self) -> Select:
        return select(self.model)

    def get(self, ident: Any) -> ModelT | None:
        return self.session.get(self.model, ident)

    def find(self, stmt: Select | None = None, **filters: Any) -> list[ModelT]:
        stmt = stmt if stmt is not None else self.select()
        if filters:
            stmt = stmt.filter_by(**filters)
        return list(self.session.scalars(stmt).all())

    def first(self, stmt: Select | None = None, **filters: Any) -> ModelT | None:
        stmt = stmt if stmt is not None else self.select()
        if filters:
            stmt = stmt.filter_by(**filters)
        return self.session.scalars(stmt.limit(1)).first()

    def insert(self, data: dict[str, Any]) -> ModelT:
        obj = self.model(**data)
        self.session.add(obj)
        self.session.flush()
        return obj

    def update(self, obj: ModelT, data: dict[str, Any]) -> ModelT:
        for key, value in data.items():
            setattr(obj, key, value)
        self.session.flush()
        return obj

    def delete(self, obj: ModelT) -> None:
        self.session.delete(obj)
        self.session.flush()


# ---------------------------------------------------------------------------
# Tenant-scoped decorator
# ---------------------------------------------------------------------------

class TenantScopedRepository(Generic[ModelT]):
    """Confines a :class:`SqlRepository` to the current tenant's rows.

    Args:
        inner: Repository to decorate.
        column: Name of the tenant column on the model.
        tenant_id_provider: Returns the current tenant id; defaults to the
            active :class:`~tenantable.scope.TenancyScope`.
    """

    def __init__(
        self,
        inner: SqlRepository[ModelT],
        column: str = "tenant_id",
        tenant_id_provider: Callable[[], int | None] = get_tenant_id,
    ) -> None:
        self.inner = inner
        self.column = column
        self._tenant_id_provider = tenant_id_provider

    def _require_tenant(self, operation: str) -> int:
        tenant_id = self._tenant_id_provider()
        if tenant_id is None:
            raise NoTenantContextError(operation)
        return tenant_id

    def _scoped(self, operation: str) -> Select:
        stmt = self.inner.select()
        if is_bypassing_tenant_scope():
            return stmt
        tenant_id = self._require_tenant(operation)
        return stmt.where(getattr(self.inner.model, self.column) == tenant_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, ident: Any) -> ModelT | None:
        stmt = self._scoped(f"read {self._name}").where(self.inner.primary_key == ident)
        return self.inner.first(stmt)

    def find(self, **filters: Any) -> list[ModelT]:
        return self.inner.find(self._scoped(f"read {self._name}"), **filters)

    def first(self, **filters: Any) -> ModelT | None:
        return self.inner.first(self._scoped(f"read {self._name}"), **filters)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, data: dict[str, Any]) -> ModelT:
        data = dict(data)
        if is_bypassing_tenant_scope():
            if self.column not in data:
                data[self.column] = self._require_tenant(f"insert into {self._name}")
            return self.inner.insert(data)
        tenant_id = self._require_tenant(f"insert into {self._name}")
        provided = data.get(self.column)
        if provided is not None and provided != tenant_id:
            logger.warning(
                f"Overriding {self.column}={provided!r} with {tenant_id} on insert into {self._name}"
            )
        data[self.column] = tenant_id
        return self.inner.insert(data)

    def update(self, ident: Any, data: dict[str, Any]) -> ModelT | None:
        """Update a row of the current tenant; the tenant column is ignored.

        Returns:
            The updated row, or None if the current tenant has no such row.
        """
        obj = self.get(ident)
        if obj is None:
            return None
        changes = {k: v for k, v in data.items() if k != self.column}
        return self.inner.update(obj, changes)

    def delete(self, ident: Any) -> bool:
        """Delete a row of the current tenant.

        A tenant is required even inside :func:`without_tenant_scope`.
        """
        tenant_id = self._require_tenant(f"delete from {self._name}")
        stmt = (
            self.inner.select()
            .where(getattr(self.inner.model, self.column) == tenant_id)
            .where(self.inner.primary_key == ident)
        )
        obj = self.inner.first(stmt)
        if obj is None:
            return False
        self.inner.delete(obj)
        return True

    @property
    def _name(self) -> str:
        return getattr(self.inner.model, "__tablename__", self.inner.model.__name__)
