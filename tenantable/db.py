"""SQLAlchemy declarative base and engine factory for the tenant registry."""

from __future__ import annotations

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


class Base(DeclarativeBase):
    pass


def make_engine(url: str, **kwargs) -> Engine:
    """Create a synchronous engine for the tenant registry.

    Tenant lookups are point reads on a read-mostly table, so a plain
    synchronous engine is used.
    """
    return create_engine(url, future=True, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)
