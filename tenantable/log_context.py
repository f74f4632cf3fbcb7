"""Tenant correlation for log records.

The logging adapter stores ``{tenant_id, tenant_name}`` in a ContextVar;
:class:`TenantLogFilter` copies it onto every :class:`logging.LogRecord` so
formatters can use ``%(tenant_id)s`` and ``%(tenant_name)s``.

Example:
    configure_logging(logging.INFO)
    logging.getLogger("app").info("hello")
    # 2026-01-01 12:00:00 INFO [tenant=7] app: hello
"""

from __future__ import annotations

import logging
from contextvars import ContextVar, Token
from typing import Any

_log_context: ContextVar[dict[str, Any] | None] = ContextVar("tenant_log_context", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s [tenant=%(tenant_id)s] %(name)s: %(message)s"


def get_log_context() -> dict[str, Any] | None:
    """Current ``{tenant_id, tenant_name}`` mapping, or None outside a tenant."""
    value = _log_context.get()
    return dict(value) if value is not None else None


def set_log_context(value: dict[str, Any] | None) -> Token[dict[str, Any] | None]:
    return _log_context.set(dict(value) if value is not None else None)


class TenantLogFilter(logging.Filter):
    """Adds ``tenant_id`` and ``tenant_name`` attributes to each record.

    Records outside a tenant get ``-`` for both. Never filters anything out.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get() or {}
        record.tenant_id = context.get("tenant_id", "-")
        record.tenant_name = context.get("tenant_name", "-")
        return True


def configure_logging(level: int = logging.INFO, fmt: str = LOG_FORMAT) -> logging.Handler:
    """Install a stream handler with tenant correlation on the root logger.

    Calling it again replaces the handler installed by the previous call.

    Returns:
        The installed handler.
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_tenantable", False):
            root.removeHandler(existing)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    handler.addFilter(TenantLogFilter())
    handler._tenantable = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)
    return handler
