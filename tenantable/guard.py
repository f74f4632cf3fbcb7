"""Tamper guard for client-supplied tenant fields (IDOR protection).

Once a tenant is resolved, any inbound field such as ``tenant_id`` whose
value names a different tenant is removed from the request and audited.
The guard mutates the mapping it is given and returns that same object, so
the request never keeps a second, unsanitised copy.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, MutableMapping

from tenantable.events import EventSink, NullEventSink, TenantTamperingDetected
from tenantable.request import GUEST

logger = logging.getLogger(__name__)

DEFAULT_PROTECTED_FIELDS = ("tenant_id", "school_id", "org_id")


def value_matches_tenant(value: Any, tenant_id: int) -> bool:
    """Whether a submitted value names ``tenant_id``.

    Non-numeric values never match. For multi-valued fields every element
    must match.
    """
    if isinstance(value, (list, tuple)):
        return all(value_matches_tenant(item, tenant_id) for item in value)
    if isinstance(value, bool):
        return False
    try:
        return int(str(value).strip()) == tenant_id
    except ValueError:
        return False


class TamperGuard:
    """Strips protected fields that disagree with the resolved tenant.

    Args:
        protected_fields: Field names to check.
        events: Sink for :class:`TenantTamperingDetected` audit events.
    """

    def __init__(
        self,
        protected_fields: Iterable[str] = DEFAULT_PROTECTED_FIELDS,
        events: EventSink | None = None,
    ) -> None:
        self.protected_fields = tuple(protected_fields)
        self.events = events if events is not None else NullEventSink()

    def sanitize(
        self,
        fields: MutableMapping[str, Any],
        tenant_id: int,
        *,
        caller_id: str | None = None,
        path: str = "",
    ) -> MutableMapping[str, Any]:
        """Remove mismatching protected fields from ``fields`` in place.

        Returns:
            ``fields`` itself.
        """
        caller = caller_id or GUEST
        for name in self.protected_fields:
            if name not in fields:
                continue
            provided = fields[name]
            if value_matches_tenant(provided, tenant_id):
                continue
            del fields[name]
            logger.warning(
                f"Potential tenant tampering: field={name} provided={provided!r} "
                f"actual_tenant_id={tenant_id} caller={caller} path={path}"
            )
            self.events.emit(
                TenantTamperingDetected(
                    field=name,
                    provided_value=provided,
                    actual_tenant_id=tenant_id,
                    caller_id=caller,
                    path=path,
                )
            )
        return fields
