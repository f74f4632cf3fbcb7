"""Tenancy lifecycle and audit events.

Events are plain frozen dataclasses handed to an :class:`EventSink`. Delivery
is synchronous and in-process; anything fancier belongs to the application's
own bus, which only needs an ``emit(event)`` method.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable

from tenantable.tenant import TenantRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TenancyInitialized:
    """A unit of work finished booting for a real tenant."""

    tenant_id: int
    tenant: TenantRecord


@dataclass(frozen=True)
class TenancyEnded:
    """A unit of work is shutting down its tenant subsystems.

    ``tenant_id`` is None when nothing had been booted.
    """

    tenant_id: int | None
    tenant: TenantRecord | None


@dataclass(frozen=True)
class TenantTamperingDetected:
    """A client-supplied tenant field disagreed with the resolved tenant."""

    field: str
    provided_value: Any
    actual_tenant_id: int
    caller_id: str
    path: str


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------

@runtime_checkable
class EventSink(Protocol):
    def emit(self, event: object) -> None: ...


class NullEventSink:
    """Sink that drops every event."""

    def emit(self, event: object) -> None:
        return None


class EventDispatcher:
    """Synchronous dispatcher with per-event-type listeners.

    Listeners registered for a base class also receive subclasses. A
    listener that raises propagates to the emitter.

    Example:
        events = EventDispatcher()
        events.listen(TenancyInitialized, lambda e: print(e.tenant_id))
        events.emit(TenancyInitialized(1, tenant))
    """

    def __init__(self) -> None:
        self._listeners: dict[type, list[Callable[[Any], None]]] = defaultdict(list)
        self.history: list[object] = []
        self.keep_history = False

    def listen(self, event_type: type, listener: Callable[[Any], None]) -> Callable[[Any], None]:
        self._listeners[event_type].append(listener)
        return listener

    def forget(self, event_type: type, listener: Callable[[Any], None]) -> None:
        if listener in self._listeners.get(event_type, []):
            self._listeners[event_type].remove(listener)

    def emit(self, event: object) -> None:
        if self.keep_history:
            self.history.append(event)
        for event_type, listeners in list(self._listeners.items()):
            if isinstance(event, event_type):
                for listener in list(listeners):
                    listener(event)
        logger.debug(f"Emitted {type(event).__name__}")
