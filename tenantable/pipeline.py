"""
Request pipeline: identify, boot, guard, release.

:class:`TenancyPipeline` is the framework-neutral sequence run around every
request handler::

    bypass? -> identify + resolve -> boot -> require tenant -> tamper guard
    -> handler -> shutdown + clear

:class:`TenancyMiddleware` wraps it as raw ASGI middleware with no framework
dependency.

Example:
    pipeline = TenancyPipeline(repository, events=dispatcher)

    result = pipeline.run(view, lambda scope, view: render(view))
    if isinstance(result, TenancyRejection):
        return result.status, result.message

    app = TenancyMiddleware(app, pipeline)
"""

from __future__ import annotations

import fnmatch
import logging
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from tenantable.config.settings import Settings, settings as default_settings
from tenantable.context import resolve_base_domain
from tenantable.events import EventSink, NullEventSink
from tenantable.exceptions import TenantInactiveError, TenantNotFoundError
from tenantable.guard import TamperGuard
from tenantable.identification import IdentificationStrategy, build_strategy
from tenantable.repository import TenantRepository
from tenantable.request import CallerIdentity, RequestView, encode_query_string
from tenantable.scope import TenancyScope

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TenancyRejection:
    """Short-circuit response produced by the pipeline."""

    status: int
    message: str


NOT_FOUND = TenancyRejection(404, "Tenant not found")
INACTIVE = TenancyRejection(403, "Tenant is inactive")
NO_TENANT = TenancyRejection(403, "No tenant context")


class TenancyPipeline:
    """Runs identification, boot and tamper checks for a request.

    Args:
        repository: Tenant lookups.
        config: Settings; defaults to the module-level settings.
        events: Sink for lifecycle and tampering events.
        strategy: Identification strategy; built from
            ``TENANTABLE_IDENTIFICATION`` when omitted.
        base_domain: Explicit base domain override.
    """

    def __init__(
        self,
        repository: TenantRepository,
        config: Settings | None = None,
        events: EventSink | None = None,
        strategy: IdentificationStrategy | None = None,
        base_domain: str | None = None,
    ) -> None:
        self.repository = repository
        self.config = config or default_settings
        self.events = events if events is not None else NullEventSink()
        self.base_domain = resolve_base_domain(base_domain, self.config)
        self.strategy = strategy or build_strategy(
            self.config.TENANTABLE_IDENTIFICATION, self.config, base_domain=self.base_domain
        )
        self.guard = TamperGuard(self.config.TENANTABLE_PROTECTED_FIELDS, events=self.events)

    def open_scope(self) -> TenancyScope:
        return TenancyScope(
            self.repository,
            config=self.config,
            events=self.events,
            base_domain=self.base_domain,
        )

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def is_bypassed(self, path: str) -> bool:
        """Whether ``path`` matches a bypass route (glob, with or without ``/``)."""
        bare = path.strip("/")
        for pattern in self.config.TENANTABLE_BYPASS_ROUTES:
            if fnmatch.fnmatchcase(path, pattern) or fnmatch.fnmatchcase(bare, pattern):
                return True
        return False

    def is_superadmin(self, caller: CallerIdentity) -> bool:
        return caller.in_any_group(self.config.TENANTABLE_SUPERADMIN_GROUPS)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def prepare(self, scope: TenancyScope, view: RequestView) -> TenancyRejection | None:
        """Identify, boot and guard ``view`` inside ``scope``.

        Returns:
            None to continue with the handler, or a rejection.

        Raises:
            TenantNotFoundError, TenantInactiveError: Only when
                ``TENANTABLE_THROW_EXCEPTIONS`` is set.
        """
        if self.is_bypassed(view.path):
            logger.debug(f"Tenancy bypassed for {view.path}")
            return None

        try:
            scope.detect(view, self.strategy)
        except TenantNotFoundError as exc:
            logger.info(f"Rejecting {view.host}{view.path}: {exc}")
            if self.config.TENANTABLE_THROW_EXCEPTIONS:
                raise
            return NOT_FOUND
        except TenantInactiveError as exc:
            logger.info(f"Rejecting {view.host}{view.path}: {exc}")
            if self.config.TENANTABLE_THROW_EXCEPTIONS:
                raise
            return INACTIVE

        if scope.has_tenant():
            scope.boot()

        if self.is_superadmin(view.caller):
            return None

        tenant_id = scope.tenant_id
        if tenant_id is None:
            return NO_TENANT if self.config.TENANTABLE_REQUIRE_TENANT else None

        self.guard.sanitize(view.query, tenant_id, caller_id=view.caller.caller_id, path=view.path)
        self.guard.sanitize(view.form, tenant_id, caller_id=view.caller.caller_id, path=view.path)
        return None

    def run(
        self,
        view: RequestView,
        handler: Callable[[TenancyScope, RequestView], T],
    ) -> T | TenancyRejection:
        """Run ``handler`` inside a fresh scope, or return the rejection."""
        with self.open_scope() as scope:
            rejection = self.prepare(scope, view)
            if rejection is not None:
                return rejection
            return handler(scope, view)


# ---------------------------------------------------------------------------
# ASGI
# ---------------------------------------------------------------------------

class TenancyMiddleware:
    """ASGI middleware running :class:`TenancyPipeline` per HTTP request.

    The active scope is available to the app through the ambient helpers in
    :mod:`tenantable.scope` and as ``scope["tenancy"]``. A query string
    sanitised by the tamper guard replaces ``scope["query_string"]``.
    Request bodies are not parsed here; apps that read form data should
    pass it through ``pipeline.guard.sanitize`` themselves.

    Args:
        app: The ASGI application to wrap.
        pipeline: Pipeline to run.
        identity_resolver: Maps the ASGI scope to a CallerIdentity.
    """

    def __init__(
        self,
        app: Any,
        pipeline: TenancyPipeline,
        identity_resolver: Callable[[dict[str, Any]], CallerIdentity] | None = None,
    ) -> None:
        self.app = app
        self.pipeline = pipeline
        self.identity_resolver = identity_resolver

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        caller = self.identity_resolver(scope) if self.identity_resolver else CallerIdentity()
        view = RequestView.from_asgi_scope(scope, caller)
        original_query = {k: list(v) for k, v in view.query.items()}

        async with self.pipeline.open_scope() as tenancy:
            rejection = self.pipeline.prepare(tenancy, view)
            if rejection is not None:
                await self._reject(send, rejection)
                return

            scope = dict(scope)
            scope["tenancy"] = tenancy
            if view.query != original_query:
                scope["query_string"] = encode_query_string(view.query)
            await self.app(scope, receive, send)

    @staticmethod
    async def _reject(send: Callable[..., Any], rejection: TenancyRejection) -> None:
        body = rejection.message.encode("utf-8")
        await send(
            {
                "type": "http.response.start",
                "status": rejection.status,
                "headers": [
                    (b"content-type", b"text/plain; charset=utf-8"),
                    (b"content-length", str(len(body)).encode("latin-1")),
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
