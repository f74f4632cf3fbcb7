"""Transport-neutral view of an inbound request.

Identification strategies and the tamper guard only ever see a
:class:`RequestView`, never the framework's request object. ``query`` and
``form`` are the live, mutable mappings the rest of the request reads from,
so sanitising them in place is visible downstream.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, MutableMapping
from urllib.parse import parse_qs, urlencode

GUEST = "guest"


@dataclass(frozen=True)
class CallerIdentity:
    """Who is making the request, as far as the auth layer told us."""

    caller_id: str | None = None
    groups: frozenset[str] = frozenset()

    def in_any_group(self, groups: Iterable[str]) -> bool:
        return not self.groups.isdisjoint(groups)


class Headers(Mapping[str, str]):
    """Case-insensitive, read-only header mapping."""

    def __init__(self, items: Mapping[str, str] | Iterable[tuple[str, str]] = ()) -> None:
        pairs = items.items() if isinstance(items, Mapping) else items
        self._items: dict[str, str] = {}
        for key, value in pairs:
            self._items[key.lower()] = value

    @classmethod
    def from_asgi(cls, raw: Iterable[tuple[bytes, bytes]]) -> "Headers":
        return cls((k.decode("latin-1"), v.decode("latin-1")) for k, v in raw)

    def __getitem__(self, key: str) -> str:
        return self._items[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._items

    def __iter__(self):
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


def first_value(value: Any) -> Any:
    """Return the first element of a multi-valued field, or the value itself."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def parse_query_string(query_string: bytes | str) -> dict[str, list[str]]:
    if isinstance(query_string, bytes):
        query_string = query_string.decode("latin-1")
    return parse_qs(query_string, keep_blank_values=True)


def encode_query_string(query: Mapping[str, Any]) -> bytes:
    return urlencode(query, doseq=True).encode("latin-1")


@dataclass
class RequestView:
    """Addressing information and client-supplied fields of one request.

    Attributes:
        host: Value of the Host header, possibly with a port.
        path: URI path, with or without a leading slash.
        headers: Case-insensitive request headers.
        query: Mutable query parameters (values may be lists).
        form: Mutable body parameters (values may be lists).
        caller: Identity supplied by the authentication layer.
    """

    host: str = ""
    path: str = "/"
    headers: Headers = field(default_factory=Headers)
    query: MutableMapping[str, Any] = field(default_factory=dict)
    form: MutableMapping[str, Any] = field(default_factory=dict)
    caller: CallerIdentity = field(default_factory=CallerIdentity)

    def __post_init__(self) -> None:
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)

    def header(self, name: str) -> str | None:
        return self.headers.get(name)

    def query_value(self, name: str) -> Any:
        return first_value(self.query.get(name))

    @classmethod
    def from_asgi_scope(
        cls,
        scope: Mapping[str, Any],
        caller: CallerIdentity | None = None,
    ) -> "RequestView":
        """Build a view from an ASGI HTTP scope.

        The host comes from the Host header, falling back to ``scope["server"]``.
        """
        headers = Headers.from_asgi(scope.get("headers", []))
        host = headers.get("host", "")
        if not host and scope.get("server"):
            server_host, server_port = scope["server"]
            host = f"{server_host}:{server_port}" if server_port else str(server_host)
        return cls(
            host=host,
            path=scope.get("path", "/") or "/",
            headers=headers,
            query=parse_query_string(scope.get("query_string", b"")),
            caller=caller or CallerIdentity(),
        )
