"""Typed ASGI definitions and the request/response helpers of the admin RPC.

The admin RPC is a bare ASGI callable, so it reads bodies and writes JSON
responses itself instead of going through a framework.
"""

import json as json_module
from collections.abc import Awaitable, Callable, Iterable, MutableMapping
from dataclasses import dataclass
from typing import Any, TypeAlias

# Raw ASGI types
Scope: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[MutableMapping[str, Any]]]
Send: TypeAlias = Callable[[MutableMapping[str, Any]], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class HTTPScope:
    """The parts of an HTTP scope the admin RPC looks at."""

    method: str
    path: str
    headers: tuple[tuple[bytes, bytes], ...]
    client: tuple[str, int] | None

    @classmethod
    def from_scope(cls, scope: Scope) -> "HTTPScope":
        client = scope.get("client")
        return cls(
            method=scope.get("method", "GET").upper(),
            path=scope.get("path", "/"),
            headers=tuple(scope.get("headers", ())),
            client=tuple(client) if client else None,
        )

    def header(self, name: str) -> str | None:
        """First value of header *name* (case-insensitive), or ``None``."""
        wanted = name.lower().encode("latin-1")
        for key, value in self.headers:
            if key.lower() == wanted:
                return value.decode("latin-1")
        return None

    @property
    def client_host(self) -> str:
        return self.client[0] if self.client else "unknown"


async def read_body(receive: Receive) -> bytes:
    """Read the full request body from ASGI receive."""
    chunks: list[bytes] = []
    while True:
        message = await receive()
        body = message.get("body", b"")
        if body:
            chunks.append(body)
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


async def send_json(
    send: Send,
    *,
    status: int,
    body: Any,
    headers: Iterable[tuple[str, str]] = (),
) -> None:
    """Send a JSON response over ASGI."""
    payload = json_module.dumps(body, default=str).encode("utf-8")
    await send_bytes(send, status=status, body=payload, content_type="application/json", headers=headers)


async def send_bytes(
    send: Send,
    *,
    status: int,
    body: bytes,
    content_type: str = "text/plain; charset=utf-8",
    headers: Iterable[tuple[str, str]] = (),
) -> None:
    raw_headers: list[tuple[bytes, bytes]] = [
        (b"content-type", content_type.encode("latin-1")),
        (b"content-length", str(len(body)).encode("latin-1")),
    ]
    raw_headers.extend((name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in headers)
    await send({
        "type": "http.response.start",
        "status": status,
        "headers": raw_headers,
    })
    await send({
        "type": "http.response.body",
        "body": body,
    })
