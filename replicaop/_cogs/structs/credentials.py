"""
Authentication-related structures.

Only the rudimentary authentication is supported: the information passed
to the HTTP protocol and TCP/SSL connection only, i.e. everything usable
in a generic HTTP client, and nothing more than that:

* TCP server host & port.
* SSL verification/ignorance flag.
* SSL certificate authority.
* SSL client certificate and its private key.
* HTTP ``Authorization: Basic username:password``.
* HTTP ``Authorization: Bearer token`` (or other schemes: Bearer, Digest, etc).
* URL's default namespace for the cases when this is implied.

.. seealso::
    :mod:`replicaop._cogs.clients.auth` and :mod:`replicaop._core.intents.piggybacking`.
"""
import asyncio
import dataclasses
from collections.abc import Callable
from typing import Any, Generic, TypeVar


class LoginError(Exception):
    """ Raised when the operator cannot login to the API. """


@dataclasses.dataclass(frozen=True)
class ConnectionInfo:
    """
    A single endpoint with specific credentials and connection flags to use.
    """
    server: str  # e.g. "https://localhost:443"
    ca_path: str | None = None
    ca_data: bytes | None = None
    insecure: bool | None = None
    username: str | None = None
    password: str | None = None
    scheme: str | None = None  # RFC-7235/5.1: e.g. Bearer, Basic, Digest, etc.
    token: str | None = None
    certificate_path: str | None = None
    certificate_data: bytes | None = None
    private_key_path: str | None = None
    private_key_data: bytes | None = None
    default_namespace: str | None = None
    priority: int = 0


_T = TypeVar('_T')


class Vault(Generic[_T]):
    """
    A store for the connection info and the objects derived from it.

    The derived object (usually, an API context with an HTTP session) is
    created lazily on the first use, and strictly in the running event loop,
    so that the vault itself can be created and populated outside of any loop.
    It is then cached for all consequent uses until the vault is closed.
    """

    def __init__(self, info: ConnectionInfo) -> None:
        super().__init__()
        self._info = info
        self._cached: _T | None = None
        self._lock = asyncio.Lock()

    @property
    def info(self) -> ConnectionInfo:
        return self._info

    async def extended(self, factory: Callable[[ConnectionInfo], _T]) -> _T:
        async with self._lock:
            if self._cached is None:
                self._cached = factory(self._info)
            return self._cached

    async def close(self) -> None:
        async with self._lock:
            cached: Any = self._cached
            self._cached = None
            if cached is not None and hasattr(cached, 'close'):
                await cached.close()
