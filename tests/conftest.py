"""
Test configuration and fixtures.

Provides:
- In-memory state store and session store
- A scripted backend (httpx.MockTransport) that records every request
- Gateway wired to the scripted backend with a signed-in session
"""
from typing import Any, AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio

from ocm.schemas.auth import Identity, Session
from ocm.services.config_service import GatewayConfig
from ocm.services.gateway import Gateway
from ocm.services.session_service import MemoryStore, SessionStore

BASE_URL = "https://gateway.test"
ANON_KEY = "anon-test-key"
ACCESS_TOKEN = "user-access-token"

Reply = Any  # (status, json) tuple, httpx.Response, Exception, or callable(request) -> Reply


class FakeBackend:
    """
    Scripted backend keyed by (method, path).

    Each route holds a queue of replies; the last reply repeats once the queue
    is drained. Unrouted requests answer 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Reply]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *replies: Reply) -> "FakeBackend":
        self.routes.setdefault((method.upper(), path), []).extend(replies)
        return self

    def rest(self, method: str, resource: str, *replies: Reply) -> "FakeBackend":
        return self.add(method, f"/rest/v1/{resource}", *replies)

    def rpc(self, function_name: str, *replies: Reply) -> "FakeBackend":
        return self.add("POST", f"/rest/v1/rpc/{function_name}", *replies)

    def auth(self, method: str, endpoint: str, *replies: Reply) -> "FakeBackend":
        return self.add(method, f"/auth/v1/{endpoint}", *replies)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method.upper() and request.url.path == path
        ]

    def rpc_calls(self, function_name: str) -> list[httpx.Request]:
        return self.calls("POST", f"/rest/v1/rpc/{function_name}")

    def _next(self, key: tuple[str, str]) -> Reply:
        queue = self.routes.get(key)
        if not queue:
            return (404, {"message": "route not scripted"})
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self._next((request.method, request.url.path))
        if callable(reply):
            reply = reply(request)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        status, payload = reply
        if payload is None:
            return httpx.Response(status, request=request)
        return httpx.Response(status, json=payload, request=request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_identity(**overrides: Any) -> Identity:
    values: dict[str, Any] = {
        "email": "owner@example.com",
        "role": "owner",
        "org_id": "org-1",
        "org_name": "Acme",
        "org_not_set": False,
        "platform_admin": False,
    }
    values.update(overrides)
    return Identity(**values)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sessions(store: MemoryStore) -> SessionStore:
    session_store = SessionStore(store)
    session_store.save(Session(access_token=ACCESS_TOKEN, refresh_token="refresh"))
    return session_store


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(base_url=BASE_URL, anon_key=ANON_KEY)


@pytest_asyncio.fixture
async def gateway(
    backend: FakeBackend, sessions: SessionStore, gateway_config: GatewayConfig
) -> AsyncGenerator[Gateway, None]:
    async with Gateway(gateway_config, sessions, transport=backend.transport) as client:
        yield client


@pytest.fixture
def identity_factory() -> Callable[..., Identity]:
    return make_identity
