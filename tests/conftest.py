"""Pytest fixtures wiring the client layer to the in-memory development backend."""

import httpx
import pytest
import pytest_asyncio

from userhub.app import UserStore, create_app
from userhub.core.http import RequestDispatcher
from userhub.core.models import Role
from userhub.services.user_service import UserService


BASE_URL = "http://testserver"


@pytest.fixture
def store():
    return UserStore()


@pytest.fixture
def seeded_store(store):
    store.create("Alice Admin", "alice@example.com", Role.ADMIN)
    store.create("Bob User", "bob@example.com", Role.USER)
    store.create("Gina Guest", "gina@example.org", Role.GUEST)
    store.create("Carol Admin", "carol@example.com", Role.ADMIN)
    return store


@pytest.fixture
def sent():
    """(method, path) of every request the client sends, in order."""
    return []


@pytest_asyncio.fixture
async def client(seeded_store, sent):
    async def record(request):
        sent.append((request.method, request.url.path))

    transport = httpx.ASGITransport(app=create_app(seeded_store))
    async with httpx.AsyncClient(transport=transport, base_url=BASE_URL, event_hooks={"request": [record]}) as c:
        yield c


@pytest.fixture
def service(client):
    return UserService(RequestDispatcher(timeout_ms=2000, client=client), base_url=BASE_URL)


@pytest.fixture
def mock_dispatcher():
    """Build a dispatcher whose requests are answered by ``handler`` instead of a server."""

    def build(handler, timeout_ms=2000):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return RequestDispatcher(timeout_ms=timeout_ms, client=client)

    return build
