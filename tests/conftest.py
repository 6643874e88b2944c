# tests/conftest.py

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from eventhub.config import ClientSettings, UpdateMode
from eventhub.event_client import EventStreamClient
from eventhub.models import Event, EventStatus, Stats

# Import 'app' and the global 'store' of the mock service
from mock_service import app, store


class FakeService:
    """In-process stand-in for EventServiceClient; records every call."""

    def __init__(self):
        self.events = []
        self.stats = Stats()
        self.calls = []
        self.failures = {}
        self.next_id = 1
        self.closed = False

    def fail(self, operation, exc):
        self.failures[operation] = exc

    def _call(self, operation, *args):
        self.calls.append((operation,) + args)
        if operation in self.failures:
            raise self.failures[operation]

    def called(self, operation):
        return [c for c in self.calls if c[0] == operation]

    async def list_events(self):
        self._call("list_events")
        return list(self.events)

    async def get_stats(self):
        self._call("get_stats")
        return self.stats

    async def create_event(self, request):
        self._call("create_event", request)
        event = Event(
            id=self.next_id,
            title=request.title,
            description=request.description,
            source=request.source,
            type=request.type.value,
            status=EventStatus.PENDING,
        )
        self.next_id += 1
        self.events.insert(0, event)
        self.stats = Stats(total=len(self.events), pending=len(self.events))
        return event

    async def delete_all(self):
        self._call("delete_all")
        self.events = []
        self.stats = Stats()

    async def aclose(self):
        self.closed = True


def make_event(event_id, title=None, status=EventStatus.PENDING, **extra):
    return Event(
        id=event_id,
        title=title or f"event {event_id}",
        type="USER_ACTION",
        status=status,
        **extra,
    )


@pytest.fixture
def settings():
    # Long interval: unit tests drive refreshes themselves
    return ClientSettings(
        api_url="",
        update_mode=UpdateMode.POLL,
        poll_interval=60.0,
        notification_ttl=0.05,
        reconnect_delay=0.01,
    )


@pytest.fixture
def fake_service():
    return FakeService()


@pytest_asyncio.fixture
async def fake_client(settings, fake_service):
    client = EventStreamClient(settings, service=fake_service)
    yield client
    await client.stop()


@pytest_asyncio.fixture(scope="function")
async def service_http():
    """
    HTTP client wired to the mock service, with its state reset
    BEFORE and AFTER each test.
    """
    store.reset_for_testing()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    store.reset_for_testing()


@pytest.fixture
def service_store():
    return store


@pytest.fixture(name="make_event")
def make_event_fixture():
    return make_event
