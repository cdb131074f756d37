from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from starlette.testclient import TestClient

from hrdirectory.core.dependencies import get_directory_cache
from hrdirectory.main import app
from hrdirectory.models.credentials import DirectoryCredentials
from hrdirectory.models.employee import RawEmployeeRecord
from hrdirectory.models.named_list import NamedList, NamedListItem
from hrdirectory.services.directory_cache import DirectoryCache, RefreshPolicy
from hrdirectory.services.snapshot_store import JsonSnapshotStore

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeDirectoryClient:
    """In-memory directory with call counters.

    ``gate`` holds bulk fetches open, ``employee_gate`` holds point fetches open.
    """

    def __init__(self) -> None:
        self.employees: dict[str, RawEmployeeRecord] = {}
        self.named_lists: dict[str, NamedList] = {}
        self.calls: dict[str, int] = {"employee": 0, "all": 0, "named_list": 0, "named_lists": 0}
        self.fail_all = False
        self.gate: asyncio.Event | None = None
        self.employee_gate: asyncio.Event | None = None
        self.connected = True

    def add(self, **fields: str) -> RawEmployeeRecord:
        record = RawEmployeeRecord.model_validate(fields)
        self.employees[record.email.lower()] = record
        return record

    async def fetch_employee(self, credentials, identity):
        self.calls["employee"] += 1
        if self.employee_gate is not None:
            await self.employee_gate.wait()
        await asyncio.sleep(0)
        return self.employees.get(identity.lower())

    async def fetch_all_employees(self, credentials):
        self.calls["all"] += 1
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if self.fail_all:
            return []
        return list(self.employees.values())

    async def fetch_named_list(self, credentials, category):
        self.calls["named_list"] += 1
        await asyncio.sleep(0)
        return self.named_lists.get(category)

    async def fetch_named_lists(self, credentials):
        self.calls["named_lists"] += 1
        await asyncio.sleep(0)
        return list(self.named_lists.values())

    async def check_connection(self, credentials):
        return self.connected


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _directory_settings(tmp_path):
    from hrdirectory.core.config import settings

    original_token = settings.DIRECTORY_API_TOKEN
    original_path = settings.CACHE_SNAPSHOT_PATH
    settings.DIRECTORY_API_TOKEN = ""
    settings.CACHE_SNAPSHOT_PATH = str(tmp_path / "lifespan_snapshot.json")
    yield
    settings.DIRECTORY_API_TOKEN = original_token
    settings.CACHE_SNAPSHOT_PATH = original_path


@pytest.fixture
def credentials():
    return DirectoryCredentials(token=SecretStr("secret-token"), base_url="https://directory.example.com/v1")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def departments():
    return NamedList(
        name="departments",
        items=(
            NamedListItem(
                id="D0",
                name="R&D",
                value="rnd",
                children=(
                    NamedListItem(id="D1", name="Engineering", value="engineering"),
                    NamedListItem(id="D2", name="Research", value="research"),
                ),
            ),
            NamedListItem(id="D3", name="Sales", value="sales"),
        ),
    )


@pytest.fixture
def titles():
    return NamedList(
        name="work titles",
        items=(
            NamedListItem(id="T1", name="Software Engineer", value="swe"),
            NamedListItem(id="T2", name="Engineering Manager", value="em"),
        ),
    )


@pytest.fixture
def sites():
    return NamedList(
        name="sites",
        items=(
            NamedListItem(id="S1", name="Berlin", value="berlin"),
            NamedListItem(id="S2", name="Amsterdam", value="amsterdam"),
        ),
    )


@pytest.fixture
def fake_client(departments, titles, sites):
    client = FakeDirectoryClient()
    client.named_lists = {"departments": departments, "work titles": titles, "sites": sites}
    client.add(email="Jane.Doe@Example.com", displayName="Jane Doe", department="D1", title="T1", site="S1")
    client.add(email="john.smith@example.com", displayName="John Smith", department="D3", title="T2")
    return client


@pytest.fixture
def snapshot_store(tmp_path):
    return JsonSnapshotStore(tmp_path / "directory_cache.json")


@pytest.fixture
def make_cache(fake_client, snapshot_store, credentials, clock):
    def _make(policy: RefreshPolicy = RefreshPolicy.EAGER, **kwargs) -> DirectoryCache:
        kwargs.setdefault("credentials", credentials)
        kwargs.setdefault("clock", clock)
        client = kwargs.pop("client", fake_client)
        store = kwargs.pop("store", snapshot_store)
        return DirectoryCache(client, store, policy=policy, **kwargs)

    return _make


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def cached_client(make_cache):
    cache = make_cache()
    app.dependency_overrides[get_directory_cache] = lambda: cache
    with TestClient(app) as c:
        c.cache = cache
        yield c
    app.dependency_overrides.clear()
