"""
Test fixtures for the data access layer.

Every test gets its own stores. The remote store is an in-memory PostgREST served
through httpx.MockTransport, so nothing leaves the process.
"""
import pytest

from immogest.config import AppConfig
from immogest.data.connection import RemoteStoreClient
from immogest.data.local_store import LocalStore
from immogest.data.mock_data import demo_dataset
from immogest.data.service import DataService
from tests.fake_remote import FakePostgrest


# ── Seed data ──────────────────────────────────────────────────────────

REMOTE_URL = "https://test.supabase.co"
REMOTE_KEY = "test-anon-key"

DEMO_PROPERTY_ID = "mock-property-1"
SCENARIO_PROPERTY_ID = "prop-1"
TS = "2024-01-01T00:00:00Z"


def make_config(url=None, key=None, **overrides) -> AppConfig:
    values = dict(
        supabase_url=url,
        supabase_key=key,
        remote_timeout_s=1.0,
        use_local_data=False,
        probe_on_start=False,
        log_level="DEBUG",
    )
    values.update(overrides)
    return AppConfig(**values)


def _scenario_unit(unit_id, number, status, rent):
    return {
        "id": unit_id,
        "property_id": SCENARIO_PROPERTY_ID,
        "unit_number": number,
        "status": status,
        "rent": rent,
        "created_at": TS,
        "updated_at": TS,
    }


def _scenario_tenant(tenant_id, unit_id, name, rent):
    return {
        "id": tenant_id,
        "unit_id": unit_id,
        "name": name,
        "email": f"{tenant_id}@email.com",
        "rent_amount": rent,
        "created_at": TS,
        "updated_at": TS,
    }


def scenario_dataset():
    """One property, five units: 1A and 1B free, three let at 100000 / 120000 / 90000."""
    return {
        "properties": [{"id": SCENARIO_PROPERTY_ID, "name": "Résidence Test", "created_at": TS, "updated_at": TS}],
        "units": [
            _scenario_unit("u-1a", "1A", "available", 110000),
            _scenario_unit("u-1b", "1B", "available", 95000),
            _scenario_unit("u-2a", "2A", "occupied", 100000),
            _scenario_unit("u-2b", "2B", "occupied", 120000),
            _scenario_unit("u-3a", "3A", "occupied", 90000),
        ],
        "tenants": [
            _scenario_tenant("t-1", "u-2a", "Adjoua Bamba", 100000),
            _scenario_tenant("t-2", "u-2b", "Bakary Diallo", 120000),
            _scenario_tenant("t-3", "u-3a", "Chantal Yao", 90000),
            _scenario_tenant("t-4", None, "Didier Konan", 110000),
        ],
        "maintenance_requests": [
            {
                "id": "m-1",
                "unit_id": "u-1b",
                "title": "Serrure bloquée",
                "status": "pending",
                "reported_date": "2024-11-02",
                "created_at": TS,
                "updated_at": TS,
            }
        ],
        "transactions": [],
    }


class StubProbe:
    def __init__(self, available: bool, after_refresh: bool | None = None):
        self.available = available
        self.after_refresh = after_refresh
        self.refreshed = 0

    def is_available(self) -> bool:
        return self.available

    def refresh(self) -> bool:
        self.refreshed += 1
        if self.after_refresh is not None:
            self.available = self.after_refresh
        return self.available


# ── Fixtures ───────────────────────────────────────────────────────────

@pytest.fixture
def local_cfg():
    return make_config()


@pytest.fixture
def remote_cfg():
    return make_config(REMOTE_URL, REMOTE_KEY)


@pytest.fixture
def store():
    return LocalStore()


@pytest.fixture
def scenario_store():
    return LocalStore(scenario_dataset)


@pytest.fixture
def fake_remote():
    return FakePostgrest(demo_dataset())


@pytest.fixture
async def remote_client(remote_cfg, fake_remote):
    client = RemoteStoreClient(remote_cfg, transport=fake_remote.transport)
    yield client
    await client.aclose()


@pytest.fixture
async def local_service(local_cfg):
    """Unconfigured remote: every call is served by a fresh local store."""
    service = DataService(local_cfg, local=LocalStore())
    yield service
    await service.aclose()


@pytest.fixture
async def remote_service(remote_cfg, store, remote_client):
    """Remote reachable (probe skipped at start); `store` receives fallbacks."""
    service = DataService(remote_cfg, local=store, remote=remote_client)
    yield service
    await service.aclose()
