import os

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# In-memory DB and no seeded accounts for tests
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["DATABASE_URL"] = ""
os.environ["SEED_DEMO_ACCOUNT"] = "false"
os.environ["BOOTSTRAP_ADMIN_EMAIL"] = ""

from ehr.database import close_db, ensure_admin_account, init_db
from ehr.main import app
from ehr.services import data_access
from ehr.services.identity import register_identity, resolve_caller

from helpers import STAFF_ROLES_BELOW_ADMIN, seed_clinic, staff_payload


@pytest_asyncio.fixture
async def db():
    """Provide a fresh in-memory database for each test."""
    import ehr.database as db_mod

    # Close any existing connection
    if db_mod._db is not None:
        try:
            await db_mod._db.close()
        except Exception:
            pass
    db_mod._db = None

    # Override module-level config directly (avoids fragile importlib.reload)
    db_mod.DATABASE_PATH = ":memory:"
    db_mod.DATABASE_URL = ""
    db_mod.SEED_DEMO_ACCOUNT = False
    db_mod.BOOTSTRAP_ADMIN_EMAIL = ""

    await init_db()
    database = await db_mod.get_db()
    yield database
    await close_db()


@pytest_asyncio.fixture
async def admin(db):
    """The bootstrap admin, created beneath the access-control layer."""
    user_id = await ensure_admin_account(db, "admin@test.hospital", "Tendai", "Moyo")
    return await resolve_caller(db, user_id)


@pytest_asyncio.fixture
async def callers(db, admin):
    """One caller per staff role; every profile but the admin's is created by the admin."""
    result = {"admin": admin}
    for role in STAFF_ROLES_BELOW_ADMIN:
        identity = await register_identity(db, f"{role}@test.hospital")
        await data_access.insert(db, admin, "staff", staff_payload(identity["id"], role))
        result[role] = await resolve_caller(db, identity["id"])
    return result


@pytest_asyncio.fixture
async def roleless(db):
    """An authenticated identity with no staff profile."""
    identity = await register_identity(db, "visitor@test.hospital")
    return await resolve_caller(db, identity["id"])


@pytest_asyncio.fixture
async def clinic(db, callers):
    """One row in every clinical table, written by roles allowed to write them."""
    return await seed_clinic(db, callers)


@pytest.fixture
def headers(callers, roleless):
    """HTTP headers asserting each caller's identity, keyed by role (``None`` for roleless)."""
    result = {role: {"X-User-Id": caller.user_id} for role, caller in callers.items()}
    result[None] = {"X-User-Id": roleless.user_id}
    return result


@pytest.fixture
def client(db):
    """Provide a synchronous TestClient for HTTP endpoint tests."""
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client(db):
    """Provide an async httpx client for async HTTP tests."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
