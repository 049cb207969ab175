"""Shared fixtures. Settings are read at import time, so the environment is set first."""
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="caseflow-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/caseflow.db"
os.environ["DATABASE_SCHEMA"] = ""
os.environ["JWT_SECRET_KEY"] = "caseflow-test-secret"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["ENVIRONMENT"] = "test"
os.environ["SEED_DEMO_DATA"] = "false"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from caseflow.core.observability import metrics_registry  # noqa: E402
from caseflow.main import app  # noqa: E402
from caseflow.scripts.seed_demo import seed_demo  # noqa: E402

TENANT = "demo"

PASSWORDS = {
    "admin@demo.com": "admin123",
    "maker@demo.com": "maker123",
    "checker@demo.com": "checker123",
    "underwriter@demo.com": "underwriter123",
    "disbursement@demo.com": "disburse123",
    "auditor@demo.com": "auditor123",
}


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics_registry.reset()
    yield


@pytest_asyncio.fixture
async def db():
    database = app.state.db
    await database.create_all()
    yield database
    await database.drop_all()
    await database.dispose()


@pytest_asyncio.fixture
async def seeded(db):
    await seed_demo(db)
    return db


@pytest_asyncio.fixture
async def ac(db):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def login(ac: AsyncClient, email: str, tenant: str = TENANT) -> dict:
    """Bearer headers plus the logged-in user and tenant ids."""
    resp = await ac.post(
        "/api/auth/login",
        json={"email": email, "password": PASSWORDS[email], "tenant": tenant},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    return {
        "headers": {"Authorization": f"Bearer {data['token']}"},
        "user_id": data["user"]["id"],
        "tenant_id": data["tenant"]["id"],
    }


@pytest_asyncio.fixture
async def users(ac, seeded):
    """Logged-in session per demo role, keyed by role."""
    return {
        "Admin": await login(ac, "admin@demo.com"),
        "Maker": await login(ac, "maker@demo.com"),
        "Checker": await login(ac, "checker@demo.com"),
        "Underwriter": await login(ac, "underwriter@demo.com"),
        "DisbursementOfficer": await login(ac, "disbursement@demo.com"),
        "Auditor": await login(ac, "auditor@demo.com"),
    }


@pytest.fixture
def login_as(ac):
    async def _login(email: str, tenant: str = TENANT) -> dict:
        return await login(ac, email, tenant)
    return _login
