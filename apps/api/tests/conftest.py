"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite store per test, schema created
- Demo data set (org-demo: manager, service tech, operator, sites 1001/1002)
- Bearer token minting per role
- HTTPX AsyncClient serving the seeded gateway, notification bus overridden
"""
import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncGenerator, Generator, Iterator

# Must be set before app modules read settings
os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_BACKEND"] = "sql"
os.environ["SIMULATOR_ENABLED"] = "false"
os.environ["SEED_ON_STARTUP"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.deps import get_bus
from app.core.notifications import NotificationBus
from app.core.security import create_session_token
from app.db.gateway import GatewaySource, PersistenceGateway
from app.db.init_db import init_db
from app.db.session import build_engine
from app.db.sql_gateway import SqlGateway
from app.main import app
from app.schemas.auth import OrgRecord, UserSession
from app.schemas.site import SiteIntegrationRead, SiteRead
from app.services.seed_service import seed_demo_data

OTHER_ORG_ID = "org-other"
OTHER_SITE_ID = "site-9001"


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """Private in-memory database (StaticPool: one shared connection)."""
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine: Engine) -> Generator[Session, None, None]:
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture(scope="function")
def gw(db: Session) -> SqlGateway:
    return SqlGateway(db)


@pytest.fixture(scope="function")
def seeded(gw: PersistenceGateway) -> PersistenceGateway:
    """Demo data set plus one site of an unrelated org."""
    seed_demo_data(gw)
    now = datetime.now(timezone.utc)
    gw.add_org(OrgRecord(id=OTHER_ORG_ID, name="Other Petroleum"))
    gw.add_site(
        SiteRead(
            id=OTHER_SITE_ID,
            org_id=OTHER_ORG_ID,
            site_code="9001",
            name="Elsewhere Gas",
            created_at=now,
            updated_at=now,
        )
    )
    gw.add_integration(SiteIntegrationRead(site_id=OTHER_SITE_ID))
    return gw


@pytest.fixture(scope="function")
def bus() -> NotificationBus:
    return NotificationBus(queue_size=10)


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    session: UserSession
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def make_auth(gw: PersistenceGateway, user_id: str) -> TestAuth:
    user = gw.get_user(user_id)
    assert user is not None
    token = create_session_token(
        user_id=user.id,
        org_id=user.org_id,
        role=user.role.value,
        site_ids=user.site_ids,
    )
    session = UserSession(
        user_id=user.id, org_id=user.org_id, role=user.role, site_ids=user.site_ids
    )
    return TestAuth(session=session, token=token)


@pytest.fixture(scope="function")
def manager_auth(seeded: PersistenceGateway) -> TestAuth:
    return make_auth(seeded, "user-manager")


@pytest.fixture(scope="function")
def tech_auth(seeded: PersistenceGateway) -> TestAuth:
    """Service tech scoped to every demo site."""
    return make_auth(seeded, "user-tech")


@pytest.fixture(scope="function")
def operator_auth(seeded: PersistenceGateway) -> TestAuth:
    """Operator scoped to site-1001 only."""
    return make_auth(seeded, "user-operator")


# =============================================================================
# Client Fixtures
# =============================================================================

class SeededSource(GatewaySource):
    """Hands every request the test's own gateway."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    @contextmanager
    def open(self) -> Iterator[PersistenceGateway]:
        yield self.gateway

    def init_schema(self) -> None:
        pass

    def reset(self) -> None:
        pass


@pytest.fixture(scope="function")
async def client(
    seeded: PersistenceGateway,
    bus: NotificationBus,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient against the app, backed by the seeded test store."""
    app.dependency_overrides[get_bus] = lambda: bus
    app.state.gateway_source = SeededSource(seeded)
    app.state.store_ready = True

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    app.state.gateway_source = None
    app.state.store_ready = False
