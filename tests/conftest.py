from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from app.db.session import create_engine_from_url, create_session_factory, create_tables, get_session_factory
from app.main import app
from app.models.campaign import Campaign
from app.models.prospect import Prospect

ORG_ID = "org-acme"
OTHER_ORG_ID = "org-globex"
CAMPAIGN_ID = "campaign-spring-outreach"
OTHER_CAMPAIGN_ID = "campaign-globex-launch"


@pytest_asyncio.fixture()
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest_asyncio.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def seeded_campaigns(session_factory):
    async with session_factory() as session:
        session.add_all([
            Campaign(id=CAMPAIGN_ID, organisation_id=ORG_ID, name="Spring Outreach", status="active"),
            Campaign(id=OTHER_CAMPAIGN_ID, organisation_id=OTHER_ORG_ID, name="Globex Launch", status="active"),
        ])
        await session.commit()
    return {
        "organisation_id": ORG_ID,
        "campaign_id": CAMPAIGN_ID,
        "other_organisation_id": OTHER_ORG_ID,
        "other_campaign_id": OTHER_CAMPAIGN_ID,
    }


@pytest_asyncio.fixture()
async def existing_prospect(session_factory, seeded_campaigns):
    async with session_factory() as session:
        prospect = Prospect(
            id="prospect-existing-1",
            organisation_id=ORG_ID,
            campaign_id=CAMPAIGN_ID,
            company_name="Initech",
            contact_email="peter@initech.com",
            contact_name="Peter Gibbons",
            status="New",
        )
        session.add(prospect)
        await session.commit()
    return prospect


@pytest_asyncio.fixture()
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(base_url="http://testserver", transport=transport) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def mock_session():
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.execute = AsyncMock()
    session.add = MagicMock()
    # Mock session.begin for async context
    session.begin = MagicMock(return_value=AsyncMock(__aenter__=AsyncMock(return_value=None), __aexit__=AsyncMock(return_value=False)))
    return session


@pytest.fixture
def mock_session_factory(mock_session):
    return MagicMock(return_value=AsyncMock(__aenter__=AsyncMock(return_value=mock_session), __aexit__=AsyncMock(return_value=False)))
