"""Shared test infrastructure for the Supply Platform test suite.

Provides:
- db_session: async SQLite in-memory session with all tables created
- make_organization / make_user / make_warehouse / make_material: row factories
- refs: a ready-made reference set (two users, two warehouses, three materials)
- agreement_service: AgreementService with explicit search settings
- api_client: HTTPX AsyncClient wired to the agreements router
"""

from types import SimpleNamespace
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import Base first, then models to register all tables
from supply_platform.infra.database import Base, enable_sqlite_foreign_keys

import supply_platform.domain.models  # noqa: F401

from supply_platform.domain.models import Material, Organization, User, Warehouse
from supply_platform.services.agreement_service import AgreementService


# ---------------------------------------------------------------------------
# Database session fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def db_session():
    """Async SQLite in-memory session with all tables created.

    Creates a fresh engine + tables for each test, yields a session,
    then rolls back and tears down.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_organization(db_session):
    """Factory that creates an Organization row.

    Usage:
        org = await make_organization(name="Acme Metals")
    """
    async def _factory(name: str = "Acme Metals") -> Organization:
        org = Organization(name=name, latitude=55.7558, longitude=37.6176)
        db_session.add(org)
        await db_session.flush()
        return org

    return _factory


@pytest.fixture
def make_user(db_session):
    """Factory that creates a User row, optionally tied to an organization."""
    async def _factory(
        name: str = "Test User",
        organization: Optional[Organization] = None,
    ) -> User:
        user = User(
            name=name,
            organization_id=organization.id if organization else None,
            is_admin=False,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _factory


@pytest.fixture
def make_warehouse(db_session):
    """Factory that creates a Warehouse row."""
    async def _factory(
        name: str = "Main Warehouse",
        organization: Optional[Organization] = None,
    ) -> Warehouse:
        warehouse = Warehouse(
            name=name,
            organization_id=organization.id if organization else None,
            latitude=40.7128,
            longitude=-74.006,
        )
        db_session.add(warehouse)
        await db_session.flush()
        return warehouse

    return _factory


@pytest.fixture
def make_material(db_session):
    """Factory that creates a Material row."""
    async def _factory(name: str = "Steel") -> Material:
        material = Material(name=name)
        db_session.add(material)
        await db_session.flush()
        return material

    return _factory


@pytest.fixture
async def refs(db_session, make_organization, make_user, make_warehouse, make_material):
    """A committed reference set every agreement test can point at.

    Attributes are plain ids: supplier, customer, supplier_warehouse,
    customer_warehouse, steel, copper, aluminium.
    """
    supplier_org = await make_organization("Acme Metals")
    customer_org = await make_organization("Nordic Foods")
    supplier = await make_user("Ivan Petrov", supplier_org)
    customer = await make_user("Zoë Müller", customer_org)
    supplier_wh = await make_warehouse("North Depot", supplier_org)
    customer_wh = await make_warehouse("South Hub", customer_org)
    steel = await make_material("Steel")
    copper = await make_material("Copper")
    aluminium = await make_material("Aluminium")
    await db_session.commit()

    return SimpleNamespace(
        supplier=supplier.id,
        customer=customer.id,
        supplier_warehouse=supplier_wh.id,
        customer_warehouse=customer_wh.id,
        steel=steel.id,
        copper=copper.id,
        aluminium=aluminium.id,
    )


@pytest.fixture
def create_data(refs):
    """Factory for a valid create payload over ``refs``."""
    def _factory(**overrides) -> dict:
        data = {
            "supplier_id": refs.supplier,
            "customer_id": refs.customer,
            "supplier_warehouse_id": refs.supplier_warehouse,
            "customer_warehouse_id": refs.customer_warehouse,
            "status": "active",
        }
        data.update(overrides)
        return data

    return _factory


# ---------------------------------------------------------------------------
# Service + HTTP client
# ---------------------------------------------------------------------------

@pytest.fixture
def agreement_service():
    return AgreementService(search_threshold=0.6, search_min_match_length=2)


@pytest.fixture
async def api_client(db_session):
    """HTTPX AsyncClient wired to a test FastAPI app.

    Uses a fresh FastAPI app with only the agreements router and the error
    handlers, sharing the test's db_session.
    """
    from fastapi import FastAPI

    from supply_platform.app.errors import setup_exception_handlers
    from supply_platform.app.routes.agreements import router as agreements_router
    from supply_platform.infra.database import get_db

    test_app = FastAPI()
    setup_exception_handlers(test_app)
    test_app.include_router(agreements_router)

    async def _override_get_db():
        yield db_session

    test_app.dependency_overrides[get_db] = _override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://testserver",
    ) as client:
        yield client
