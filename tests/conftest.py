"""
Pytest configuration and fixtures.

WHY: Fixtures provide reusable test setup/teardown logic, reducing
duplication and ensuring consistent test environments.
"""

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from jobbilling.main import app
from jobbilling.models.base import Base
from jobbilling.db.session import get_db
from jobbilling.core.deps import get_document_emitter
from jobbilling.services.document_emitter import InvoiceDocumentEmitter
from jobbilling.services.document_store import LocalDocumentStore
from jobbilling.services.invoice_service import InvoiceService


# Test database URL
# WHY: SQLite keeps tests free of external services. StaticPool shares the
# single in-memory database across every connection the engine hands out.
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """
    Create a test database engine.

    WHY: Function scope gives each test a fresh schema.
    """
    engine = create_async_engine(
        TEST_ASYNC_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session.

    WHY: Billing operations commit inside the job lock, so the session is
    configured exactly like the application's (no expiry on commit).

    Yields:
        AsyncSession: Database session for the test
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def document_store(tmp_path) -> LocalDocumentStore:
    """Local document store rooted in the test's temporary directory."""
    return LocalDocumentStore(str(tmp_path / "documents"))


@pytest.fixture
def invoice_service(db_session: AsyncSession, document_store) -> InvoiceService:
    """InvoiceService rendering PDFs into the temporary document store."""
    emitter = InvoiceDocumentEmitter(db_session, document_store=document_store)
    return InvoiceService(db_session, document_emitter=emitter)


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, document_store) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test HTTP client.

    WHY: AsyncClient exercises the FastAPI routes without running a server.

    Yields:
        AsyncClient: HTTP client for making test requests
    """

    async def override_get_db():
        """Override database dependency with test session."""
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_document_emitter] = lambda: InvoiceDocumentEmitter(
        db_session, document_store=document_store
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def actor_headers() -> dict:
    """Gateway-forwarded identity of the acting user."""
    return {"X-Actor-Id": "7"}
