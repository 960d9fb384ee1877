"""Pytest fixtures for testing"""

import pytest
from datetime import date
from decimal import Decimal
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from coop_ledger.api.main import create_app
from coop_ledger.api.dependencies import get_store
from coop_ledger.domain.models import LoanPolicy, Member
from coop_ledger.infrastructure.database.models import Base
from coop_ledger.infrastructure.database.repositories import DatabaseStoreSession
from coop_ledger.infrastructure.memory.repositories import InMemoryStoreSession, MemoryState
from coop_ledger.services.loans import LoanService


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_store(db: Session) -> DatabaseStoreSession:
    return DatabaseStoreSession(db)


@pytest.fixture
def memory_store() -> InMemoryStoreSession:
    return InMemoryStoreSession(MemoryState())


@pytest.fixture(params=["database", "memory"])
def store(request, db_store: DatabaseStoreSession, memory_store: InMemoryStoreSession):
    """Run store-level tests against both backends"""
    return db_store if request.param == "database" else memory_store


@pytest.fixture
def policy() -> LoanPolicy:
    return LoanPolicy()


@pytest.fixture
def service(store, policy: LoanPolicy) -> LoanService:
    return LoanService(store, policy)


@pytest.fixture
def make_member() -> Callable[..., Member]:
    """Build an unsaved member; keyword arguments override the defaults"""
    counter = {"n": 0}

    def _make(**overrides) -> Member:
        counter["n"] += 1
        fields = dict(
            id="",
            member_number=f"TST{counter['n']:04d}",
            first_name="Ada",
            last_name=f"Okafor{counter['n']}",
            email=f"member{counter['n']}@example.com",
            date_joined=date(2023, 1, 15),
            shares_balance=Decimal("50000.00"),
            savings_balance=Decimal("25000.00"),
        )
        fields.update(overrides)
        return Member(**fields)

    return _make


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_store():
        try:
            yield DatabaseStoreSession(db)
        finally:
            pass

    app.dependency_overrides[get_store] = override_get_store
    return TestClient(app)
