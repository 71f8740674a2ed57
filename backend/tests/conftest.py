"""
Test configuration and fixtures for ClaimTrack backend tests.
"""
import itertools
import os
from datetime import date, datetime, timedelta
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("APP_ENV", "development")

import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from main import app
from app.db.base import Base
from app.db.session import get_db
from app.api.deps import get_claim_status_engine
from app.core.security import create_access_token
from app.db.models import Claim, ClaimStatus
from app.services.claim_status import ClaimStatusConfig, ClaimStatusEngine, ClaimStore


# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

FROZEN_NOW = datetime(2024, 6, 1, 12, 0, 0)


class FrozenClock:
    """Deterministic clock; call it for the current time, ``advance`` to move it."""

    def __init__(self, now: datetime = FROZEN_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store(db: Session) -> ClaimStore:
    return ClaimStore(db)


@pytest.fixture
def claim_engine(store: ClaimStore, clock: FrozenClock) -> ClaimStatusEngine:
    """Claim status engine with lenient transitions and a frozen clock."""
    return ClaimStatusEngine(store, ClaimStatusConfig(), clock=clock)


@pytest.fixture
def strict_engine(store: ClaimStore, clock: FrozenClock) -> ClaimStatusEngine:
    return ClaimStatusEngine(store, ClaimStatusConfig(strict_transitions=True), clock=clock)


@pytest.fixture
def make_claim(db: Session, clock: FrozenClock):
    """Factory for claims; ``days_since_update`` ages ``last_status_update``."""
    counter = itertools.count(1)

    def _make(status: ClaimStatus = ClaimStatus.SUBMITTED, days_since_update: int = 0, **fields) -> Claim:
        n = next(counter)
        fields.setdefault("claim_number", f"CLM-2024-{n:05d}")
        fields.setdefault("payer_id", "PAYER-A")
        fields.setdefault("payer_name", "Acme Health")
        fields.setdefault("provider_id", "PROV-1")
        fields.setdefault("provider_npi", "1234567893")
        fields.setdefault("provider_name", "Dr. Jane Smith")
        fields.setdefault("patient_name", "John Doe")
        fields.setdefault("member_id", f"MBR{n:06d}")
        fields.setdefault("service_date", date(2024, 4, 15))
        fields.setdefault("total_amount", Decimal("100.00"))
        fields.setdefault("last_status_update", clock() - timedelta(days=days_since_update))
        claim = Claim(status=status, **fields)
        db.add(claim)
        db.commit()
        db.refresh(claim)
        return claim

    return _make


@pytest.fixture(scope="function")
def client(db: Session, claim_engine: ClaimStatusEngine) -> Generator[TestClient, None, None]:
    """Create a test client with database and frozen-clock engine overrides."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_claim_status_engine] = lambda: claim_engine
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def billing_token() -> str:
    return create_access_token(data={"sub": "billing-user-1", "role": "billing"})


@pytest.fixture
def viewer_token() -> str:
    return create_access_token(data={"sub": "viewer-user-1", "role": "viewer"})


@pytest.fixture
def billing_headers(billing_token: str) -> dict:
    """Authorization headers for a billing user."""
    return {"Authorization": f"Bearer {billing_token}"}


@pytest.fixture
def viewer_headers(viewer_token: str) -> dict:
    """Authorization headers for a user without billing rights."""
    return {"Authorization": f"Bearer {viewer_token}"}
