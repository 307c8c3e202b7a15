"""Pytest fixtures for testing"""

import uuid
import pytest
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, Generator, List, Tuple
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from offer_gateway.api.dependencies import get_clock, get_ledger_client, get_notification_client
from offer_gateway.api.main import create_app
from offer_gateway.domain.models import OfferDraft
from offer_gateway.infrastructure.database.models import Base
from offer_gateway.infrastructure.database.repositories import EnquiryRepository, PropertyRepository
from offer_gateway.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

NOW = datetime(2020, 2, 20, 9, 0, tzinfo=timezone.utc)
HAND_OVER = date(2020, 3, 1)
SELLER = "seller-1"
BUYER = "buyer-1"


class FixedLedger:
    """Ledger stand-in returning whatever total a test sets per offer"""

    def __init__(self) -> None:
        self.totals: Dict[uuid.UUID, int] = {}
        self.calls: List[uuid.UUID] = []

    def total_paid(self, offer_id: uuid.UUID) -> int:
        self.calls.append(offer_id)
        return self.totals.get(offer_id, 0)


class RecordingSink:
    """Notification sink that keeps every message it is handed"""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []

    async def send(self, template_key: str, recipient: str, context: Dict[str, Any]) -> None:
        self.sent.append((template_key, recipient, context))

    def templates(self) -> List[str]:
        return [template for template, _, _ in self.sent]


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now


@dataclass
class Seed:
    property_id: uuid.UUID
    enquiry_id: uuid.UUID


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
def new_session(db: Session):
    """Factory for extra sessions on the test database, closed before it is dropped"""
    opened: List[Session] = []

    def _new_session() -> Session:
        session = TestingSessionLocal()
        opened.append(session)
        return session

    yield _new_session
    for session in opened:
        session.close()


@pytest.fixture
def seed(db: Session) -> Seed:
    """One Maisonette in Lekki Ville Estate with an open buyer enquiry"""
    db_property = PropertyRepository(db).add_property(
        name="Lekki Ville Estate", house_type="Maisonette", price=120000, seller_id=SELLER
    )
    enquiry = EnquiryRepository(db).add_enquiry(buyer_id=BUYER, property_id=db_property.id)
    db.commit()
    return Seed(property_id=db_property.id, enquiry_id=enquiry.id)


@pytest.fixture
def ledger() -> FixedLedger:
    return FixedLedger()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def clock() -> Clock:
    return Clock(NOW)


def make_draft(enquiry_id: uuid.UUID, **overrides) -> OfferDraft:
    """100000 payable: 50000 on hand-over, then 10000 every 30 days"""
    draft = OfferDraft(
        enquiry_id=enquiry_id,
        seller_id=SELLER,
        hand_over_date=HAND_OVER,
        initial_payment_date=HAND_OVER,
        total_amount_payable=100000,
        initial_payment=50000,
        periodic_payment=10000,
        payment_frequency=30,
        expires=datetime(2020, 3, 20, tzinfo=timezone.utc),
        title="Lekki Ville Maisonette offer",
        delivery_state="Lagos",
    )
    return replace(draft, **overrides)


@pytest.fixture
def client(db: Session, ledger: FixedLedger, sink: RecordingSink, clock: Clock) -> TestClient:
    """Create FastAPI test client with test database and fake collaborators"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ledger_client] = lambda: ledger
    app.dependency_overrides[get_notification_client] = lambda: sink
    app.dependency_overrides[get_clock] = lambda: clock.now
    return TestClient(app)


@pytest.fixture
def draft(seed: Seed):
    """Factory for offer drafts against the seeded enquiry"""

    def _draft(**overrides) -> OfferDraft:
        return make_draft(overrides.pop("enquiry_id", seed.enquiry_id), **overrides)

    return _draft
