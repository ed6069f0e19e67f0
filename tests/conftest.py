import os

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["GEOIP_LOOKUP_URL"] = ""

import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import base  # noqa: F401
from app.db.session import Base, get_db
from app.core.security import create_access_token
from app.main import app
from app.models.category import Category
from app.models.event import Event
from app.models.organizer import Organizer
from app.models.ticket_type import TicketType
from app.models.user import User
from app.services import payment_service


@pytest.fixture()
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture()
def db(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture()
def client(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def _get_db():
        s = Session()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def enqueued(monkeypatch):
    """Confirmation emails that would have gone to the Celery broker."""
    sent = []
    monkeypatch.setattr(payment_service, "enqueue_confirmation_email", sent.append)
    return sent


def auth_headers(user_id: str, email: str = "", full_name: str = "") -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, email=email, full_name=full_name)}"}


@pytest.fixture()
def buyer_headers():
    return auth_headers("user-buyer", email="buyer@example.com", full_name="Bea Buyer")


@pytest.fixture()
def organizer_headers():
    return auth_headers("user-organizer", email="org@example.com", full_name="Olu Organizer")


@pytest.fixture()
def catalog(db):
    """A published event by user-organizer with two ticket types (50.00 and 100.00)."""
    db.add(User(id="user-organizer", email="org@example.com", full_name="Olu Organizer"))
    music = Category(id=str(uuid.uuid4()), name="Music", slug="music")
    org = Organizer(id=str(uuid.uuid4()), user_id="user-organizer", business_name="Live Co", contact_email="org@example.com")
    db.add_all([music, org])
    db.flush()
    event = Event(
        id=str(uuid.uuid4()),
        organizer_id=org.id,
        category_id=music.id,
        title="Summer Concert",
        slug="summer-concert",
        description="Open air",
        start_date="2026-07-01",
        start_time="19:00",
        end_date="2026-07-01",
        location_name="Golden Gate Park",
        latitude=37.7694,
        longitude=-122.4862,
        status="published",
    )
    db.add(event)
    db.flush()
    general = TicketType(id=str(uuid.uuid4()), event_id=event.id, name="General", price=Decimal("50.00"), quantity_available=100, quantity_sold=0)
    vip = TicketType(id=str(uuid.uuid4()), event_id=event.id, name="VIP", price=Decimal("100.00"), quantity_available=2, quantity_sold=0)
    db.add_all([general, vip])
    db.commit()
    return {"event": event, "general": general, "vip": vip, "organizer": org, "category": music}


def booking_payload(catalog, general_qty=2, vip_qty=1, **extra) -> dict:
    tickets = []
    if general_qty:
        tickets.append({"ticket_type_id": catalog["general"].id, "quantity": general_qty})
    if vip_qty:
        tickets.append({"ticket_type_id": catalog["vip"].id, "quantity": vip_qty})
    body = {
        "event_id": catalog["event"].id,
        "tickets": tickets,
        "attendees": [{"name": "Bea Buyer", "email": "buyer@example.com"}],
    }
    body.update(extra)
    return body
