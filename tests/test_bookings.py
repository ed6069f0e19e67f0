from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import auth_headers, booking_payload
from app.models.attendee import Attendee
from app.models.audit_log import AuditLog
from app.models.booking import Booking, BookingItem
from app.models.ticket_type import TicketType
from app.services.booking_service import calculate_total_price


def test_calculate_total_price():
    assert calculate_total_price([(Decimal("50.00"), 2), (Decimal("100.00"), 1)]) == Decimal("200.00")
    assert calculate_total_price([]) == Decimal("0")


def test_create_booking_prices_from_stored_ticket_types(client, db, catalog, buyer_headers):
    r = client.post("/api/v1/bookings", json=booking_payload(catalog), headers=buyer_headers)
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["status"] == "pending"
    assert Decimal(str(data["total_price"])) == Decimal("200.00")

    b = db.get(Booking, data["id"])
    assert b.user_id == "user-buyer"
    assert b.idempotency_key
    assert len(b.items) == 2
    assert {(i.quantity, Decimal(i.unit_price)) for i in b.items} == {(2, Decimal("50.00")), (1, Decimal("100.00"))}
    assert [a.email for a in b.attendees] == ["buyer@example.com"]


def test_client_supplied_price_is_ignored(client, catalog, buyer_headers):
    body = booking_payload(catalog, general_qty=1, vip_qty=0)
    body["tickets"][0]["price"] = 0.01
    r = client.post("/api/v1/bookings", json=body, headers=buyer_headers)
    assert r.status_code == 201
    assert Decimal(str(r.json()["total_price"])) == Decimal("50.00")


def test_legacy_route_and_aliases(client, catalog, buyer_headers):
    body = {
        "eventId": catalog["event"].id,
        "items": [{"type": catalog["general"].id, "quantity": 3}],
        "attendees": [{"name": "A", "email": "a@example.com"}],
        "specialRequests": "aisle seat",
    }
    r = client.post("/api/v1/process-booking", json=body, headers=buyer_headers)
    assert r.status_code == 201
    assert Decimal(str(r.json()["total_price"])) == Decimal("150.00")


def test_requires_bearer_token(client, db, catalog):
    r = client.post("/api/v1/bookings", json=booking_payload(catalog))
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}
    assert db.query(Booking).count() == 0


def test_rejects_garbage_token(client, catalog):
    r = client.post("/api/v1/bookings", json=booking_payload(catalog), headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


@pytest.mark.parametrize("field", ["tickets", "attendees"])
def test_empty_lists_are_rejected(client, db, catalog, buyer_headers, field):
    body = booking_payload(catalog)
    body[field] = []
    r = client.post("/api/v1/bookings", json=body, headers=buyer_headers)
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == field
    assert db.query(Booking).count() == 0


def test_unknown_ticket_type(client, catalog, buyer_headers):
    body = booking_payload(catalog)
    body["tickets"].append({"ticket_type_id": "nope", "quantity": 1})
    r = client.post("/api/v1/bookings", json=body, headers=buyer_headers)
    assert r.status_code == 400
    assert "Invalid ticket type" in r.json()["error"]


def test_max_per_order(client, catalog, buyer_headers):
    r = client.post("/api/v1/bookings", json=booking_payload(catalog, general_qty=11, vip_qty=0), headers=buyer_headers)
    assert r.status_code == 400


def test_unpublished_event_cannot_be_booked(client, db, catalog, buyer_headers):
    catalog["event"].status = "draft"
    db.commit()
    r = client.post("/api/v1/bookings", json=booking_payload(catalog), headers=buyer_headers)
    assert r.status_code == 400


def test_missing_event(client, catalog, buyer_headers):
    body = booking_payload(catalog)
    body["event_id"] = "missing"
    r = client.post("/api/v1/bookings", json=body, headers=buyer_headers)
    assert r.status_code == 404


def test_overselling_is_a_conflict(client, db, catalog, buyer_headers):
    r = client.post("/api/v1/bookings", json=booking_payload(catalog, general_qty=0, vip_qty=3), headers=buyer_headers)
    assert r.status_code == 409
    assert db.query(Booking).count() == 0


def test_repeated_lines_count_toward_max_per_order(client, db, catalog, buyer_headers):
    body = booking_payload(catalog, general_qty=10, vip_qty=0)
    body["tickets"].append({"ticket_type_id": catalog["general"].id, "quantity": 10})
    r = client.post("/api/v1/bookings", json=body, headers=buyer_headers)
    assert r.status_code == 400
    assert db.query(Booking).count() == 0


def test_repeated_lines_count_toward_remaining_inventory(client, db, catalog, buyer_headers):
    body = booking_payload(catalog, general_qty=0, vip_qty=2)
    body["tickets"].append({"ticket_type_id": catalog["vip"].id, "quantity": 2})
    r = client.post("/api/v1/bookings", json=body, headers=buyer_headers)
    assert r.status_code == 409
    assert db.query(Booking).count() == 0


def test_repeated_lines_are_merged(client, db, catalog, buyer_headers):
    body = booking_payload(catalog, general_qty=1, vip_qty=0)
    body["tickets"].append({"ticket_type_id": catalog["general"].id, "quantity": 2})
    r = client.post("/api/v1/bookings", json=body, headers=buyer_headers)
    assert r.status_code == 201
    assert Decimal(str(r.json()["total_price"])) == Decimal("150.00")
    items = db.get(Booking, r.json()["id"]).items
    assert [(i.ticket_type_id, i.quantity) for i in items] == [(catalog["general"].id, 3)]


def test_write_failure_leaves_nothing_behind(client, db, catalog, buyer_headers, monkeypatch):
    from app.services import booking_service

    def boom(*a, **kw):
        raise SQLAlchemyError("disk full")

    # fails after the booking and items have been staged in the session
    monkeypatch.setattr(booking_service, "log_audit", boom)
    r = client.post("/api/v1/bookings", json=booking_payload(catalog), headers=buyer_headers)
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to create booking"}
    assert db.query(Booking).count() == 0
    assert db.query(BookingItem).count() == 0
    assert db.query(Attendee).count() == 0


def _create(client, catalog, headers, **kw):
    r = client.post("/api/v1/bookings", json=booking_payload(catalog, **kw), headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["id"]


def test_list_and_get_own_bookings(client, catalog, buyer_headers):
    booking_id = _create(client, catalog, buyer_headers)
    r = client.get("/api/v1/bookings", headers=buyer_headers)
    assert [b["id"] for b in r.json()["bookings"]] == [booking_id]

    r = client.get(f"/api/v1/bookings/{booking_id}", headers=buyer_headers)
    assert r.status_code == 200
    assert r.json()["events"]["title"] == "Summer Concert"

    stranger = auth_headers("user-stranger")
    assert client.get(f"/api/v1/bookings/{booking_id}", headers=stranger).status_code == 403


def test_organizer_sees_bookings_for_their_events(client, catalog, buyer_headers, organizer_headers):
    booking_id = _create(client, catalog, buyer_headers)
    r = client.get("/api/v1/bookings/organizer", headers=organizer_headers)
    assert [b["id"] for b in r.json()["bookings"]] == [booking_id]
    assert client.get("/api/v1/bookings/organizer", headers=buyer_headers).status_code == 403


def test_owner_can_cancel_but_not_confirm(client, db, catalog, buyer_headers):
    booking_id = _create(client, catalog, buyer_headers)
    r = client.patch(f"/api/v1/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=buyer_headers)
    assert r.status_code == 403

    r = client.delete(f"/api/v1/bookings/{booking_id}", headers=buyer_headers)
    assert r.json() == {"id": booking_id, "status": "cancelled"}

    # terminal
    r = client.patch(f"/api/v1/bookings/{booking_id}/status", json={"status": "pending"}, headers=buyer_headers)
    assert r.status_code == 409


def test_organizer_confirmation_counts_tickets_sold(client, db, catalog, buyer_headers, organizer_headers):
    booking_id = _create(client, catalog, buyer_headers)
    r = client.patch(f"/api/v1/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=organizer_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "confirmed"

    db.expire_all()
    assert db.get(TicketType, catalog["general"].id).quantity_sold == 2
    assert db.get(TicketType, catalog["vip"].id).quantity_sold == 1
    actions = [a.action for a in db.query(AuditLog).filter(AuditLog.entity_id == booking_id).all()]
    assert "booking.confirmed" in actions

    history = client.get(f"/api/v1/bookings/{booking_id}/history", headers=buyer_headers).json()["history"]
    assert [h["action"] for h in history] == ["booking.created", "booking.confirmed"]


def test_invalid_status_value(client, catalog, buyer_headers):
    booking_id = _create(client, catalog, buyer_headers)
    r = client.patch(f"/api/v1/bookings/{booking_id}/status", json={"status": "refunded"}, headers=buyer_headers)
    assert r.status_code == 400


def test_organizer_confirmation_after_sell_out_is_a_conflict(client, db, catalog, buyer_headers, organizer_headers):
    booking_id = _create(client, catalog, buyer_headers)
    vip = db.get(TicketType, catalog["vip"].id)
    vip.quantity_sold = 2
    db.commit()

    r = client.patch(f"/api/v1/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=organizer_headers)
    assert r.status_code == 409

    db.expire_all()
    assert db.get(Booking, booking_id).status == "pending"
    # no partial increment survives the rollback
    assert db.get(TicketType, catalog["general"].id).quantity_sold == 0
    assert db.get(TicketType, catalog["vip"].id).quantity_sold == 2
