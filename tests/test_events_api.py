import pytest

from conftest import auth_headers


def new_event(category_id, **kw):
    body = {
        "title": "Jazz in the Park",
        "description": "Evening jazz",
        "category_id": category_id,
        "start_date": "2026-08-01",
        "start_time": "18:00",
        "end_date": "2026-08-01",
        "location_name": "Dolores Park",
        "latitude": 37.7596,
        "longitude": -122.4269,
        "images": [{"image_url": "https://img.example.com/1.jpg", "is_primary": True}],
    }
    body.update(kw)
    return body


def test_categories_and_public_listing(client, catalog):
    r = client.get("/api/v1/categories")
    assert [c["slug"] for c in r.json()["categories"]] == ["music"]

    r = client.get("/api/v1/events", params={"category": "music"})
    body = r.json()
    assert [e["slug"] for e in body["events"]] == ["summer-concert"]
    assert body["pagination"]["total"] == 1
    assert body["events"][0]["event_categories"] == {"name": "Music", "slug": "music"}
    assert body["events"][0]["location"] == {"lat": 37.7694, "lng": -122.4862}

    assert client.get("/api/v1/events", params={"search": "nothing-like-this"}).json()["events"] == []


def test_get_event_by_id_or_slug(client, catalog):
    event_id = catalog["event"].id
    assert client.get(f"/api/v1/events/{event_id}").json()["slug"] == "summer-concert"
    assert client.get("/api/v1/events/summer-concert").json()["id"] == event_id
    r = client.get("/api/v1/events/unknown-slug")
    assert r.status_code == 404
    assert r.json() == {"error": "Event not found"}


def test_create_requires_organizer_profile(client, catalog, buyer_headers):
    r = client.post("/api/v1/events", json=new_event(catalog["category"].id), headers=buyer_headers)
    assert r.status_code == 403


def test_organizer_lifecycle(client, catalog, organizer_headers):
    r = client.post("/api/v1/events", json=new_event(catalog["category"].id), headers=organizer_headers)
    assert r.status_code == 201, r.text
    created = r.json()
    assert created["status"] == "draft"
    assert created["slug"] == "jazz-in-the-park"
    assert created["event_images"][0]["is_primary"] is True

    # drafts stay out of the public listing
    assert "jazz-in-the-park" not in [e["slug"] for e in client.get("/api/v1/events").json()["events"]]

    r = client.patch(f"/api/v1/events/{created['id']}", json={"title": "Jazz at Dusk"}, headers=organizer_headers)
    assert r.json()["title"] == "Jazz at Dusk"

    r = client.patch(f"/api/v1/events/{created['id']}/status", json={"status": "published"}, headers=organizer_headers)
    assert r.json() == {"id": created["id"], "status": "published"}
    r = client.patch(f"/api/v1/events/{created['id']}/status", json={"status": "draft"}, headers=organizer_headers)
    assert r.status_code == 409
    r = client.patch(f"/api/v1/events/{created['id']}/status", json={"status": "cancelled"}, headers=organizer_headers)
    assert r.json()["status"] == "cancelled"

    mine = client.get("/api/v1/events/mine", headers=organizer_headers).json()["events"]
    assert {e["id"] for e in mine} == {created["id"], catalog["event"].id}


def test_duplicate_titles_get_unique_slugs(client, catalog, organizer_headers):
    body = new_event(catalog["category"].id, title="Summer Concert")
    slug = client.post("/api/v1/events", json=body, headers=organizer_headers).json()["slug"]
    assert slug.startswith("summer-concert-")


def test_cannot_draft_to_cancelled(client, catalog, organizer_headers):
    created = client.post("/api/v1/events", json=new_event(catalog["category"].id), headers=organizer_headers).json()
    r = client.patch(f"/api/v1/events/{created['id']}/status", json={"status": "cancelled"}, headers=organizer_headers)
    assert r.status_code == 409


def test_only_owner_can_edit(client, catalog):
    other = auth_headers("user-other")
    r = client.patch(f"/api/v1/events/{catalog['event'].id}", json={"title": "Hijacked"}, headers=other)
    assert r.status_code == 403


@pytest.mark.parametrize("patch", [
    {"end_date": "2026-07-31"},
    {"start_date": "2026/08/01"},
    {"latitude": 91},
])
def test_create_validation(client, catalog, organizer_headers, patch):
    r = client.post("/api/v1/events", json=new_event(catalog["category"].id, **patch), headers=organizer_headers)
    assert r.status_code == 400
    assert r.json()["details"]


def test_featured(client, db, catalog):
    assert client.get("/api/v1/events/featured").json()["events"] == []
    catalog["event"].featured = True
    db.commit()
    assert [e["id"] for e in client.get("/api/v1/events/featured").json()["events"]] == [catalog["event"].id]


def test_organizer_profile(client, buyer_headers, catalog):
    assert client.get("/api/v1/organizers/me", headers=buyer_headers).status_code == 404
    body = {"business_name": "Buyer Events", "contact_email": "buyer@example.com"}
    r = client.post("/api/v1/organizers/me", json=body, headers=buyer_headers)
    assert r.status_code == 201
    assert r.json()["verification_status"] == "pending"
    assert client.post("/api/v1/organizers/me", json=body, headers=buyer_headers).status_code == 409

    r = client.patch("/api/v1/organizers/me", json={"website": "https://buyer.events"}, headers=buyer_headers)
    assert r.json()["website"] == "https://buyer.events"

    listed = client.get("/api/v1/organizers").json()
    assert listed["total"] == 2
    public = client.get(f"/api/v1/organizers/{catalog['organizer'].id}").json()
    assert [e["slug"] for e in public["events"]] == ["summer-concert"]
    assert "stripe_account_id" not in public


def test_ticket_type_management(client, catalog, organizer_headers, buyer_headers):
    event_id = catalog["event"].id
    body = {"event_id": event_id, "name": "Early Bird", "price": "25.00", "quantity_available": 10}
    assert client.post("/api/v1/ticket-types", json=body, headers=buyer_headers).status_code == 403
    r = client.post("/api/v1/ticket-types", json=body, headers=organizer_headers)
    assert r.status_code == 201
    tt = r.json()
    assert tt["remaining"] == 10

    names = [t["name"] for t in client.get(f"/api/v1/events/{event_id}/ticket-types").json()["ticket_types"]]
    assert names == ["Early Bird", "General", "VIP"]

    r = client.patch(f"/api/v1/ticket-types/{tt['id']}", json={"quantity_available": 5}, headers=organizer_headers)
    assert r.json()["quantity_available"] == 5

    assert client.delete(f"/api/v1/ticket-types/{tt['id']}", headers=organizer_headers).status_code == 204


def test_cannot_shrink_ticket_type_below_sold(client, db, catalog, organizer_headers):
    vip = catalog["vip"]
    vip.quantity_sold = 2
    db.commit()
    r = client.patch(f"/api/v1/ticket-types/{vip.id}", json={"quantity_available": 1}, headers=organizer_headers)
    assert r.status_code == 400
    assert client.delete(f"/api/v1/ticket-types/{vip.id}", headers=organizer_headers).status_code == 409
