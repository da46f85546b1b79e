from eventhub.domain.enums import EventStatus, UserRole


def _event_payload(**overrides):
    payload = {
        "title": "Jazz Night",
        "description": "Live jazz by the sea",
        "date_time": "2030-06-01T19:00:00Z",
        "location": "Mumbai",
        "category": "Music",
        "ticket_price": 500,
        "total_tickets": 100,
    }
    payload.update(overrides)
    return payload


def _titles(response):
    return [item["title"] for item in response.json()["data"]]


# ---------------------
# CREATE / APPROVE
# ---------------------

def test_created_event_waits_for_approval(client, organizer, admin):
    created = client.post("/api/events", json=_event_payload(), headers=organizer["headers"])

    assert created.status_code == 201
    event = created.json()
    assert event["status"] == "pending"
    assert event["remaining_tickets"] == 100
    assert event["organizer_id"] == organizer["id"]
    assert client.get("/api/events").json()["count"] == 0

    approved = client.put(f"/api/events/{event['id']}/approve", headers=admin["headers"])
    assert approved.json()["status"] == "approved"
    assert _titles(client.get("/api/events")) == ["Jazz Night"]


def test_status_and_inventory_are_not_client_writable(client, organizer):
    created = client.post(
        "/api/events",
        json=_event_payload(status="approved", remaining_tickets=5),
        headers=organizer["headers"],
    )

    assert created.json()["status"] == "pending"
    assert created.json()["remaining_tickets"] == 100


def test_standard_user_cannot_create_event(client, attendee):
    response = client.post("/api/events", json=_event_payload(), headers=attendee["headers"])

    assert response.status_code == 403


def test_organizer_cannot_approve(client, organizer, make_event):
    event_id = make_event(status=EventStatus.PENDING)

    assert client.put(f"/api/events/{event_id}/approve", headers=organizer["headers"]).status_code == 403


def test_reject_event(client, admin, make_event):
    event_id = make_event(status=EventStatus.PENDING)

    response = client.put(f"/api/events/{event_id}/reject", headers=admin["headers"])

    assert response.json()["status"] == "rejected"


# ---------------------
# UPDATE / DELETE
# ---------------------

def test_resizing_keeps_sold_tickets(client, organizer, attendee, make_event):
    event_id = make_event(total_tickets=10)
    client.post(f"/api/bookings/events/{event_id}", json={"tickets": 4}, headers=attendee["headers"])

    grown = client.put(f"/api/events/{event_id}", json={"total_tickets": 20}, headers=organizer["headers"])
    assert grown.status_code == 200
    assert (grown.json()["total_tickets"], grown.json()["remaining_tickets"]) == (20, 16)

    too_small = client.put(f"/api/events/{event_id}", json={"total_tickets": 3}, headers=organizer["headers"])
    assert too_small.status_code == 409


def test_update_fields(client, organizer, make_event):
    event_id = make_event()

    response = client.put(
        f"/api/events/{event_id}",
        json={"title": "Renamed", "tags": ["jazz", "live"]},
        headers=organizer["headers"],
    )

    assert response.json()["title"] == "Renamed"
    assert response.json()["tags"] == ["jazz", "live"]


def test_only_owner_or_admin_can_update(client, make_user, admin, make_event):
    event_id = make_event()
    stranger = make_user(role=UserRole.ORGANIZER)

    denied = client.put(f"/api/events/{event_id}", json={"title": "Mine"}, headers=stranger["headers"])
    allowed = client.put(f"/api/events/{event_id}", json={"title": "Admin edit"}, headers=admin["headers"])

    assert denied.status_code == 403
    assert allowed.status_code == 200


def test_cannot_delete_event_with_active_bookings(client, organizer, attendee, make_event):
    event_id = make_event()
    booking = client.post(f"/api/bookings/events/{event_id}", json={"tickets": 1}, headers=attendee["headers"])

    blocked = client.delete(f"/api/events/{event_id}", headers=organizer["headers"])
    assert blocked.status_code == 409

    client.delete(f"/api/bookings/{booking.json()['id']}", headers=attendee["headers"])
    deleted = client.delete(f"/api/events/{event_id}", headers=organizer["headers"])
    assert deleted.status_code == 200
    assert client.get(f"/api/events/{event_id}").status_code == 404


# ---------------------
# LISTINGS
# ---------------------

def test_listing_filters_and_sorting(client, make_event):
    make_event(title="Cheap Rock", category="Music", ticket_price=100, location="Pune")
    make_event(title="Pricey Opera", category="Music", ticket_price=900, location="Mumbai")
    make_event(title="Chess Open", category="Sports", ticket_price=0, location="Delhi")
    make_event(title="Private Gala", is_public=False)

    by_price = client.get("/api/events?sort=price-desc")
    assert _titles(by_price) == ["Pricey Opera", "Cheap Rock", "Chess Open"]

    music = client.get("/api/events?category=music,theatre&max_price=500")
    assert _titles(music) == ["Cheap Rock"]

    search = client.get("/api/events?search=OPERA")
    assert _titles(search) == ["Pricey Opera"]

    located = client.get("/api/events?location=mum")
    assert _titles(located) == ["Pricey Opera"]


def test_listing_pagination(client, make_event):
    for day in range(1, 4):
        make_event(title=f"Event {day}", days_from_now=day)

    response = client.get("/api/events?limit=2&page=2")

    assert response.json()["pagination"] == {"total": 3, "pages": 2, "page": 2}
    assert _titles(response) == ["Event 3"]


def test_popularity_sort_uses_sold_tickets(client, attendee, make_event):
    quiet = make_event(title="Quiet", days_from_now=1)
    busy = make_event(title="Busy", days_from_now=2)
    client.post(f"/api/bookings/events/{busy}", json={"tickets": 5}, headers=attendee["headers"])
    client.post(f"/api/bookings/events/{quiet}", json={"tickets": 1}, headers=attendee["headers"])

    assert _titles(client.get("/api/events?sort=popularity")) == ["Busy", "Quiet"]


def test_has_tickets_filter(client, attendee, make_event):
    sold_out = make_event(title="Sold Out", total_tickets=1)
    make_event(title="Open", total_tickets=5)
    client.post(f"/api/bookings/events/{sold_out}", json={"tickets": 1}, headers=attendee["headers"])

    assert _titles(client.get("/api/events?has_tickets=true")) == ["Open"]


def test_search_requires_title(client):
    assert client.get("/api/events/search").status_code == 400


def test_simple_listings(client, make_event, organizer):
    jazz = make_event(title="Jazz", category="Music", location="Goa", days_from_now=3)
    make_event(title="Blues", category="Music", location="Pune", days_from_now=4)
    make_event(title="Past Gig", category="Music", days_from_now=-2)

    assert client.get("/api/events/search?title=jaz").json()["count"] == 1
    assert client.get("/api/events/category/music").json()["count"] == 3
    assert client.get("/api/events/location/goa").json()["count"] == 1
    assert [e["title"] for e in client.get("/api/events/upcoming").json()["data"]] == ["Jazz", "Blues"]
    assert client.get(f"/api/events/organizer/{organizer['id']}").json()["count"] == 3

    similar = client.get(f"/api/events/similar/{jazz}").json()["data"]
    assert jazz not in [item["id"] for item in similar]
    assert len(similar) == 2


def test_get_event_includes_organizer(client, make_event, organizer):
    event_id = make_event()

    response = client.get(f"/api/events/{event_id}")

    assert response.status_code == 200
    assert response.json()["organizer"]["id"] == organizer["id"]


def test_organizer_dashboard_listing(client, organizer, attendee, make_user, make_event):
    make_event(title="Mine A", total_tickets=1, status=EventStatus.PENDING)
    mine_b = make_event(title="Mine B", total_tickets=1)
    make_event(title="Theirs", organizer_id=make_user(role=UserRole.ORGANIZER)["id"])
    client.post(f"/api/bookings/events/{mine_b}", json={"tickets": 1}, headers=attendee["headers"])

    everything = client.get("/api/events/organizer?all=true&sort=title-asc", headers=organizer["headers"])
    assert everything.json()["pagination"] is None
    assert _titles(everything) == ["Mine A", "Mine B"]

    sold_out = client.get("/api/events/organizer?status=sold-out", headers=organizer["headers"])
    assert _titles(sold_out) == ["Mine B"]

    assert client.get("/api/events/organizer", headers=attendee["headers"]).status_code == 403
