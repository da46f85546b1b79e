def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200


def test_booking_events_land_in_outbox(client, admin, attendee, make_event):
    event_id = make_event()
    booking_id = client.post(
        f"/api/bookings/events/{event_id}",
        json={"tickets": 2},
        headers=attendee["headers"],
    ).json()["id"]
    client.delete(f"/api/bookings/{booking_id}", headers=attendee["headers"])

    response = client.get("/api/admin/outbox/events", headers=admin["headers"])

    assert response.status_code == 200
    events = response.json()
    assert [item["event_type"] for item in events] == ["BOOKING_CONFIRMED", "BOOKING_CANCELED"]
    assert events[0]["payload"]["booking_id"] == booking_id
    assert events[0]["payload"]["tickets_booked"] == 2


def test_mark_outbox_event_published(client, admin, attendee, make_event):
    event_id = make_event()
    client.post(f"/api/bookings/events/{event_id}", json={"tickets": 1}, headers=attendee["headers"])
    outbox_id = client.get("/api/admin/outbox/events", headers=admin["headers"]).json()[0]["id"]

    response = client.post(
        f"/api/admin/outbox/events/{outbox_id}/mark-published",
        headers=admin["headers"],
    )

    assert response.status_code == 200
    assert response.json()["status"] == "PUBLISHED"
    assert response.json()["attempts"] == 1
    assert response.json()["published_at"] is not None
    assert client.get("/api/admin/outbox/events", headers=admin["headers"]).json() == []

    published = client.get(
        "/api/admin/outbox/events?status_filter=PUBLISHED",
        headers=admin["headers"],
    )
    assert [item["id"] for item in published.json()] == [outbox_id]


def test_mark_unknown_outbox_event(client, admin):
    response = client.post("/api/admin/outbox/events/missing/mark-published", headers=admin["headers"])

    assert response.status_code == 404


def test_admin_routes_require_admin(client, organizer):
    assert client.get("/api/admin/outbox/events", headers=organizer["headers"]).status_code == 403
    assert client.post("/api/admin/reservations/expire", headers=organizer["headers"]).status_code == 403
    assert client.get("/api/admin/outbox/events").status_code == 401
