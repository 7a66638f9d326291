from datetime import datetime, timedelta, timezone


def _create_show(client, total_seats=10):
    start = datetime.now(timezone.utc) + timedelta(days=2)
    payload = {
        "name": "Matinee",
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(hours=2)).isoformat(),
        "total_seats": total_seats,
        "price": "12.50",
    }
    response = client.post("/shows", json=payload)
    assert response.status_code == 201
    return response.json()


def _book(client, show_id, name, email, seats, num_seats=None):
    payload = {
        "show_id": show_id,
        "customer_name": name,
        "customer_email": email,
        "num_seats": len(seats) if num_seats is None else num_seats,
        "seat_numbers": seats,
    }
    return client.post("/bookings", json=payload)


def test_booking_flow(client):
    show = _create_show(client)
    assert show["available_seats"] == 10
    assert show["booked_seat_numbers"] == []

    response = _book(client, show["id"], "A", "a@x.com", [1, 2, 3])

    assert response.status_code == 201
    booking = response.json()["booking"]
    assert booking["status"] == "pending"
    assert booking["seat_numbers"] == [1, 2, 3]
    assert "2 minutes" in response.json()["message"]

    conflict = _book(client, show["id"], "B", "b@x.com", [2, 3])
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["seats"] == [2, 3]

    confirm_response = client.put(f"/bookings/{booking['id']}/confirm")
    assert confirm_response.status_code == 200
    assert confirm_response.json()["status"] == "confirmed"

    show_bookings = client.get(f"/shows/{show['id']}/bookings")
    assert [b["id"] for b in show_bookings.json()] == [booking["id"]]

    detail = client.get(f"/shows/{show['id']}").json()
    assert detail["available_seats"] == 7
    assert detail["booked_seat_numbers"] == [1, 2, 3]

    cancel_response = client.put(f"/bookings/{booking['id']}/cancel")
    assert cancel_response.status_code == 200
    assert cancel_response.json()["status"] == "cancelled"

    again = client.put(f"/bookings/{booking['id']}/cancel")
    assert again.status_code == 409

    detail = client.get(f"/shows/{show['id']}").json()
    assert detail["available_seats"] == 10


def test_count_mismatch_is_unprocessable(client):
    show = _create_show(client)

    response = _book(client, show["id"], "C", "c@x.com", [1], num_seats=2)

    assert response.status_code == 422


def test_unknown_resources_are_not_found(client):
    assert client.get("/bookings/missing").status_code == 404
    assert client.put("/bookings/missing/confirm").status_code == 404
    assert client.get("/shows/missing").status_code == 404
    assert _book(client, "missing", "A", "a@x.com", [1]).status_code == 404


def test_duplicate_pending_booking_conflicts(client):
    show = _create_show(client)
    assert _book(client, show["id"], "A", "a@x.com", [1]).status_code == 201

    response = _book(client, show["id"], "A", "a@x.com", [2])

    assert response.status_code == 409


def test_pending_and_customer_listings(client):
    show = _create_show(client)
    booking = _book(client, show["id"], "A", "a@x.com", [4]).json()["booking"]

    pending = client.get("/bookings/pending").json()
    mine = client.get("/bookings/my", params={"email": "a@x.com"}).json()

    assert [b["id"] for b in pending] == [booking["id"]]
    assert [b["id"] for b in mine] == [booking["id"]]
    assert client.get("/bookings/my").status_code == 422


def test_show_with_end_before_start_is_rejected(client):
    start = datetime.now(timezone.utc) + timedelta(days=2)
    payload = {
        "name": "Backwards",
        "start_time": start.isoformat(),
        "end_time": (start - timedelta(hours=1)).isoformat(),
        "total_seats": 5,
        "price": "1.00",
    }

    assert client.post("/shows", json=payload).status_code == 422


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_malformed_email_is_unprocessable(client):
    show = _create_show(client)

    response = _book(client, show["id"], "A", "not-an-email", [1])

    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["body", "customer_email"]


def test_show_listing(client):
    first = _create_show(client, total_seats=4)
    second = _create_show(client, total_seats=6)
    _book(client, second["id"], "A", "a@x.com", [1, 2])

    listed = {s["id"]: s["available_seats"] for s in client.get("/shows").json()}

    assert listed == {first["id"]: 4, second["id"]: 4}
    assert len(client.get("/shows", params={"all": "true"}).json()) == 2
