THURSDAY = "2024-06-06"
FRIDAY = "2024-06-07"


def _reserve(client, headers, **overrides):
    payload = {"date": THURSDAY, "start_time": "19:00", "room_type": "bar", "party_size": 4}
    payload.update(overrides)
    return client.post("/reservations", json=payload, headers=headers)


def _second_member(client, login, email="second@example.com"):
    client.post("/auth/register", json={"email": email, "password": "StrongPass123", "phone": "+15550002222"})
    return login(email)


def test_availability_lists_statuses_and_start_times(client, member_headers):
    _reserve(client, member_headers, start_time="19:00", end_time="20:00")

    response = client.get("/reservations/availability", params={"date": THURSDAY, "type": "bar"})

    assert response.status_code == 200
    data = response.json()
    statuses = {slot["time"]: slot["status"] for slot in data["slots"]}
    assert data["operating_hours"] == "6:00 PM - 2:00 AM"
    assert statuses["19:00"] == "booked"
    assert statuses["19:30"] == "booked"
    assert statuses["20:00"] == "available"
    assert statuses["01:30"] == "available"
    assert "19:00" not in data["available_start_times"]
    assert "00:00" not in data["available_start_times"]
    assert data["available_start_times"][-1] == "23:30"


def test_availability_shows_bar_priority_for_mahjong(client):
    response = client.get("/reservations/availability", params={"date": FRIDAY, "type": "mahjong"})

    statuses = {slot["time"]: slot["status"] for slot in response.json()["slots"]}
    assert statuses["20:00"] == "restricted"
    assert statuses["22:30"] == "restricted"
    assert statuses["23:00"] == "available"


def test_past_slots_are_marked(client):
    response = client.get("/reservations/availability", params={"date": "2024-06-04", "type": "poker"})

    assert {slot["status"] for slot in response.json()["slots"]} == {"past"}
    assert response.json()["available_start_times"] == []


def test_max_duration_explains_the_limit(client, member_headers):
    _reserve(client, member_headers, start_time="21:00")

    response = client.get(
        "/reservations/max-duration",
        params={"date": THURSDAY, "type": "mahjong", "start_time": "19:00", "party_size": 2},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["max_hours"] == 2.0
    assert data["limited_by_bookings"] is True
    assert data["limited_by_closing_time"] is False


def test_consecutive_windows(client, member_headers):
    _reserve(client, member_headers, start_time="19:00")

    response = client.get(
        "/reservations/consecutive",
        params={"date": THURSDAY, "type": "bar", "duration_hours": 1.5},
    )

    windows = response.json()["windows"]
    assert windows[0] == ["19:30", "20:00", "20:30"]
    assert all(len(window) == 3 for window in windows)
    assert windows[-1] == ["00:30", "01:00", "01:30"]


def test_create_confirmed_then_waitlisted(client, member_headers, login):
    other_headers = _second_member(client, login)

    first = _reserve(client, member_headers)
    second = _reserve(client, other_headers)

    assert first.status_code == 201
    assert first.json()["waitlisted"] is False
    assert first.json()["reservation"]["status"] == "confirmed"
    assert second.status_code == 201
    assert second.json()["waitlisted"] is True
    assert second.json()["waitlist_position"] == 1

    reservation_id = second.json()["reservation"]["id"]
    position = client.get(f"/reservations/{reservation_id}/wait-list-position", headers=other_headers)
    assert position.json() == {"reservation_id": reservation_id, "status": "waitlisted", "position": 1}
    assert client.get(f"/reservations/{reservation_id}/wait-list-position", headers=member_headers).status_code == 403


def test_rejections_map_to_bad_request(client, member_headers):
    outside = _reserve(client, member_headers, date="2024-06-25")
    too_long = _reserve(client, member_headers, party_size=2, end_time="21:30")

    assert outside.status_code == 400
    assert outside.json()["error"]["code"] == "outside_booking_window"
    assert too_long.status_code == 400
    assert too_long.json()["error"]["code"] == "exceeds_bar_time_limit"


def test_time_outside_operating_hours_is_unprocessable(client, member_headers):
    response = _reserve(client, member_headers, start_time="10:00")

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "invalid_booking_time"
    assert "6:00 PM - 2:00 AM" in response.json()["detail"]


def test_cancel_promotes_the_next_guest(client, member_headers, login):
    other_headers = _second_member(client, login)
    confirmed_id = _reserve(client, member_headers).json()["reservation"]["id"]
    waiting_id = _reserve(client, other_headers).json()["reservation"]["id"]

    response = client.patch(f"/reservations/{confirmed_id}/cancel", headers=member_headers)

    assert response.status_code == 200
    assert response.json()["reservation"]["status"] == "cancelled"
    assert response.json()["promoted_reservation_id"] == waiting_id
    mine = client.get("/reservations/me", headers=other_headers).json()
    assert [(item["id"], item["status"]) for item in mine] == [(waiting_id, "confirmed")]


def test_cancel_errors(client, member_headers, login):
    other_headers = _second_member(client, login)
    reservation_id = _reserve(client, member_headers).json()["reservation"]["id"]

    forbidden = client.patch(f"/reservations/{reservation_id}/cancel", headers=other_headers)
    client.patch(f"/reservations/{reservation_id}/cancel", headers=member_headers)
    again = client.patch(f"/reservations/{reservation_id}/cancel", headers=member_headers)

    assert forbidden.status_code == 403
    assert forbidden.json()["error"]["code"] == "permission_denied"
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "already_cancelled"


def test_confirm_attendance(client, member_headers):
    reservation_id = _reserve(client, member_headers).json()["reservation"]["id"]

    response = client.post(f"/reservations/{reservation_id}/confirm-attendance", headers=member_headers)

    assert response.status_code == 200
    assert response.json()["attendance_confirmed_at"] is not None


def test_poker_wait_list_flow(client, member_headers, login):
    other_headers = _second_member(client, login)
    payload = {"date": FRIDAY, "start_time": "21:00"}

    first = client.post("/poker/wait-list", json=payload, headers=member_headers)
    second = client.post("/poker/wait-list", json=payload, headers=other_headers)
    duplicate = client.post("/poker/wait-list", json=payload, headers=member_headers)

    assert first.status_code == 201 and first.json()["position"] == 1
    assert second.json()["position"] == 2
    assert duplicate.status_code == 409

    left = client.delete(f"/poker/wait-list/{first.json()['entry']['id']}", headers=member_headers)
    assert left.json()["queue_state"] == "declined"

    queue = client.get("/poker/wait-list", params=payload, headers=member_headers).json()
    assert [(item["entry"]["id"], item["position"]) for item in queue] == [(second.json()["entry"]["id"], 1)]
