from venue.core.config import settings
from venue.core.rate_limiter import rate_limiter


def test_register_rate_limit_returns_429(client):
    original_limit = settings.auth_register_max_attempts
    settings.auth_register_max_attempts = 2
    rate_limiter.reset()
    try:
        statuses = [
            client.post(
                "/auth/register",
                json={"email": f"limit{index}@example.com", "password": "StrongPass123"},
            )
            for index in range(3)
        ]

        assert [response.status_code for response in statuses] == [201, 201, 429]
        assert statuses[2].json()["error"]["code"] == "http_429"
        assert statuses[2].headers.get("Retry-After")
    finally:
        settings.auth_register_max_attempts = original_limit
        rate_limiter.reset()


def test_login_rate_limit_returns_429(client):
    original_limit = settings.auth_login_max_attempts
    settings.auth_login_max_attempts = 2
    rate_limiter.reset()
    try:
        client.post("/auth/register", json={"email": "loglimit@example.com", "password": "StrongPass123"})

        attempts = [
            client.post("/auth/login", json={"email": "loglimit@example.com", "password": "WrongPass123"})
            for _ in range(3)
        ]

        assert [response.status_code for response in attempts] == [401, 401, 429]
    finally:
        settings.auth_login_max_attempts = original_limit
        rate_limiter.reset()


def test_reservation_create_rate_limit(client, member_headers):
    original_limit = settings.reservation_create_max_attempts
    settings.reservation_create_max_attempts = 1
    try:
        payload = {"date": "2024-06-06", "start_time": "19:00", "room_type": "bar", "party_size": 4}
        first = client.post("/reservations", json=payload, headers=member_headers)
        second = client.post("/reservations", json=payload, headers=member_headers)

        assert first.status_code == 201
        assert second.status_code == 429
    finally:
        settings.reservation_create_max_attempts = original_limit


def test_repeat_requests_for_one_slot_are_limited_per_member(client, member_headers, login):
    original_limit = settings.reservation_slot_max_attempts
    settings.reservation_slot_max_attempts = 2
    try:
        payload = {"date": "2024-06-06", "start_time": "19:00", "room_type": "bar", "party_size": 4}
        repeats = [client.post("/reservations", json=payload, headers=member_headers) for _ in range(3)]
        other_slot = client.post("/reservations", json={**payload, "start_time": "21:00"}, headers=member_headers)

        client.post("/auth/register", json={"email": "other@example.com", "password": "StrongPass123"})
        other_member = client.post("/reservations", json=payload, headers=login("other@example.com"))

        assert [response.status_code for response in repeats] == [201, 201, 429]
        assert other_slot.status_code == 201
        assert other_member.status_code == 201
    finally:
        settings.reservation_slot_max_attempts = original_limit
