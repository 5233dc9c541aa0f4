from prometheus_client import REGISTRY

CONFIRMED_BAR = {"room_type": "bar", "outcome": "confirmed"}


def _confirmed_bar_count() -> float:
    return REGISTRY.get_sample_value("reservation_outcomes_total", CONFIRMED_BAR) or 0.0


def test_request_id_header_is_present(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.headers.get("X-Request-ID")


def test_incoming_request_id_is_echoed_in_errors(client):
    response = client.get("/users/me", headers={"X-Request-ID": "trace-123"})

    assert response.status_code == 401
    assert response.headers["X-Request-ID"] == "trace-123"
    assert response.json()["request_id"] == "trace-123"


def test_metrics_endpoint_returns_prometheus_text(client, member_headers):
    before = _confirmed_bar_count()
    client.post(
        "/reservations",
        json={"date": "2024-06-06", "start_time": "19:00", "room_type": "bar", "party_size": 4},
        headers=member_headers,
    )

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "text/plain" in response.headers.get("content-type", "")
    body = response.text
    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "reservation_outcomes_total" in body
    assert _confirmed_bar_count() == before + 1


def test_domain_errors_share_the_error_shape(client, member_headers):
    response = client.patch("/reservations/404/cancel", headers=member_headers)

    assert response.status_code == 404
    body = response.json()
    assert body["error"]["code"] == "reservation_not_found"
    assert body["detail"] == "Reservation with ID 404 does not exist"
    assert "request_id" in body
