from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path"],
)

RESERVATION_OUTCOMES = Counter(
    "reservation_outcomes_total",
    "Reservation create attempts by outcome",
    ["room_type", "outcome"],
)

WAITLIST_PROMOTIONS = Counter(
    "waitlist_promotions_total",
    "Waitlisted reservations promoted to confirmed",
    ["room_type"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
