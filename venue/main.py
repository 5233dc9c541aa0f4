import logging
import time
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError

from venue.api.v1.admin import router as admin_router
from venue.api.v1.auth import router as auth_router
from venue.api.v1.poker import router as poker_router
from venue.api.v1.reservations import router as reservations_router
from venue.api.v1.users import router as users_router
from venue.core.exceptions import (
    VenueError,
    http_exception_handler,
    validation_exception_handler,
    venue_error_handler,
)
from venue.core.logging import setup_logging
from venue.core.metrics import REQUEST_COUNT, REQUEST_LATENCY, render_metrics
from venue.core.request_context import request_id_ctx_var

setup_logging()
logger = logging.getLogger("venue.request")

app = FastAPI(title="Venue Reservations API", version="0.1.0")
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(VenueError, venue_error_handler)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(reservations_router)
app.include_router(poker_router)
app.include_router(admin_router)


def _route_template(request: Request) -> str:
    # label by route pattern so reservation ids do not explode metric cardinality
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


@app.middleware("http")
async def observability_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    token = request_id_ctx_var.set(request_id)
    start = time.perf_counter()
    method = request.method
    try:
        response = await call_next(request)
    except Exception:
        elapsed = time.perf_counter() - start
        path = _route_template(request)
        REQUEST_COUNT.labels(method=method, path=path, status_code=500).inc()
        REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
        logger.exception(
            "request_failed method=%s path=%s status=500 duration_ms=%.2f",
            method,
            path,
            elapsed * 1000,
        )
        request_id_ctx_var.reset(token)
        raise

    elapsed = time.perf_counter() - start
    path = _route_template(request)
    REQUEST_COUNT.labels(method=method, path=path, status_code=response.status_code).inc()
    REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request_completed method=%s path=%s status=%s duration_ms=%.2f",
        method,
        path,
        response.status_code,
        elapsed * 1000,
    )
    request_id_ctx_var.reset(token)
    return response


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics", tags=["observability"])
def metrics() -> Response:
    payload, content_type = render_metrics()
    return Response(content=payload, media_type=content_type)
