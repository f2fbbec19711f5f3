from __future__ import annotations

import time
from typing import Callable

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, Info, generate_latest

_HTTP_LABELS = ["method", "route", "status"]

REQUEST_COUNT = Counter("socialfeed_http_requests_total", "Requests served, by route and status", _HTTP_LABELS)
REQUEST_ERRORS = Counter("socialfeed_http_errors_total", "Requests that ended in a 5xx", _HTTP_LABELS)
REQUEST_LATENCY = Histogram(
    "socialfeed_http_request_seconds",
    "Time spent handling a request",
    ["method", "route"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)
UPTIME_SECONDS = Gauge("socialfeed_uptime_seconds", "Seconds since the process started")
APP_INFO = Info("socialfeed", "Service name and version")

SIGNUPS = Counter(
    "socialfeed_signups_total",
    "Total accounts registered",
)
PROFILES_BACKFILLED = Counter(
    "socialfeed_profiles_backfilled_total",
    "Profiles created lazily on sign-in or first authenticated request",
)
POSTS_CREATED = Counter(
    "socialfeed_posts_created_total",
    "Total posts created",
)
LIKE_TOGGLES = Counter(
    "socialfeed_like_toggles_total",
    "Like ledger changes",
    ["action"],
)
COMMENTS_CREATED = Counter(
    "socialfeed_comments_created_total",
    "Total comments created",
)
COUNTER_RECOMPUTE_FAILURES = Counter(
    "socialfeed_counter_recompute_failures_total",
    "Derived post counters that could not be persisted",
    ["counter"],
)
NOTIFICATIONS = Counter(
    "socialfeed_notifications_total",
    "Notification emails by kind and outcome",
    ["kind", "outcome"],
)

_STARTED_AT = time.monotonic()


def _route_template(request: Request) -> str:
    # Route template, or the raw path when nothing matched.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def record_like_toggle(liked: bool) -> None:
    LIKE_TOGGLES.labels(action="like" if liked else "unlike").inc()


def record_notification(kind: str, outcome: str) -> None:
    NOTIFICATIONS.labels(kind=kind, outcome=outcome).inc()


def _observe(request: Request, status: int, elapsed: float) -> None:
    route = _route_template(request)
    REQUEST_LATENCY.labels(method=request.method, route=route).observe(elapsed)
    labels = {"method": request.method, "route": route, "status": str(status)}
    REQUEST_COUNT.labels(**labels).inc()
    if status >= 500:
        REQUEST_ERRORS.labels(**labels).inc()


async def metrics_middleware(request: Request, call_next: Callable[[Request], Response]) -> Response:
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        _observe(request, 500, time.perf_counter() - started)
        raise
    _observe(request, response.status_code, time.perf_counter() - started)
    return response


def set_app_info(name: str, version: str) -> None:
    APP_INFO.info({"name": name, "version": version})


def metrics_endpoint() -> Response:
    UPTIME_SECONDS.set(time.monotonic() - _STARTED_AT)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
