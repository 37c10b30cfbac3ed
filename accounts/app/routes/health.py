"""Health check route."""

from fastapi import APIRouter, Request, Response

from accounts.app.core.health import NO_CACHE_HEADERS

router = APIRouter(tags=["health"])

HEALTH_PATHS = ("/healthz", "/health")
ALLOWED_METHODS = {path: ("GET",) for path in HEALTH_PATHS}

# Transport-level headers a plain probe may carry; anything else is a 400.
ALLOWED_PROBE_HEADERS = {
    "host",
    "user-agent",
    "accept",
    "accept-encoding",
    "accept-language",
    "connection",
    "cache-control",
    "pragma",
    "postman-token",
    "via",
    "forwarded",
    "x-forwarded-for",
    "x-forwarded-host",
    "x-forwarded-port",
    "x-forwarded-proto",
    "x-real-ip",
    "x-amzn-trace-id",
    "x-cloud-trace-context",
    "traceparent",
}


def is_clean_probe(request: Request) -> bool:
    """A probe is clean with no query string, no body and only transport headers."""
    if request.query_params:
        return False
    headers = request.headers
    if "transfer-encoding" in headers:
        return False
    if headers.get("content-length", "0").strip() not in ("", "0"):
        return False
    return all(name in ALLOWED_PROBE_HEADERS or name == "content-length" for name in headers.keys())


async def healthz(request: Request):
    """Report database reachability. Never cached, never has a body."""
    if not is_clean_probe(request):
        return Response(status_code=400, headers=NO_CACHE_HEADERS)
    monitor = getattr(request.app.state, "health", None)
    if monitor is None or not monitor.healthy:
        return Response(status_code=503, headers=NO_CACHE_HEADERS)
    return Response(status_code=200, headers=NO_CACHE_HEADERS)


for _path in HEALTH_PATHS:
    router.add_api_route(_path, healthz, methods=["GET"], include_in_schema=_path == "/healthz")
