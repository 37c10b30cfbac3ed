"""Account Service: user registration, verification, profile and picture API.

FastAPI application with Basic-Auth self routes, GCS-backed profile pictures,
email verification and a database health gate.
"""

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from accounts.app.core.config import settings
from accounts.app.core.database import init_db, ping_db
from accounts.app.core.errors import AccountServiceError
from accounts.app.core.health import HealthGateMiddleware, HealthMonitor
from accounts.app.core.methods import MethodGuardMiddleware
from accounts.app.routes import health, pictures, users


def _configure_logging() -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )


_configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    logger.info("%s starting up...", settings.app_name)
    monitor: HealthMonitor = app.state.health
    await monitor.start()
    if not monitor.healthy:
        logger.warning("Database unreachable at startup; gated routes return 503")
    yield
    await monitor.stop()
    logger.info("%s shut down", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    lifespan=lifespan,
)
app.state.health = HealthMonitor(
    ping_db,
    interval=settings.db_health_interval_seconds,
    on_recover=init_db,
)

ROUTE_METHODS = {**health.ALLOWED_METHODS, **users.ALLOWED_METHODS, **pictures.ALLOWED_METHODS}

# Last added runs first: health gate, then the 405 guard, then CORS preflight
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)
app.add_middleware(
    MethodGuardMiddleware,
    allowed=ROUTE_METHODS,
    no_cache_paths=health.HEALTH_PATHS,
)
app.add_middleware(
    HealthGateMiddleware,
    gated_paths=tuple(ROUTE_METHODS),
    health_paths=health.HEALTH_PATHS,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# ── Error responses: status code only, never a body ─────────────────


@app.exception_handler(AccountServiceError)
async def account_error_handler(request: Request, exc: AccountServiceError):
    logger.info("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.detail)
    return Response(status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        logger.info("404 - Not Found: %s %s", request.method, request.url.path)
    return Response(status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(OperationalError)
async def database_unavailable_handler(request: Request, exc: OperationalError):
    logger.error("Database unreachable on %s %s: %s", request.method, request.url.path, exc)
    return Response(status_code=503)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("Bad request %s %s: %s", request.method, request.url.path, exc.errors())
    return Response(status_code=400)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return Response(status_code=500)


# Routes
app.include_router(health.router)
app.include_router(users.router)
app.include_router(pictures.router)
