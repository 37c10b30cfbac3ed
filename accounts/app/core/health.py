"""Database reachability monitor and the request gate that reads it."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "X-Content-Type-Options": "nosniff",
}


class HealthMonitor:
    """Last known reachability of the database.

    Written only by ``check()`` (once at startup, then on a fixed interval);
    read by the gate middleware and the health route.

    Args:
        probe: Coroutine function that raises if the database is unreachable.
        interval: Seconds between background checks.
        on_recover: Optional coroutine function run on each unhealthy → healthy
            transition (schema sync).
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[None]],
        interval: float = 2.0,
        on_recover: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        self._probe = probe
        self._on_recover = on_recover
        self.interval = interval
        self.healthy = False
        self._task: Optional[asyncio.Task] = None

    async def check(self) -> bool:
        """Run the probe once and record the result. Logs only on transitions."""
        try:
            await self._probe()
        except Exception as e:
            if self.healthy:
                logger.error("Database unreachable: %s", e)
            self.healthy = False
            return False

        if not self.healthy:
            logger.info("Database connected")
            if self._on_recover is not None:
                try:
                    await self._on_recover()
                except Exception:
                    logger.exception("Recovery hook failed; will retry on next check")
                    return False
        self.healthy = True
        return True

    async def _loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                await self.check()
        except asyncio.CancelledError:
            pass

    async def start(self) -> None:
        """Check synchronously once, then keep checking in the background."""
        await self.check()
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info("Health monitor started (every %.1fs)", self.interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None


class HealthGateMiddleware:
    """Short-circuit gated paths with 503 while the database is down.

    Runs before routing, auth and body parsing. Only exact route paths are
    gated; anything else falls through to routing (and its 404). The monitor
    is looked up on ``app.state.health`` at request time so it can be
    swapped (tests, lifespan).
    """

    def __init__(self, app: ASGIApp, gated_paths: tuple[str, ...], health_paths: tuple[str, ...] = ()):
        self.app = app
        self.gated_paths = frozenset(gated_paths) | frozenset(health_paths)
        self.health_paths = health_paths

    def _is_gated(self, path: str) -> bool:
        return path in self.gated_paths

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] == "http":
            path = scope.get("path", "/")
            if self._is_gated(path):
                monitor: Optional[HealthMonitor] = getattr(scope["app"].state, "health", None)
                if monitor is None or not monitor.healthy:
                    headers = NO_CACHE_HEADERS if path in self.health_paths else None
                    response = Response(status_code=503, headers=headers)
                    await response(scope, receive, send)
                    return
        await self.app(scope, receive, send)
