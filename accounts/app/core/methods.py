"""Method allow-list enforced ahead of CORS and routing."""

from typing import Optional

from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from accounts.app.core.health import NO_CACHE_HEADERS

METHOD_ORDER = ("GET", "POST", "PUT", "PATCH", "DELETE")


def allow_header(methods: tuple[str, ...]) -> str:
    """Render an ``Allow`` value in a stable order."""
    return ", ".join(m for m in METHOD_ORDER if m in methods)


class MethodGuardMiddleware:
    """405 with ``Allow`` for any method a known path does not serve.

    Sits outside CORSMiddleware so a browser preflight (OPTIONS with
    ``Origin`` and ``Access-Control-Request-Method``) on these paths gets
    the same 405 as a plain OPTIONS. Unknown paths pass through to routing.

    Args:
        app: Wrapped ASGI app.
        allowed: Path to the methods it serves.
        no_cache_paths: Paths whose 405 also carries the no-cache headers.
    """

    def __init__(
        self,
        app: ASGIApp,
        allowed: dict[str, tuple[str, ...]],
        no_cache_paths: tuple[str, ...] = (),
    ):
        self.app = app
        self.allowed = allowed
        self.no_cache_paths = no_cache_paths

    def _rejection(self, path: str, method: str) -> Optional[Response]:
        methods = self.allowed.get(path)
        if methods is None or method in methods:
            return None
        headers = {"Allow": allow_header(methods)}
        if path in self.no_cache_paths:
            headers.update(NO_CACHE_HEADERS)
        return Response(status_code=405, headers=headers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] == "http":
            response = self._rejection(scope.get("path", "/"), scope["method"])
            if response is not None:
                await response(scope, receive, send)
                return
        await self.app(scope, receive, send)
