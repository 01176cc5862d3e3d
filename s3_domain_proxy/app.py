from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import unquote

import anyio
from litestar import Litestar, Request
from litestar.handlers import asgi
from litestar.middleware import DefineMiddleware, MiddlewareProtocol

from .config import ServerSettings, load_config
from .proxy import S3DomainProxy

if TYPE_CHECKING:
    from litestar.types import ASGIApp, Receive, Scope, Send

    from .config import ProxyConfig

LOG = logging.getLogger("s3_domain_proxy.app")


def request_path(scope: Scope) -> str:
    """Return the decoded request path as sent by the client.

    The mount rewrites ``scope["path"]`` (a trailing slash is appended), so the
    path is rebuilt from ``raw_path``; keys that really end in "/" survive.
    """
    raw_path = scope.get("raw_path")
    if raw_path:
        path = unquote(raw_path.split(b"?", 1)[0].decode("latin-1"))
    else:
        path = scope.get("path", "/")
    if not path.startswith("/"):
        path = f"/{path}"
    return path


class WriteDeadlineMiddleware(MiddlewareProtocol):
    """Cancel a request that has not finished its response within ``timeout``."""

    def __init__(self, app: ASGIApp, timeout: float) -> None:
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        with anyio.move_on_after(self.timeout) as cancel_scope:
            await self.app(scope, receive, send)
        if cancel_scope.cancelled_caught:
            LOG.warning(
                "write timeout after %.1fs for %s %s",
                self.timeout,
                scope.get("method"),
                scope.get("path"),
            )


def create_app(
    config: ProxyConfig | None = None,
    *,
    proxy: S3DomainProxy | None = None,
    settings: ServerSettings | None = None,
) -> Litestar:
    """Create the proxy ASGI application.

    Without arguments the configuration file named by ``ServerSettings`` is
    loaded, which also makes this usable as a uvicorn ``--factory``.
    """
    settings = settings or ServerSettings()
    if proxy is None:
        config = config or load_config(settings.config)
        proxy = S3DomainProxy.from_config(config, fetch_timeout=settings.write_timeout)

    @asgi(path="/", is_mount=True, copy_scope=True)
    async def proxy_handler(scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope=scope, receive=receive)
        path = request_path(scope)
        response = await proxy.handle(request, path)
        asgi_response = response.to_asgi_response(None, request)
        await asgi_response(scope, receive, send)

    route_handlers: list = [proxy_handler]
    middleware: list = [
        DefineMiddleware(WriteDeadlineMiddleware, timeout=settings.write_timeout)
    ]
    if settings.metrics_enabled:
        from litestar.plugins.prometheus import PrometheusConfig, PrometheusController

        prometheus_config = PrometheusConfig(
            app_name="s3_domain_proxy", prefix="s3_domain_proxy"
        )
        route_handlers.append(PrometheusController)
        middleware.append(prometheus_config.middleware)

    return Litestar(route_handlers=route_handlers, middleware=middleware)
