from __future__ import annotations

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING

from litestar.enums import MediaType
from litestar.response import Response

from .errors import FetchError, MethodError, RoutingError
from .fetcher import DEFAULT_FETCH_TIMEOUT, ObjectFetcher, compose_key
from .registry import BackendRegistry
from .routing import RequestRouter
from .translator import ResponseTranslator

if TYPE_CHECKING:
    from litestar import Request

    from .config import ProxyConfig

LOG = logging.getLogger("s3_domain_proxy.proxy")


def error_response(status: HTTPStatus) -> Response:
    return Response(
        content=status.phrase,
        status_code=status.value,
        media_type=MediaType.TEXT,
    )


class S3DomainProxy:
    """Routes each request by Host to its bucket and streams the object back."""

    def __init__(
        self,
        registry: BackendRegistry,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
    ):
        self._registry = registry
        self._router = RequestRouter(registry)
        self._fetcher = ObjectFetcher(timeout=fetch_timeout)
        self._translator = ResponseTranslator()

    @classmethod
    def from_config(
        cls, config: ProxyConfig, fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    ) -> S3DomainProxy:
        """Build the proxy and one S3 client per configured domain.

        Raises:
            BackendInitError: if any domain's client cannot be created.
        """
        return cls(BackendRegistry.from_config(config), fetch_timeout=fetch_timeout)

    @property
    def registry(self) -> BackendRegistry:
        return self._registry

    async def handle(self, request: Request, path: str) -> Response:
        method = request.method
        try:
            backend = self._router.route(method, request.headers.get("host"))
        except MethodError:
            return error_response(HTTPStatus.METHOD_NOT_ALLOWED)
        except RoutingError:
            return error_response(HTTPStatus.FORBIDDEN)

        LOG.info(
            "Request: %s %s -> %s/%s",
            method,
            path,
            backend.config.bucket,
            compose_key(path, backend.config.path_prefix),
        )
        try:
            result = await self._fetcher.fetch(
                backend, path, request.headers.get("range")
            )
        except FetchError:
            return error_response(HTTPStatus.NOT_FOUND)

        return self._translator.translate(result, method)
