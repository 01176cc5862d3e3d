from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import MethodError, RoutingError

if TYPE_CHECKING:
    from .registry import Backend, BackendRegistry

LOG = logging.getLogger("s3_domain_proxy.routing")

ALLOWED_METHODS = frozenset({"GET", "HEAD"})


def routing_key(host: str | None) -> str:
    """Return the Host header value without its ``:port`` suffix."""
    if not host:
        return ""
    if host.startswith("["):
        # IPv6 literal, e.g. "[::1]:8080"
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    return host.split(":", 1)[0]


class RequestRouter:
    def __init__(self, registry: BackendRegistry):
        self._registry = registry

    def route(self, method: str, host: str | None) -> Backend:
        """Resolve a request to its backend.

        Raises:
            MethodError: for anything but GET and HEAD.
            RoutingError: when the Host matches no configured domain.
        """
        if method not in ALLOWED_METHODS:
            raise MethodError(method)

        domain = routing_key(host)
        backend = self._registry.get(domain)
        if backend is None:
            LOG.info("Domain not found: %s", domain)
            raise RoutingError(domain)
        return backend
