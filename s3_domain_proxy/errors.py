"""Exception hierarchy for the proxy pipeline and its startup path."""

from __future__ import annotations


class ProxyError(Exception):
    """Base class for every error raised by the proxy."""


class ConfigError(ProxyError):
    """The configuration file is missing, unreadable or invalid."""


class BackendInitError(ProxyError):
    """A storage client could not be built for a configured domain."""

    def __init__(self, domain: str, cause: Exception) -> None:
        super().__init__(f"failed to create S3 client for {domain}: {cause}")
        self.domain = domain
        self.cause = cause


class MethodError(ProxyError):
    """The request method is not GET or HEAD."""

    def __init__(self, method: str) -> None:
        super().__init__(f"method not allowed: {method}")
        self.method = method


class RoutingError(ProxyError):
    """The Host header does not match any configured domain."""

    def __init__(self, domain: str) -> None:
        super().__init__(f"domain not found: {domain}")
        self.domain = domain


class FetchError(ProxyError):
    """The backend could not deliver the object.

    ``code`` keeps the backend's reason (``NoSuchKey``, ``AccessDenied``,
    ``EndpointConnectionError``, ``Timeout``...) for logs; clients only ever
    see a 404.
    """

    def __init__(self, bucket: str, key: str, code: str, detail: str = "") -> None:
        super().__init__(f"fetch failed for s3://{bucket}/{key} ({code}): {detail}")
        self.bucket = bucket
        self.key = key
        self.code = code
        self.detail = detail


class StreamCopyError(ProxyError):
    """Copying the object body to the client failed after headers were sent."""
