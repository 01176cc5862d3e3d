from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

import anyio
from anyio import to_thread
from botocore.exceptions import ClientError

from .errors import FetchError

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from .registry import Backend

LOG = logging.getLogger("s3_domain_proxy.fetcher")

DEFAULT_FETCH_TIMEOUT = 30.0


async def _run_sync(func: Callable[..., Any], /, *args: Any) -> Any:
    return await to_thread.run_sync(func, *args, abandon_on_cancel=True)


class _GetObjectCall:
    """A ``get_object`` call whose late response is closed once abandoned."""

    def __init__(self, func: Callable[[], dict[str, Any]]):
        self._func = func
        self._lock = threading.Lock()
        self._response: dict[str, Any] | None = None
        self._abandoned = False

    def __call__(self) -> dict[str, Any]:
        response = self._func()
        with self._lock:
            self._response = response
            if self._abandoned:
                response["Body"].close()
        return response

    def abandon(self) -> None:
        with self._lock:
            if self._abandoned:
                return
            self._abandoned = True
            if self._response is not None:
                self._response["Body"].close()


def compose_key(path: str, prefix: str = "") -> str:
    """Map a request path onto an object key under ``prefix``.

    >>> compose_key("/bar.txt", "foo/")
    'foo/bar.txt'
    >>> compose_key("/bar.txt")
    'bar.txt'
    """
    key = path.removeprefix("/")
    if prefix:
        key = f"{prefix.rstrip('/')}/{key}"
    return key


@dataclass
class FetchResult:
    """Object metadata plus the still-open body of one ``GetObject`` call."""

    body: Any
    content_type: str | None = None
    content_length: int | None = None
    etag: str | None = None
    last_modified: datetime | None = None
    cache_control: str | None = None
    content_range: str | None = None
    _closed: bool = False

    @classmethod
    def from_response(cls, response: dict[str, Any]) -> FetchResult:
        return cls(
            body=response["Body"],
            content_type=response.get("ContentType"),
            content_length=response.get("ContentLength"),
            etag=response.get("ETag"),
            last_modified=response.get("LastModified"),
            cache_control=response.get("CacheControl"),
            content_range=response.get("ContentRange"),
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.body.close()


def _error_code(error: Exception) -> str:
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        code = details.get("Code")
        if code:
            return str(code)
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return str(status) if status else "ClientError"
    if isinstance(error, TimeoutError):
        return "Timeout"
    return type(error).__name__


class ObjectFetcher:
    """Issues ``GetObject`` calls against a resolved backend."""

    def __init__(self, timeout: float = DEFAULT_FETCH_TIMEOUT):
        self._timeout = timeout

    async def fetch(
        self, backend: Backend, path: str, range_header: str | None = None
    ) -> FetchResult:
        """Fetch the object addressed by ``path`` from ``backend``.

        The Range header, when present, is forwarded verbatim; the backend
        decides whether it is satisfiable.

        Raises:
            FetchError: on any backend failure, whatever the cause.
        """
        bucket = backend.config.bucket
        key = compose_key(path, backend.config.path_prefix)
        LOG.debug("fetch %s -> s3://%s/%s range=%s", path, bucket, key, range_header)

        get_kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key}
        if range_header:
            get_kwargs["Range"] = range_header

        call = _GetObjectCall(partial(backend.client.get_object, **get_kwargs))
        try:
            with anyio.fail_after(self._timeout):
                response = await _run_sync(call)
        except Exception as error:
            call.abandon()
            raise self._failed(backend, key, error) from error
        except BaseException:
            # cancelled from outside, e.g. the client went away
            call.abandon()
            raise

        return FetchResult.from_response(response)

    def _failed(self, backend: Backend, key: str, error: Exception) -> FetchError:
        bucket = backend.config.bucket
        code = _error_code(error)
        LOG.warning(
            "fetch failed for %s s3://%s/%s code=%s: %s",
            backend.domain,
            bucket,
            key,
            code,
            error,
        )
        return FetchError(bucket, key, code, str(error))
