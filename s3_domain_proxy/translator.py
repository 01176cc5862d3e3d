from __future__ import annotations

import logging
from datetime import UTC, datetime
from email.utils import format_datetime
from typing import TYPE_CHECKING, Any

from anyio import to_thread
from botocore.exceptions import BotoCoreError
from litestar.response import Response, Stream

from .errors import StreamCopyError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .fetcher import FetchResult

LOG = logging.getLogger("s3_domain_proxy.translator")

CHUNK_SIZE = 1024 * 64


def format_header_value(value: Any) -> str:
    if isinstance(value, datetime):
        aware = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        aware = aware.astimezone(UTC)
        return format_datetime(aware, usegmt=True)
    return str(value)


def object_headers(result: FetchResult) -> dict[str, str]:
    """Translate backend object metadata into response headers."""
    headers = {"Access-Control-Allow-Origin": "*"}
    mapping = {
        "Content-Type": result.content_type,
        "Content-Length": result.content_length,
        "ETag": result.etag,
        "Last-Modified": result.last_modified,
        "Cache-Control": result.cache_control,
        "Content-Range": result.content_range,
    }
    for header, value in mapping.items():
        if value is None:
            continue
        headers[header] = format_header_value(value)
    return headers


class ResponseTranslator:
    def __init__(self, chunk_size: int = CHUNK_SIZE):
        self._chunk_size = chunk_size

    def translate(self, result: FetchResult, method: str) -> Response:
        """Build the client response for a successful fetch.

        HEAD responses carry headers only and release the backend stream
        immediately. GET responses stream the body; the stream is closed once
        the copy ends, however it ends.
        """
        headers = object_headers(result)
        status_code = 206 if result.content_range else 200

        if method == "HEAD":
            result.close()
            return Response(content=b"", headers=headers, status_code=status_code)

        return Stream(
            content=self._iter_body(result),
            status_code=status_code,
            headers=headers,
        )

    async def _iter_body(self, result: FetchResult) -> AsyncIterator[bytes]:
        streaming_body = result.body
        sent = 0
        try:
            while True:
                try:
                    chunk = await to_thread.run_sync(streaming_body.read, self._chunk_size)
                except (BotoCoreError, OSError) as error:
                    LOG.warning(
                        "Failed to copy response body after %d bytes: %s", sent, error
                    )
                    raise StreamCopyError(str(error)) from error
                if not chunk:
                    break
                sent += len(chunk)
                yield chunk
        finally:
            # sync close, this may run inside a cancelled scope
            result.close()
