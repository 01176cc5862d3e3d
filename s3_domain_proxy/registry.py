from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from boto3.session import Session
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError

from .errors import BackendInitError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from .config import BackendConfig, ProxyConfig

LOG = logging.getLogger("s3_domain_proxy.registry")


@dataclass(frozen=True)
class Backend:
    """A configured domain together with its long-lived S3 client."""

    domain: str
    config: BackendConfig
    client: Any


def build_s3_client(config: BackendConfig):
    session = Session(
        aws_access_key_id=config.access_key or None,
        aws_secret_access_key=config.secret_key or None,
        region_name=config.region,
    )
    return session.client(
        "s3",
        endpoint_url=config.endpoint,
        config=BotoConfig(
            signature_version="s3v4",
            s3={"addressing_style": "path" if config.use_path_style else "auto"},
        ),
    )


class BackendRegistry:
    """Read-only mapping of domain to :class:`Backend`, fixed at startup."""

    def __init__(self, backends: Mapping[str, Backend]):
        self._backends: Mapping[str, Backend] = MappingProxyType(dict(backends))

    @classmethod
    def from_config(
        cls,
        config: ProxyConfig,
        client_factory: Callable[[BackendConfig], Any] = build_s3_client,
    ) -> BackendRegistry:
        """Build one client per configured domain.

        Any failure aborts the whole registry; the proxy never starts with a
        partial domain set.

        Raises:
            BackendInitError: naming the first domain whose client failed.
        """
        backends: dict[str, Backend] = {}
        for domain, backend_config in config.domains.items():
            try:
                client = client_factory(backend_config)
            except (BotoCoreError, ValueError) as exc:
                raise BackendInitError(domain, exc) from exc
            backends[domain] = Backend(domain=domain, config=backend_config, client=client)
            LOG.debug(
                "created S3 client for %s (bucket=%s, region=%s, endpoint=%s)",
                domain,
                backend_config.bucket,
                backend_config.region,
                backend_config.endpoint or "aws",
            )
        return cls(backends)

    @property
    def backends(self) -> Mapping[str, Backend]:
        return self._backends

    def get(self, domain: str) -> Backend | None:
        return self._backends.get(domain)

    def __contains__(self, domain: object) -> bool:
        return domain in self._backends

    def __iter__(self) -> Iterator[str]:
        return iter(self._backends)

    def __len__(self) -> int:
        return len(self._backends)
