"""Read-only S3 reverse proxy that routes requests by Host header."""

from .app import create_app
from .config import BackendConfig, ProxyConfig, ServerSettings, load_config
from .proxy import S3DomainProxy
from .registry import Backend, BackendRegistry

__all__ = [
    "Backend",
    "BackendConfig",
    "BackendRegistry",
    "ProxyConfig",
    "S3DomainProxy",
    "ServerSettings",
    "create_app",
    "load_config",
]
