from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

import uvicorn

from .app import create_app
from .config import ServerSettings, load_config, write_sample_config
from .errors import BackendInitError, ConfigError
from .proxy import S3DomainProxy

if TYPE_CHECKING:
    from collections.abc import Sequence

LOG = logging.getLogger("s3_domain_proxy.cli")


def build_parser(settings: ServerSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3-domain-proxy",
        description="Read-only reverse proxy serving S3 objects by Host header",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", type=str, default=settings.config, help="Path to configuration file")
    parser.add_argument(
        "--mode",
        type=str,
        default="run",
        choices=["init", "run"],
        help="Execution mode: 'init' to generate config, 'run' to start server",
    )
    parser.add_argument("--host", type=str, default=settings.host, help="Interface to bind")
    parser.add_argument("--log-level", type=str, default=settings.log_level, help="Logging level")
    return parser


def init(config_path: str) -> int:
    try:
        path = write_sample_config(config_path)
    except ConfigError as exc:
        LOG.error("Failed to generate sample config: %s", exc)
        return 1
    print(f"Sample configuration file generated: {path}")
    return 0


def run(config_path: str, host: str, settings: ServerSettings) -> int:
    try:
        config = load_config(config_path)
        proxy = S3DomainProxy.from_config(config, fetch_timeout=settings.write_timeout)
    except (ConfigError, BackendInitError) as exc:
        LOG.error("Failed to initialize S3 proxy: %s", exc)
        return 1

    LOG.info("S3 proxy server starting on port: %s", config.port)
    for domain in proxy.registry:
        LOG.info("Configured domain: %s", domain)

    app = create_app(config, proxy=proxy, settings=settings)
    uvicorn.run(
        app,
        host=host,
        port=int(config.port),
        timeout_keep_alive=int(settings.read_timeout),
        log_level=settings.log_level.lower(),
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    settings = ServerSettings()
    args = build_parser(settings).parse_args(argv)
    settings = settings.model_copy(update={"log_level": args.log_level})

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.mode == "init":
        return init(args.config)
    return run(args.config, args.host, settings)


if __name__ == "__main__":
    sys.exit(main())
