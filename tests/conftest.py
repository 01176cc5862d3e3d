from __future__ import annotations

import io
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest
from botocore.response import StreamingBody
from s3_domain_proxy import Backend, BackendConfig, BackendRegistry, ProxyConfig

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

    from pytest_databases._service import DockerService

OBJECTS = {
    "site/index.html": b"<html>hello from s3-domain-proxy</html>\n",
    "site/assets/app.js": b"console.log('hi');\n" * 64,
}
LAST_MODIFIED = datetime(2024, 5, 17, 8, 30, tzinfo=UTC)


def streaming_body(data: bytes) -> StreamingBody:
    return StreamingBody(io.BytesIO(data), len(data))


def get_object_response(data: bytes, **extra: Any) -> dict[str, Any]:
    response: dict[str, Any] = {
        "Body": streaming_body(data),
        "ContentType": "text/html",
        "ContentLength": len(data),
        "ETag": '"0123456789abcdef"',
        "LastModified": LAST_MODIFIED,
        "CacheControl": "max-age=60",
    }
    response.update(extra)
    return response


@pytest.fixture
def backend_config() -> BackendConfig:
    return BackendConfig(
        bucket="static-site",
        region="us-east-1",
        access_key="test-access",
        secret_key="test-secret",
        path_prefix="site/",
    )


@pytest.fixture
def proxy_config(backend_config: BackendConfig) -> ProxyConfig:
    return ProxyConfig(
        port="8080",
        domains={
            "www.example.com": backend_config,
            "cdn.example.org": BackendConfig(
                bucket="cdn-assets",
                region="eu-central-1",
                endpoint="http://127.0.0.1:9000",
                access_key="minio",
                secret_key="minio123",
                use_path_style=True,
            ),
        },
    )


@pytest.fixture
def objects() -> dict[str, bytes]:
    return dict(OBJECTS)


@pytest.fixture
def s3_client(objects: dict[str, bytes]) -> MagicMock:
    """A client whose ``get_object`` serves ``objects`` with fresh bodies."""
    from botocore.exceptions import ClientError

    def get_object(**kwargs: Any) -> dict[str, Any]:
        key = kwargs["Key"]
        if key not in objects:
            raise ClientError(
                {
                    "Error": {"Code": "NoSuchKey", "Message": "Not Found"},
                    "ResponseMetadata": {"HTTPStatusCode": 404},
                },
                "GetObject",
            )
        return get_object_response(objects[key])

    client = MagicMock()
    client.get_object.side_effect = get_object
    return client


@pytest.fixture
def make_registry() -> Callable[..., BackendRegistry]:
    def factory(clients: dict[str, tuple[BackendConfig, Any]]) -> BackendRegistry:
        return BackendRegistry(
            {
                domain: Backend(domain=domain, config=config, client=client)
                for domain, (config, client) in clients.items()
            }
        )

    return factory


@pytest.fixture
def registry(
    make_registry: Callable[..., BackendRegistry],
    backend_config: BackendConfig,
    s3_client: MagicMock,
) -> BackendRegistry:
    return make_registry({"www.example.com": (backend_config, s3_client)})


# MinIO integration fixtures, only used when S3_DOMAIN_PROXY_INTEGRATION is set.


@dataclass
class MinioService:
    endpoint: str
    access_key: str
    secret_key: str
    secure: bool


@pytest.fixture(scope="session")
def minio_access_key() -> str:
    return os.getenv("MINIO_ACCESS_KEY", "minio")


@pytest.fixture(scope="session")
def minio_secret_key() -> str:
    return os.getenv("MINIO_SECRET_KEY", "minio123")


@pytest.fixture(scope="session")
def minio_service(
    docker_service: DockerService,
    minio_access_key: str,
    minio_secret_key: str,
) -> Generator[MinioService]:
    from urllib.error import URLError
    from urllib.request import Request, urlopen

    from pytest_databases.types import ServiceContainer

    def check(_service: ServiceContainer) -> bool:
        url = f"http://{_service.host}:{_service.port}/minio/health/ready"
        try:
            with urlopen(url=Request(url, method="GET"), timeout=10) as response:
                return response.status == 200
        except (URLError, ConnectionError):
            return False

    with docker_service.run(
        image="quay.io/minio/minio",
        name="minio-s3-domain-proxy",
        command="server /data",
        container_port=9000,
        timeout=20,
        pause=0.5,
        env={
            "MINIO_ROOT_USER": minio_access_key,
            "MINIO_ROOT_PASSWORD": minio_secret_key,
        },
        check=check,
    ) as service:
        yield MinioService(
            endpoint=f"{service.host}:{service.port}",
            access_key=minio_access_key,
            secret_key=minio_secret_key,
            secure=False,
        )


@pytest.fixture
def minio_s3_client(minio_service: MinioService):
    import boto3
    from botocore.config import Config

    return boto3.client(
        "s3",
        endpoint_url=f"http://{minio_service.endpoint}",
        aws_access_key_id=minio_service.access_key,
        aws_secret_access_key=minio_service.secret_key,
        region_name="us-east-1",
        config=Config(s3={"addressing_style": "path"}),
    )
