import dataclasses
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, NamedTuple, cast

import aiohttp
import pytest
from hyapp.https import HTTPClient

from graph_networks.common import fetch_exact_version, fetch_latest_version, fetch_url, make_registry_cli
from graph_networks.registry.registry_client import NetworksRegistryClient, load_from_file
from graph_networks.registry.registry_models import (
    InvalidVersionFormat,
    NetworksRegistry,
    RegistryDecodeError,
    RegistryFileError,
    RegistryLoadError,
    RegistryNetworkError,
    RegistryStatusError,
)
from graph_networks.settings import Settings, SettingsOptsBase

PRIMARY_BASE_URL = "https://primary.example.com"
FALLBACK_BASE_URL = "https://fallback.example.com"


class MockHTTPResponse(NamedTuple):
    status: int
    content: bytes


@dataclasses.dataclass
class MockHTTPClient:
    handler: Callable[..., MockHTTPResponse]
    requests: list[dict[str, Any]] = dataclasses.field(default_factory=list)
    entered: int = 0

    async def __aenter__(self) -> "MockHTTPClient":
        self.entered += 1
        return self

    async def __aexit__(self, *args: Any) -> None:
        return None

    async def req(self, **kwargs: Any) -> MockHTTPResponse:
        self.requests.append(kwargs)
        return self.handler(**kwargs)

    @property
    def req_urls(self) -> list[str]:
        return [req["url"] for req in self.requests]

    def clear(self) -> None:
        self.requests = []


@pytest.fixture
def sample_settings() -> Settings:
    return Settings(
        opts=SettingsOptsBase(
            env="tests",
            library_version="0.7.3",
            registry_base_url=PRIMARY_BASE_URL,
            registry_fallback_base_url=FALLBACK_BASE_URL,
        ),
    )


@pytest.fixture
def http_mock(sample_registry_bytes: bytes) -> MockHTTPClient:
    def handler(**_: Any) -> MockHTTPResponse:
        return MockHTTPResponse(status=200, content=sample_registry_bytes)

    return MockHTTPClient(handler=handler)


@pytest.fixture
def registry_cli(sample_settings: Settings, http_mock: MockHTTPClient) -> NetworksRegistryClient:
    return make_registry_cli(sample_settings, http_cli=cast("HTTPClient", http_mock))


def _handler_primary_err(sample_registry_bytes: bytes) -> Callable[..., MockHTTPResponse]:
    def handler(url: str, **_: Any) -> MockHTTPResponse:
        if url.startswith(PRIMARY_BASE_URL):
            raise aiohttp.ClientError("primary is down")
        return MockHTTPResponse(status=200, content=sample_registry_bytes)

    return handler


def _handler_primary_err_fallback_404(url: str, **_: Any) -> MockHTTPResponse:
    if url.startswith(PRIMARY_BASE_URL):
        raise aiohttp.ClientError("primary is down")
    return MockHTTPResponse(status=404, content=b"Not Found")


def _handler_primary_503_fallback_err(url: str, **_: Any) -> MockHTTPResponse:
    if url.startswith(PRIMARY_BASE_URL):
        return MockHTTPResponse(status=503, content=b"Service Unavailable")
    raise aiohttp.ClientError("fallback is down")


def _handler_garbage(**_: Any) -> MockHTTPResponse:
    return MockHTTPResponse(status=200, content=b"<html>definitely not json</html>")


def test_registry_cli_settings(registry_cli: NetworksRegistryClient) -> None:
    assert registry_cli.library_version == "0.7.3"
    assert registry_cli.get_latest_version_url() == f"{PRIMARY_BASE_URL}/TheGraphNetworksRegistry_v0_7_x.json"
    assert registry_cli.get_latest_version_fallback_url() == f"{FALLBACK_BASE_URL}/TheGraphNetworksRegistry_v0_7_x.json"
    assert registry_cli.get_exact_version_url("0.5.0") == f"{PRIMARY_BASE_URL}/TheGraphNetworksRegistry_v0_5_0.json"
    assert (
        registry_cli.get_exact_version_fallback_url("0.5.0")
        == f"{FALLBACK_BASE_URL}/TheGraphNetworksRegistry_v0_5_0.json"
    )


async def test_load_from_url(registry_cli: NetworksRegistryClient, http_mock: MockHTTPClient) -> None:
    url = f"{PRIMARY_BASE_URL}/custom.json"
    registry = await registry_cli.load_from_url(url)
    assert isinstance(registry, NetworksRegistry)
    assert registry.version == "0.7.3"
    assert http_mock.req_urls == [url]
    assert http_mock.requests[0]["method"] == "get"


async def test_load_from_url_errors(registry_cli: NetworksRegistryClient, http_mock: MockHTTPClient) -> None:
    url = f"{PRIMARY_BASE_URL}/custom.json"

    http_mock.handler = _handler_primary_err_fallback_404
    with pytest.raises(RegistryNetworkError) as net_exc:
        await registry_cli.load_from_url(url)
    assert net_exc.value.source == url
    assert isinstance(net_exc.value.exc, aiohttp.ClientError)
    assert "primary is down" in str(net_exc.value)

    with pytest.raises(RegistryStatusError) as status_exc:
        await registry_cli.load_from_url(f"{FALLBACK_BASE_URL}/custom.json")
    assert status_exc.value.status == 404
    assert "HTTP 404" in str(status_exc.value)

    http_mock.handler = _handler_garbage
    with pytest.raises(RegistryDecodeError) as decode_exc:
        await registry_cli.load_from_url(url)
    assert decode_exc.value.source == url

    # No retries on this level.
    assert len(http_mock.requests) == 3


async def test_load_non_200_success_status(registry_cli: NetworksRegistryClient, http_mock: MockHTTPClient) -> None:
    def handler(**_: Any) -> MockHTTPResponse:
        return MockHTTPResponse(status=204, content=b"")

    http_mock.handler = handler
    with pytest.raises(RegistryStatusError) as exc:
        await registry_cli.load_from_url(f"{PRIMARY_BASE_URL}/custom.json")
    assert exc.value.status == 204


async def test_load_latest_version(registry_cli: NetworksRegistryClient, http_mock: MockHTTPClient) -> None:
    registry = await registry_cli.load_from_latest_version()
    assert registry.version == "0.7.3"
    assert http_mock.req_urls == [f"{PRIMARY_BASE_URL}/TheGraphNetworksRegistry_v0_7_x.json"]


async def test_load_latest_version_fallback(
    registry_cli: NetworksRegistryClient, http_mock: MockHTTPClient, sample_registry_bytes: bytes
) -> None:
    http_mock.handler = _handler_primary_err(sample_registry_bytes)
    registry = await registry_cli.load_from_latest_version()
    assert registry.version == "0.7.3"
    assert http_mock.req_urls == [
        f"{PRIMARY_BASE_URL}/TheGraphNetworksRegistry_v0_7_x.json",
        f"{FALLBACK_BASE_URL}/TheGraphNetworksRegistry_v0_7_x.json",
    ]


async def test_load_fallback_after_decode_error(
    registry_cli: NetworksRegistryClient, http_mock: MockHTTPClient, sample_registry_bytes: bytes
) -> None:
    def handler(url: str, **_: Any) -> MockHTTPResponse:
        if url.startswith(PRIMARY_BASE_URL):
            return _handler_garbage()
        return MockHTTPResponse(status=200, content=sample_registry_bytes)

    http_mock.handler = handler
    registry = await registry_cli.load_from_exact_version("0.7.3")
    assert len(registry.networks) == 5
    assert http_mock.req_urls == [
        f"{PRIMARY_BASE_URL}/TheGraphNetworksRegistry_v0_7_3.json",
        f"{FALLBACK_BASE_URL}/TheGraphNetworksRegistry_v0_7_3.json",
    ]


async def test_load_fallback_reports_primary_error(
    registry_cli: NetworksRegistryClient, http_mock: MockHTTPClient, caplog: pytest.LogCaptureFixture
) -> None:
    http_mock.handler = _handler_primary_err_fallback_404
    with pytest.raises(RegistryNetworkError) as exc:
        await registry_cli.load_from_latest_version()
    assert exc.value.source == f"{PRIMARY_BASE_URL}/TheGraphNetworksRegistry_v0_7_x.json"
    assert "primary is down" in str(exc.value)
    assert isinstance(exc.value.__cause__, aiohttp.ClientError)
    assert len(http_mock.requests) == 2

    http_mock.clear()
    http_mock.handler = _handler_primary_503_fallback_err
    with caplog.at_level(logging.WARNING):
        with pytest.raises(RegistryStatusError) as status_exc:
            await registry_cli.load_from_exact_version("0.6.0")
    assert status_exc.value.status == 503
    assert status_exc.value.source == f"{PRIMARY_BASE_URL}/TheGraphNetworksRegistry_v0_6_0.json"
    assert len(http_mock.requests) == 2
    # The fallback error is only logged.
    assert status_exc.value.__context__ is None
    assert status_exc.value.__cause__ is None
    assert any("fallback is down" in getattr(record, "x_error", "") for record in caplog.records)


async def test_load_latest_version_invalid_config(http_mock: MockHTTPClient) -> None:
    settings = Settings(opts=SettingsOptsBase(env="tests", library_version="latest"))
    registry_cli = make_registry_cli(settings, http_cli=cast("HTTPClient", http_mock))
    with pytest.raises(InvalidVersionFormat):
        await registry_cli.load_from_latest_version()
    assert not http_mock.requests


def test_load_from_file(
    registry_cli: NetworksRegistryClient, sample_registry_path: Path, sample_registry: NetworksRegistry
) -> None:
    assert load_from_file(sample_registry_path) == sample_registry
    assert load_from_file(str(sample_registry_path)) == sample_registry
    assert registry_cli.load_from_file(sample_registry_path) == sample_registry


def test_load_from_file_errors(tmp_path: Path) -> None:
    missing_path = tmp_path / "missing.json"
    with pytest.raises(RegistryFileError) as exc:
        load_from_file(missing_path)
    assert exc.value.source == str(missing_path)
    assert isinstance(exc.value.exc, FileNotFoundError)

    broken_path = tmp_path / "broken.json"
    broken_path.write_text('{"version": "0.7.0", "networks": ')
    with pytest.raises(RegistryDecodeError) as decode_exc:
        load_from_file(broken_path)
    assert decode_exc.value.source == str(broken_path)
    assert isinstance(decode_exc.value, RegistryLoadError)


def test_blocking_wrappers(
    sample_settings: Settings, http_mock: MockHTTPClient, sample_registry_bytes: bytes
) -> None:
    http_cli = cast("HTTPClient", http_mock)

    registry = fetch_latest_version(sample_settings, http_cli=http_cli)
    assert registry.version == "0.7.3"

    registry = fetch_exact_version("0.7.3", sample_settings, http_cli=http_cli)
    assert registry.version == "0.7.3"

    registry = fetch_url(f"{PRIMARY_BASE_URL}/custom.json", sample_settings, http_cli=http_cli)
    assert registry.version == "0.7.3"

    assert http_mock.req_urls == [
        f"{PRIMARY_BASE_URL}/TheGraphNetworksRegistry_v0_7_x.json",
        f"{PRIMARY_BASE_URL}/TheGraphNetworksRegistry_v0_7_3.json",
        f"{PRIMARY_BASE_URL}/custom.json",
    ]
    assert http_mock.entered == 3

    http_mock.clear()
    http_mock.handler = _handler_primary_err(sample_registry_bytes)
    registry = fetch_latest_version(sample_settings, http_cli=http_cli)
    assert len(registry.networks) == 5
    assert len(http_mock.requests) == 2
