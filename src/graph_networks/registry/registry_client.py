from __future__ import annotations

import contextlib
import dataclasses
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

import orjson
import pydantic
from hyapp.https import HTTPClient

from ..version import LIBRARY_VERSION
from .registry_models import (
    NetworksRegistry,
    RegistryDecodeError,
    RegistryFileError,
    RegistryLoadError,
    RegistryNetworkError,
    RegistryStatusError,
)
from .registry_urls import (
    FALLBACK_BASE_URL,
    REGISTRY_BASE_URL,
    get_exact_version_fallback_url,
    get_exact_version_url,
    get_latest_version_fallback_url,
    get_latest_version_url,
)
from .utils import dumpcut

if TYPE_CHECKING:
    import os
    from collections.abc import AsyncGenerator


LOGGER = logging.getLogger(__name__)


def _make_http_cli() -> HTTPClient:
    # The only retry is the primary -> fallback host switch, done on this side.
    logger = LOGGER.getChild("http")
    logger.setLevel("INFO")
    return HTTPClient(retry_attempts=1, max_resp_log_len=2048, logger=logger)


def parse_registry(data: bytes | str, *, source: str = "<data>") -> NetworksRegistry:
    """
    Decode a registry document.

    Only the structure is checked: unknown keys are kept and unknown
    enumeration values pass through as plain strings.
    """
    try:
        raw = orjson.loads(data)
        return NetworksRegistry.model_validate(raw)
    except (orjson.JSONDecodeError, pydantic.ValidationError) as exc:
        raise RegistryDecodeError(source=source, exc=exc) from exc


def load_from_file(path: str | os.PathLike[str]) -> NetworksRegistry:
    source = str(path)
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise RegistryFileError(source=source, exc=exc) from exc
    return parse_registry(data, source=source)


@dataclasses.dataclass()
class NetworksRegistryClient:
    http_cli: HTTPClient = dataclasses.field(default_factory=_make_http_cli)

    # Explicit configuration instead of module-level state, for the URL construction.
    library_version: str = LIBRARY_VERSION
    base_url: str = REGISTRY_BASE_URL
    fallback_base_url: str = FALLBACK_BASE_URL

    max_resp_log_size: int = 2_000

    logger: logging.Logger = LOGGER

    @contextlib.asynccontextmanager
    async def manage_ctx(self) -> AsyncGenerator[Self, None]:
        async with self.http_cli:
            yield self

    def _make_resp_log_context(self, content: bytes) -> dict[str, Any]:
        data = content.decode("utf-8", errors="replace")
        return dumpcut(data=data, max_length=self.max_resp_log_size, full_key="x_response", cut_key="x_response_cut")

    def get_latest_version_url(self) -> str:
        return get_latest_version_url(self.library_version, base_url=self.base_url)

    def get_latest_version_fallback_url(self) -> str:
        return get_latest_version_fallback_url(self.library_version, base_url=self.fallback_base_url)

    def get_exact_version_url(self, version: str) -> str:
        return get_exact_version_url(version, base_url=self.base_url)

    def get_exact_version_fallback_url(self, version: str) -> str:
        return get_exact_version_fallback_url(version, base_url=self.fallback_base_url)

    async def load_from_url(self, url: str) -> NetworksRegistry:
        """Single GET request, no retries"""
        start_time = time.monotonic()
        try:
            http_resp = await self.http_cli.req(url=url, method="get", require_ok=False)
        except Exception as exc:
            raise RegistryNetworkError(source=url, exc=exc) from exc

        if http_resp.status != 200:
            self.logger.debug(
                "Registry error response",
                extra={
                    "x_url": url,
                    "x_resp_status": http_resp.status,
                    **self._make_resp_log_context(http_resp.content),
                },
            )
            raise RegistryStatusError(source=url, status=http_resp.status)

        registry = parse_registry(http_resp.content, source=url)
        self.logger.info(
            "Registry loaded",
            extra={
                "x_url": url,
                "x_version": registry.version,
                "x_networks": len(registry.networks),
                "x_time_taken": round(time.monotonic() - start_time, 3),
            },
        )
        return registry

    async def load_with_fallback(self, url: str, fallback_url: str) -> NetworksRegistry:
        """
        Try the primary URL, then the fallback URL once.

        If both fail, the primary error is raised; the fallback error only gets logged.
        """
        try:
            return await self.load_from_url(url)
        except RegistryLoadError as exc:
            primary_exc = exc

        self.logger.warning(
            "Registry primary load failed, trying fallback",
            extra={"x_url": url, "x_fallback_url": fallback_url, "x_error": str(primary_exc)},
        )
        try:
            return await self.load_from_url(fallback_url)
        except RegistryLoadError as fallback_exc:
            self.logger.error(
                "Registry fallback load failed",
                extra={"x_url": fallback_url, "x_error": str(fallback_exc)},
            )
        # Raised outside the handlers to keep the fallback error out of `__context__`.
        raise primary_exc

    async def load_from_latest_version(self) -> NetworksRegistry:
        # URL construction errors are configuration errors and are not retried.
        url = self.get_latest_version_url()
        fallback_url = self.get_latest_version_fallback_url()
        return await self.load_with_fallback(url, fallback_url)

    async def load_from_exact_version(self, version: str) -> NetworksRegistry:
        url = self.get_exact_version_url(version)
        fallback_url = self.get_exact_version_fallback_url(version)
        return await self.load_with_fallback(url, fallback_url)

    def load_from_file(self, path: str | os.PathLike[str]) -> NetworksRegistry:
        registry = load_from_file(path)
        self.logger.info(
            "Registry loaded",
            extra={"x_path": str(path), "x_version": registry.version, "x_networks": len(registry.networks)},
        )
        return registry
