from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from .registry.registry_client import NetworksRegistryClient
from .settings import Settings

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .registry.registry_models import NetworksRegistry


def make_registry_cli(settings: Settings, **kwargs: Any) -> NetworksRegistryClient:
    opts = settings.opts
    return NetworksRegistryClient(
        library_version=opts.library_version,
        base_url=opts.registry_base_url,
        fallback_base_url=opts.registry_fallback_base_url,
        max_resp_log_size=opts.max_resp_log_size,
        **kwargs,
    )


def _run_with_cli(
    func: Callable[[NetworksRegistryClient], Awaitable[NetworksRegistry]],
    settings: Settings | None,
    **kwargs: Any,
) -> NetworksRegistry:
    registry_cli = make_registry_cli(settings or Settings(), **kwargs)

    async def run() -> NetworksRegistry:
        async with registry_cli.manage_ctx():
            return await func(registry_cli)

    return asyncio.run(run())


def fetch_latest_version(settings: Settings | None = None, **kwargs: Any) -> NetworksRegistry:
    """Blocking version of `NetworksRegistryClient.load_from_latest_version`"""
    return _run_with_cli(lambda cli: cli.load_from_latest_version(), settings, **kwargs)


def fetch_exact_version(version: str, settings: Settings | None = None, **kwargs: Any) -> NetworksRegistry:
    """Blocking version of `NetworksRegistryClient.load_from_exact_version`"""
    return _run_with_cli(lambda cli: cli.load_from_exact_version(version), settings, **kwargs)


def fetch_url(url: str, settings: Settings | None = None, **kwargs: Any) -> NetworksRegistry:
    return _run_with_cli(lambda cli: cli.load_from_url(url), settings, **kwargs)
