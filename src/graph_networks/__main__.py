from pathlib import Path

import typer
import yaml

from .common import fetch_exact_version, fetch_latest_version, make_registry_cli
from .registry.registry_client import load_from_file
from .registry.registry_models import NetworksRegistry
from .runlib import init_all
from .settings import Settings


def _load_registry(settings: Settings, *, path: Path | None = None, version: str | None = None) -> NetworksRegistry:
    if path is not None:
        return load_from_file(path)
    if version:
        return fetch_exact_version(version, settings=settings)
    if settings.opts.registry_path:
        return load_from_file(settings.opts.registry_path)
    return fetch_latest_version(settings=settings)


def _echo_summary(registry: NetworksRegistry) -> None:
    typer.echo(f"Registry {registry.version} (updated at {registry.updated_at.isoformat()})")
    typer.echo(f"Successfully loaded {len(registry.networks)} networks")


def urls_cli(version: str | None = None) -> None:
    """Show the primary and fallback registry URLs"""
    settings = Settings()
    registry_cli = make_registry_cli(settings)
    if version:
        typer.echo(registry_cli.get_exact_version_url(version))
        typer.echo(registry_cli.get_exact_version_fallback_url(version))
    else:
        typer.echo(registry_cli.get_latest_version_url())
        typer.echo(registry_cli.get_latest_version_fallback_url())


def fetch_cli(version: str | None = None) -> None:
    """
    Fetch the registry: the exact version if specified,
    the latest compatible one otherwise.
    """
    settings = Settings()
    init_all(settings)
    if version:
        registry = fetch_exact_version(version, settings=settings)
    else:
        registry = fetch_latest_version(settings=settings)
    _echo_summary(registry)


def local_cli(path: Path) -> None:
    """Load the registry from a local JSON file"""
    settings = Settings()
    init_all(settings)
    _echo_summary(load_from_file(path))


def network_cli(key: str, path: Path | None = None, version: str | None = None) -> None:
    """
    Show a network by its ID, alias or CAIP-2 chain ID (e.g. `mainnet`, `eth`, `eip155:1`).
    """
    settings = Settings()
    init_all(settings)
    registry = _load_registry(settings, path=path, version=version)
    network = registry.get_network_by_caip2_id(key) if ":" in key else registry.get_network_by_graph_id(key)
    if network is None:
        typer.echo(f"Network not found: {key!r}", err=True)
        raise typer.Exit(code=1)
    typer.echo(yaml.safe_dump(network.dump_for_json(), sort_keys=False, allow_unicode=True), nl=False)


CLI_APP = typer.Typer()
CLI_APP.command("urls")(urls_cli)
CLI_APP.command("fetch")(fetch_cli)
CLI_APP.command("local")(local_cli)
CLI_APP.command("network")(network_cli)


def main() -> None:
    CLI_APP()


if __name__ == "__main__":
    main()
