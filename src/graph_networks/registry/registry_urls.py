from ..version import LIBRARY_VERSION
from .registry_models import InvalidVersionFormat

REGISTRY_BASE_URL = "https://networks-registry.thegraph.com"
# Static mirror, used when the primary host is unavailable.
FALLBACK_BASE_URL = "https://raw.githubusercontent.com/graphprotocol/networks-registry/refs/heads/main/public"
REGISTRY_FILENAME_PREFIX = "TheGraphNetworksRegistry_v"


def get_major_minor(version: str) -> tuple[str, str]:
    """
    >>> get_major_minor("0.7.2")
    ('0', '7')
    >>> get_major_minor("1.2")
    ('1', '2')
    """
    parts = version.split(".")
    if len(parts) < 2 or not all(part.isascii() and part.isdigit() for part in parts[:2]):
        raise InvalidVersionFormat(f"Version must include numeric major and minor numbers (x.y.z): {version!r}")
    return parts[0], parts[1]


def _latest_version_url(base_url: str, library_version: str) -> str:
    major, minor = get_major_minor(library_version)
    return f"{base_url}/{REGISTRY_FILENAME_PREFIX}{major}_{minor}_x.json"


def _exact_version_url(base_url: str, version: str) -> str:
    version_path = version.removeprefix("v").replace(".", "_")
    return f"{base_url}/{REGISTRY_FILENAME_PREFIX}{version_path}.json"


def get_latest_version_url(library_version: str = LIBRARY_VERSION, base_url: str = REGISTRY_BASE_URL) -> str:
    """
    URL of the latest registry compatible with the library version:
    library `0.7.x` uses the latest `0.7.y` registry, even if `0.8.z` is published.
    """
    return _latest_version_url(base_url, library_version)


def get_latest_version_fallback_url(
    library_version: str = LIBRARY_VERSION, base_url: str = FALLBACK_BASE_URL
) -> str:
    return _latest_version_url(base_url, library_version)


def get_exact_version_url(version: str, base_url: str = REGISTRY_BASE_URL) -> str:
    """
    >>> get_exact_version_url("0.5.0")
    'https://networks-registry.thegraph.com/TheGraphNetworksRegistry_v0_5_0.json'
    """
    return _exact_version_url(base_url, version)


def get_exact_version_fallback_url(version: str, base_url: str = FALLBACK_BASE_URL) -> str:
    return _exact_version_url(base_url, version)
