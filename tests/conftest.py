from pathlib import Path

import pytest

from graph_networks.registry.registry_client import parse_registry
from graph_networks.registry.registry_models import NetworksRegistry

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def sample_registry_path() -> Path:
    return DATA_DIR / "sample_registry.json"


@pytest.fixture
def sample_registry_bytes(sample_registry_path: Path) -> bytes:
    return sample_registry_path.read_bytes()


@pytest.fixture
def sample_registry(sample_registry_bytes: bytes) -> NetworksRegistry:
    return parse_registry(sample_registry_bytes)
