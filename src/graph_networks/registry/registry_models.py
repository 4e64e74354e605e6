from __future__ import annotations

import dataclasses
import datetime
import enum
import logging
import warnings
from typing import Annotated, Any, Self

import orjson
import pydantic
from pydantic.alias_generators import to_camel

from .utils import apply_env_vars

LOGGER = logging.getLogger(__name__)


class NetworkType(enum.StrEnum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    DEVNET = "devnet"


class RelationKind(enum.StrEnum):
    BEACON_OF = "beaconOf"
    EVM_OF = "evmOf"
    FORKED_FROM = "forkedFrom"
    L2_OF = "l2Of"
    SHARD_OF = "shardOf"
    TESTNET_OF = "testnetOf"
    OTHER = "other"


class APIURLKind(enum.StrEnum):
    BLOCKSCOUT = "blockscout"
    ETHERSCAN = "etherscan"
    ETHPLORER = "ethplorer"
    SUBSCAN = "subscan"
    OTHER = "other"


class BytesEncoding(enum.StrEnum):
    BASE58 = "base58"
    BASE64 = "base64"
    HEX = "hex"
    HEX_0X = "0xhex"
    OTHER = "other"


class Protocol(enum.StrEnum):
    ARWEAVE = "arweave"
    COSMOS = "cosmos"
    ETHEREUM = "ethereum"
    NEAR = "near"
    STARKNET = "starknet"
    OTHER = "other"


# The registry is published independently of this library,
# so unknown values are kept as plain strings instead of failing the decode.
TNetworkType = Annotated[NetworkType | str, pydantic.Field(union_mode="left_to_right")]
TRelationKind = Annotated[RelationKind | str, pydantic.Field(union_mode="left_to_right")]
TAPIURLKind = Annotated[APIURLKind | str, pydantic.Field(union_mode="left_to_right")]
TBytesEncoding = Annotated[BytesEncoding | str, pydantic.Field(union_mode="left_to_right")]
TProtocol = Annotated[Protocol | str, pydantic.Field(union_mode="left_to_right")]


class RegistryModel(pydantic.BaseModel):
    """Base for all the registry document shapes: camelCase on the wire, immutable, keeps unknown keys"""

    model_config = pydantic.ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    def dump_for_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def replace(self, **kwargs: Any) -> Self:
        return self.model_copy(update=kwargs)


class Genesis(RegistryModel):
    # 0x-prefixed hex or base58
    hash: str
    # Genesis or the first available block
    height: int


class Firehose(RegistryModel):
    block_type: str  # e.g. `sf.ethereum.type.v2.Block`
    buf_url: str
    bytes_encoding: TBytesEncoding
    evm_extended_model: bool | None = None


class GraphNode(RegistryModel):
    protocol: TProtocol | None = None


class Web3Icons(RegistryModel):
    name: str
    # None means all variants are available.
    variants: tuple[str, ...] | None = None


class Icon(RegistryModel):
    web3_icons: Web3Icons | None = None


class APIURL(RegistryModel):
    kind: TAPIURLKind
    url: str


class IndexerDocsURL(RegistryModel):
    url: str
    description: str | None = None


class Relation(RegistryModel):
    """Typed edge to another network; the target ID is not checked against the registry"""

    kind: TRelationKind
    network: str


class Services(RegistryModel):
    firehose: tuple[str, ...] | None = None
    substreams: tuple[str, ...] | None = None
    subgraphs: tuple[str, ...] | None = None
    # Substreams-powered subgraphs
    sps: tuple[str, ...] | None = None


class Network(RegistryModel):
    id: str
    aliases: tuple[str, ...] | None = None
    caip2_id: str
    full_name: str
    short_name: str
    second_name: str | None = None
    network_type: TNetworkType
    issuance_rewards: bool

    genesis: Genesis | None = None
    firehose: Firehose | None = None
    graph_node: GraphNode | None = None
    icon: Icon | None = None
    relations: tuple[Relation, ...] | None = None

    # RPC and API URLs might contain `{CUSTOM_API_KEY}`-like placeholders.
    api_urls: tuple[APIURL, ...] | None = None
    rpc_urls: tuple[str, ...] | None = None
    explorer_urls: tuple[str, ...] | None = None
    indexer_docs_urls: tuple[IndexerDocsURL, ...] | None = None
    docs_url: str | None = None
    native_token: str | None = None

    services: Services

    def get_rpc_urls(self, env: dict[str, str] | None = None) -> list[str]:
        """RPC URLs with the placeholders filled from `env` (default: `os.environ`), unresolvable ones skipped"""
        resolved = (apply_env_vars(url, env=env) for url in self.rpc_urls or ())
        return [url for url in resolved if url]

    def get_api_urls(self, env: dict[str, str] | None = None) -> list[APIURL]:
        resolved = (api_url.replace(url=apply_env_vars(api_url.url, env=env)) for api_url in self.api_urls or ())
        return [api_url for api_url in resolved if api_url.url]


class NetworksRegistry(RegistryModel):
    schema_ref: str = pydantic.Field(alias="$schema")
    title: str
    description: str
    updated_at: datetime.datetime
    version: str
    networks: tuple[Network, ...]

    def to_json(self, *, indent: bool = False) -> bytes:
        return orjson.dumps(self.dump_for_json(), option=orjson.OPT_INDENT_2 if indent else None)

    def _find_network(self, key: str, *, by_id: bool = True, by_alias: bool = True) -> Network | None:
        # No index: the registry is small, and the document order defines the precedence.
        for network in self.networks:
            if by_id and network.id == key:
                return network
            if by_alias and key in (network.aliases or ()):
                return network
        return None

    def get_network_by_graph_id(self, graph_id: str) -> Network | None:
        """
        Find a network by its ID or one of its aliases.

        Each network is checked by ID first, then by aliases; the first network
        (in the document order) that matches is returned.
        """
        return self._find_network(graph_id)

    def get_network_by_id(self, network_id: str) -> Network | None:
        warnings.warn(
            "`get_network_by_id` is deprecated, use `get_network_by_graph_id`", DeprecationWarning, stacklevel=2
        )
        return self._find_network(network_id, by_alias=False)

    def get_network_by_alias(self, alias: str) -> Network | None:
        warnings.warn(
            "`get_network_by_alias` is deprecated, use `get_network_by_graph_id`", DeprecationWarning, stacklevel=2
        )
        return self.get_network_by_graph_id(alias)

    def get_network_by_caip2_id(self, chain_id: str) -> Network | None:
        """
        Find a network by its CAIP-2 chain ID, e.g. `eip155:1`.

        The match is exact and case-sensitive. A value without the `:` separator
        gets a warning logged and a `None` result.
        """
        if ":" not in chain_id:
            LOGGER.warning(
                "CAIP-2 chain ID should be in the format '[namespace]:[reference]', e.g. 'eip155:1'",
                extra={"x_chain_id": chain_id},
            )
            return None

        for network in self.networks:
            if network.caip2_id == chain_id:
                return network
        return None


class InvalidVersionFormat(ValueError):
    """Raised when a version string lacks the numeric `major.minor` part; a misconfiguration, not a data error"""


@dataclasses.dataclass(kw_only=True)
class RegistryLoadError(Exception):
    # URL or file path of the attempted load.
    source: str
    exc: Exception | None = None
    message: str = "Registry load error"

    def __str__(self) -> str:
        result = f"{self.message}: {self.source}"
        if self.exc is not None:
            result = f"{result}: {self.exc!r}"
        return result


@dataclasses.dataclass(kw_only=True)
class RegistryNetworkError(RegistryLoadError):
    message: str = "Registry request failed"


@dataclasses.dataclass(kw_only=True)
class RegistryStatusError(RegistryLoadError):
    status: int
    message: str = "Registry response error status"

    def __str__(self) -> str:
        return f"{self.message}: HTTP {self.status}: {self.source}"


@dataclasses.dataclass(kw_only=True)
class RegistryDecodeError(RegistryLoadError):
    message: str = "Registry document failed to parse"


@dataclasses.dataclass(kw_only=True)
class RegistryFileError(RegistryLoadError):
    message: str = "Registry file failed to read"
