"""Pydantic v2 models for the create-amp generator.

Defines the operator's resolved choices (``ProjectConfig``), the static
template catalog entries (``TemplateDescriptor``) and the substitution context
derived from a configuration (``TemplateData``).
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from create_amp.errors import ValidationError
from create_amp.naming import validate_project_name


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ProjectType(str, Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"


class Framework(str, Enum):
    NEXTJS = "nextjs"
    VITE = "vite"


class BackendFramework(str, Enum):
    EXPRESS = "express"
    FASTIFY = "fastify"
    APOLLO_GRAPHQL = "apollo-graphql"
    EXPRESS_GATEWAY = "express-gateway"
    FASTIFY_GATEWAY = "fastify-gateway"
    APOLLO_GRAPHQL_GATEWAY = "apollo-graphql-gateway"


class DataLayer(str, Enum):
    """How the generated app fetches data: binary query protocol or database sync."""
    ARROW_FLIGHT = "arrow-flight"
    AMP_SYNC = "amp-sync"


class ORM(str, Enum):
    ELECTRIC = "electric"
    DRIZZLE = "drizzle"


class Example(str, Enum):
    WALLET = "wallet"
    BLANK = "blank"


class LocalSetup(str, Enum):
    ANVIL = "anvil"
    PUBLIC = "public"
    BOTH = "both"


class Network(str, Enum):
    ARBITRUM = "arbitrum"
    SOLANA = "solana"


class NetworkEnv(str, Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class PackageManager(str, Enum):
    PNPM = "pnpm"
    BUN = "bun"
    YARN = "yarn"
    NPM = "npm"


class TemplateCategory(str, Enum):
    """Groups templates when prompting; has no effect on generation."""
    BUILD_DATASET = "build-your-own-dataset"
    EXISTING_DATASET = "use-existing-dataset"


class TemplateKey(str, Enum):
    BACKEND_BASE = "backend-base"
    BACKEND_EXPRESS = "backend-express"
    BACKEND_FASTIFY = "backend-fastify"
    BACKEND_APOLLO_GRAPHQL = "backend-apollo-graphql"
    BACKEND_EXPRESS_GATEWAY = "backend-express-gateway"
    BACKEND_FASTIFY_GATEWAY = "backend-fastify-gateway"
    BACKEND_APOLLO_GRAPHQL_GATEWAY = "backend-apollo-graphql-gateway"
    NEXTJS = "nextjs"
    VITE_REACT_BASE = "vite-react-base"
    REACT_AMPSYNC_ELECTRICSQL = "react-ampsync-electricsql"
    REACT_ARROWFLIGHT_EFFECT_ATOM = "react-arrowflight-effect-atom"
    DATA_LAYER_AMP_SYNC = "data-layer-amp-sync"
    DATA_LAYER_ARROW_FLIGHT = "data-layer-arrow-flight"
    AMP_CONFIG = "amp-config"
    CONTRACTS = "contracts"
    DOCKER_COMPOSE_AMP_SYNC = "docker-compose-amp-sync"
    DOCKER_COMPOSE_ARROW_FLIGHT = "docker-compose-arrow-flight"
    EXAMPLE_WALLET = "example-wallet"
    EXAMPLE_WALLET_AMP = "example-wallet-amp"
    EXAMPLE_WALLET_CONTRACTS = "example-wallet-contracts"


# ---------------------------------------------------------------------------
# Network lookup
# ---------------------------------------------------------------------------

class NetworkInfo(BaseModel):
    """Display strings for the chain a generated app talks to."""
    model_config = ConfigDict(frozen=True)

    display_name: str
    rpc_url: str
    chain_id: str


LOCAL_NETWORK = NetworkInfo(
    display_name="Anvil (Local)",
    rpc_url="http://localhost:8545",
    chain_id="31337",
)

NETWORKS: dict[tuple[Network, NetworkEnv], NetworkInfo] = {
    (Network.ARBITRUM, NetworkEnv.TESTNET): NetworkInfo(
        display_name="Arbitrum Sepolia",
        rpc_url="https://sepolia-rollup.arbitrum.io/rpc",
        chain_id="421614",
    ),
    (Network.ARBITRUM, NetworkEnv.MAINNET): NetworkInfo(
        display_name="Arbitrum One",
        rpc_url="https://arb1.arbitrum.io/rpc",
        chain_id="42161",
    ),
    (Network.SOLANA, NetworkEnv.TESTNET): NetworkInfo(
        display_name="Solana Devnet",
        rpc_url="https://api.devnet.solana.com",
        chain_id="devnet",
    ),
    (Network.SOLANA, NetworkEnv.MAINNET): NetworkInfo(
        display_name="Solana Mainnet",
        rpc_url="https://api.mainnet-beta.solana.com",
        chain_id="mainnet-beta",
    ),
}


def get_network_info(
    network: Optional[Network], network_env: Optional[NetworkEnv]
) -> NetworkInfo:
    """Return display strings for *network*/*network_env*.

    Falls back to the local Anvil chain when either value is unset.
    """
    if network is None or network_env is None:
        return LOCAL_NETWORK
    return NETWORKS[(network, network_env)]


# ---------------------------------------------------------------------------
# ProjectConfig
# ---------------------------------------------------------------------------

class ProjectConfig(BaseModel):
    """The operator's fully resolved choices for one generation run."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Project name, also the package manifest name")
    path: Path = Field(..., description="Absolute target directory")
    project_type: ProjectType
    framework: Optional[Framework] = None
    backend: Optional[BackendFramework] = None
    data_layer: DataLayer
    orm: Optional[ORM] = None
    example: Example = Example.BLANK
    local_setup: LocalSetup = LocalSetup.ANVIL
    network: Optional[Network] = None
    network_env: Optional[NetworkEnv] = None
    package_manager: Optional[PackageManager] = None
    skip_install: bool = False
    skip_git: bool = False

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        try:
            return validate_project_name(value)
        except ValidationError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: Path) -> Path:
        if not value.is_absolute():
            raise ValueError(f"Project path must be absolute, got '{value}'")
        return value

    @model_validator(mode="after")
    def _check_axes(self) -> "ProjectConfig":
        if self.project_type is ProjectType.FRONTEND:
            if self.framework is None:
                raise ValueError("A frontend project requires a framework")
            if self.backend is not None:
                raise ValueError("A frontend project cannot select a backend framework")
        else:
            if self.backend is None:
                raise ValueError("A backend project requires a backend framework")
            if self.framework is not None:
                raise ValueError("A backend project cannot select a frontend framework")

        if self.data_layer is DataLayer.AMP_SYNC and self.orm is None:
            raise ValueError("The amp-sync data layer requires an ORM")
        if self.data_layer is not DataLayer.AMP_SYNC and self.orm is not None:
            raise ValueError("An ORM can only be selected with the amp-sync data layer")

        if not self.uses_public_dataset and (
            self.network is not None or self.network_env is not None
        ):
            raise ValueError("A network can only be selected when using a public dataset")
        return self

    @property
    def uses_public_dataset(self) -> bool:
        return self.local_setup in (LocalSetup.PUBLIC, LocalSetup.BOTH)

    @property
    def includes_anvil(self) -> bool:
        return self.local_setup in (LocalSetup.ANVIL, LocalSetup.BOTH)


# ---------------------------------------------------------------------------
# TemplateDescriptor
# ---------------------------------------------------------------------------

class TemplateDescriptor(BaseModel):
    """One entry in the static template catalog."""

    model_config = ConfigDict(frozen=True)

    key: TemplateKey
    name: str = Field(..., min_length=1)
    description: str = ""
    directory: str = Field(
        ...,
        pattern=r"^/(?:[a-zA-Z0-9_-]+/)*[a-zA-Z0-9_-]+$",
        description="Corpus-relative directory, e.g. '/templates/backend/express'",
    )
    skip: frozenset[str] = Field(default_factory=frozenset)
    category: TemplateCategory = TemplateCategory.BUILD_DATASET
    target: str = Field(
        default="",
        pattern=r"^(?:[a-zA-Z0-9_-]+(?:/[a-zA-Z0-9_-]+)*)?$",
        description="Project-relative directory receiving the files; empty for the root",
    )
    files: dict[str, str] = Field(
        default_factory=dict,
        description="When set, only these layer files are copied, each under the mapped name",
    )
    exclude: frozenset[str] = Field(
        default_factory=frozenset,
        description="Top-level entries of the directory that other layers copy",
    )

    @property
    def segments(self) -> list[str]:
        """Directory path components without the leading slash."""
        return self.directory.strip("/").split("/")


# ---------------------------------------------------------------------------
# TemplateData
# ---------------------------------------------------------------------------

class TemplateData(BaseModel):
    """Substitution context: a ``ProjectConfig`` plus derived values.

    Field aliases are the placeholder names used in the template corpus
    (``{{ projectName }}``, ``{{ rpcUrl }}``, ...).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    project_name: str = Field(..., alias="projectName")
    project_type: ProjectType = Field(..., alias="projectType")
    framework: Optional[Framework] = None
    backend: Optional[BackendFramework] = None
    data_layer: DataLayer = Field(..., alias="dataLayer")
    orm: Optional[ORM] = None
    example: Example
    local_setup: LocalSetup = Field(..., alias="localSetup")
    network: Optional[Network] = None
    network_env: Optional[NetworkEnv] = Field(default=None, alias="networkEnv")
    package_manager: PackageManager = Field(..., alias="packageManager")
    include_anvil: bool = Field(..., alias="includeAnvil")
    include_public: bool = Field(..., alias="includePublic")
    is_wallet_example: bool = Field(..., alias="isWalletExample")
    use_amp_sync: bool = Field(..., alias="useAmpSync")
    use_arrow_flight: bool = Field(..., alias="useArrowFlight")
    network_display_name: str = Field(..., alias="networkDisplayName")
    rpc_url: str = Field(..., alias="rpcUrl")
    chain_id: str = Field(..., alias="chainId")

    @classmethod
    def from_config(
        cls, config: ProjectConfig, package_manager: PackageManager
    ) -> "TemplateData":
        """Derive the substitution context from a resolved configuration."""
        network = get_network_info(config.network, config.network_env)
        return cls(
            project_name=config.name,
            project_type=config.project_type,
            framework=config.framework,
            backend=config.backend,
            data_layer=config.data_layer,
            orm=config.orm,
            example=config.example,
            local_setup=config.local_setup,
            network=config.network,
            network_env=config.network_env,
            package_manager=config.package_manager or package_manager,
            include_anvil=config.includes_anvil,
            include_public=config.uses_public_dataset,
            is_wallet_example=config.example is Example.WALLET,
            use_amp_sync=config.data_layer is DataLayer.AMP_SYNC,
            use_arrow_flight=config.data_layer is DataLayer.ARROW_FLIGHT,
            network_display_name=network.display_name,
            rpc_url=network.rpc_url,
            chain_id=network.chain_id,
        )

    def tokens(self) -> dict[str, str]:
        """Return ``{placeholder: text}`` for every recognised placeholder.

        Unset optional values map to the empty string; booleans render as
        ``true``/``false`` so they read naturally in JS/JSON templates.
        """
        values: dict[str, str] = {}
        for key, value in self.model_dump(by_alias=True, mode="json").items():
            if value is None:
                values[key] = ""
            elif isinstance(value, bool):
                values[key] = "true" if value else "false"
            else:
                values[key] = str(value)
        return values
