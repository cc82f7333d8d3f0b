"""Static catalog of template directories in the corpus.

Each ``TemplateKey`` has exactly one ``TemplateDescriptor``.  Directories are
corpus-relative and always start with ``/``.
"""

from __future__ import annotations

from typing import Any

from create_amp.domain import (
    BackendFramework,
    DataLayer,
    TemplateCategory,
    TemplateDescriptor,
    TemplateKey,
)

ALWAYS_SKIP: frozenset[str] = frozenset({"node_modules", ".git"})

_NODE_SKIP = ALWAYS_SKIP | {"dist"}
_NEXT_SKIP = ALWAYS_SKIP | {".next", "dist"}
_VITE_SKIP = ALWAYS_SKIP | {".tanstack", "dist"}
_FOUNDRY_SKIP = ALWAYS_SKIP | {"cache", "out", "broadcast"}


def _descriptor(
    key: TemplateKey,
    name: str,
    description: str,
    directory: str,
    skip: frozenset[str],
    category: TemplateCategory = TemplateCategory.BUILD_DATASET,
    **placement: Any,
) -> TemplateDescriptor:
    return TemplateDescriptor(
        key=key,
        name=name,
        description=description,
        directory=directory,
        skip=skip,
        category=category,
        **placement,
    )


AVAILABLE_TEMPLATES: dict[TemplateKey, TemplateDescriptor] = {
    d.key: d
    for d in (
        _descriptor(
            TemplateKey.BACKEND_BASE,
            "Backend Nodejs base",
            "Shared package manifest, tsconfig and Amp config for every backend",
            "/templates/backend/base",
            _NODE_SKIP,
        ),
        _descriptor(
            TemplateKey.BACKEND_EXPRESS,
            "Backend Nodejs w/ Express",
            "Scaffolds a nodejs server using expressjs, querying your Amp dataset with arrowflight",
            "/templates/backend/express",
            _NODE_SKIP,
        ),
        _descriptor(
            TemplateKey.BACKEND_FASTIFY,
            "Backend Nodejs w/ Fastify",
            "Scaffolds a nodejs server using fastify, querying your Amp dataset with arrowflight",
            "/templates/backend/fastify",
            _NODE_SKIP,
        ),
        _descriptor(
            TemplateKey.BACKEND_APOLLO_GRAPHQL,
            "Backend Nodejs w/ Apollo GraphQL",
            "Scaffolds a GraphQL API server using Apollo Server, querying your Amp dataset",
            "/templates/backend/apollo-graphql",
            _NODE_SKIP,
        ),
        _descriptor(
            TemplateKey.BACKEND_EXPRESS_GATEWAY,
            "Backend Nodejs w/ Express (gateway)",
            "Scaffolds an express server querying an existing dataset through the Amp gateway",
            "/templates/backend/express-gateway",
            _NODE_SKIP,
            TemplateCategory.EXISTING_DATASET,
        ),
        _descriptor(
            TemplateKey.BACKEND_FASTIFY_GATEWAY,
            "Backend Nodejs w/ Fastify (gateway)",
            "Scaffolds a fastify server querying an existing dataset through the Amp gateway",
            "/templates/backend/fastify-gateway",
            _NODE_SKIP,
            TemplateCategory.EXISTING_DATASET,
        ),
        _descriptor(
            TemplateKey.BACKEND_APOLLO_GRAPHQL_GATEWAY,
            "Backend Nodejs w/ Apollo GraphQL (gateway)",
            "Scaffolds a GraphQL server querying an existing dataset through the Amp gateway",
            "/templates/backend/apollo-graphql-gateway",
            _NODE_SKIP,
            TemplateCategory.EXISTING_DATASET,
        ),
        _descriptor(
            TemplateKey.NEXTJS,
            "Nextjs Fullstack app",
            "Scaffolds a self-contained nextjs fullstack web app",
            "/templates/nextjs",
            _NEXT_SKIP,
        ),
        _descriptor(
            TemplateKey.VITE_REACT_BASE,
            "React app base (Vite)",
            "Vite + React + Tailwind shell shared by every React template",
            "/templates/vite-react/base",
            _VITE_SKIP,
        ),
        _descriptor(
            TemplateKey.REACT_AMPSYNC_ELECTRICSQL,
            "React app with ampsync & electricsql",
            "Vite wiring for ampsync syncing your dataset to postgres and a realtime shape proxy",
            "/templates/vite-react/ampsync-electricsql",
            _VITE_SKIP,
        ),
        _descriptor(
            TemplateKey.REACT_ARROWFLIGHT_EFFECT_ATOM,
            "React app with arrowflight and effect-atom",
            "Vite wiring for querying your dataset with arrowflight and effect-atom hooks",
            "/templates/vite-react/flight-atom",
            _VITE_SKIP,
        ),
        _descriptor(
            TemplateKey.DATA_LAYER_AMP_SYNC,
            "Amp Sync data layer",
            "Postgres schema plus ElectricSQL or Drizzle clients",
            "/templates/data-layer/amp-sync",
            _VITE_SKIP,
        ),
        _descriptor(
            TemplateKey.DATA_LAYER_ARROW_FLIGHT,
            "Arrow Flight data layer",
            "Effect runtime and example queries over Arrow Flight",
            "/templates/data-layer/arrow-flight",
            _VITE_SKIP,
        ),
        _descriptor(
            TemplateKey.EXAMPLE_WALLET,
            "ERC20 wallet example",
            "Token wallet UI with balances and transfers",
            "/templates/examples/wallet",
            _VITE_SKIP,
            exclude=frozenset({"amp", "contracts"}),
        ),
        _descriptor(
            TemplateKey.AMP_CONFIG,
            "Amp configuration",
            "Dataset definitions and provider configuration for the local Amp server",
            "/templates/amp",
            _NODE_SKIP,
            target="amp",
        ),
        _descriptor(
            TemplateKey.CONTRACTS,
            "Foundry contracts",
            "Solidity sources and deploy scripts for the local Anvil chain",
            "/templates/contracts",
            _FOUNDRY_SKIP,
            target="contracts",
        ),
        _descriptor(
            TemplateKey.DOCKER_COMPOSE_AMP_SYNC,
            "Docker Compose (Amp Sync)",
            "Amp server, PostgreSQL and ElectricSQL services",
            "/templates/docker-compose",
            ALWAYS_SKIP,
            files={"docker-compose.amp-sync.yml": "docker-compose.yml"},
        ),
        _descriptor(
            TemplateKey.DOCKER_COMPOSE_ARROW_FLIGHT,
            "Docker Compose (Arrow Flight)",
            "Amp server services for Arrow Flight queries",
            "/templates/docker-compose",
            ALWAYS_SKIP,
            files={"docker-compose.arrow-flight.yml": "docker-compose.yml"},
        ),
        _descriptor(
            TemplateKey.EXAMPLE_WALLET_AMP,
            "ERC20 wallet example (Amp)",
            "Token transfer dataset for the wallet example",
            "/templates/examples/wallet/amp",
            _NODE_SKIP,
            target="amp",
        ),
        _descriptor(
            TemplateKey.EXAMPLE_WALLET_CONTRACTS,
            "ERC20 wallet example (contracts)",
            "ERC20 token contract and its deploy script",
            "/templates/examples/wallet/contracts",
            _FOUNDRY_SKIP,
            target="contracts",
        ),
    )
}

_BACKEND_KEYS: dict[BackendFramework, TemplateKey] = {
    BackendFramework.EXPRESS: TemplateKey.BACKEND_EXPRESS,
    BackendFramework.FASTIFY: TemplateKey.BACKEND_FASTIFY,
    BackendFramework.APOLLO_GRAPHQL: TemplateKey.BACKEND_APOLLO_GRAPHQL,
    BackendFramework.EXPRESS_GATEWAY: TemplateKey.BACKEND_EXPRESS_GATEWAY,
    BackendFramework.FASTIFY_GATEWAY: TemplateKey.BACKEND_FASTIFY_GATEWAY,
    BackendFramework.APOLLO_GRAPHQL_GATEWAY: TemplateKey.BACKEND_APOLLO_GRAPHQL_GATEWAY,
}

_VITE_DATA_LAYER_KEYS: dict[DataLayer, TemplateKey] = {
    DataLayer.AMP_SYNC: TemplateKey.REACT_AMPSYNC_ELECTRICSQL,
    DataLayer.ARROW_FLIGHT: TemplateKey.REACT_ARROWFLIGHT_EFFECT_ATOM,
}

_DATA_LAYER_KEYS: dict[DataLayer, TemplateKey] = {
    DataLayer.AMP_SYNC: TemplateKey.DATA_LAYER_AMP_SYNC,
    DataLayer.ARROW_FLIGHT: TemplateKey.DATA_LAYER_ARROW_FLIGHT,
}

_DOCKER_COMPOSE_KEYS: dict[DataLayer, TemplateKey] = {
    DataLayer.AMP_SYNC: TemplateKey.DOCKER_COMPOSE_AMP_SYNC,
    DataLayer.ARROW_FLIGHT: TemplateKey.DOCKER_COMPOSE_ARROW_FLIGHT,
}


def get_template(key: TemplateKey) -> TemplateDescriptor:
    return AVAILABLE_TEMPLATES[key]


def backend_descriptor(backend: BackendFramework) -> TemplateDescriptor:
    return AVAILABLE_TEMPLATES[_BACKEND_KEYS[backend]]


def vite_data_layer_descriptor(data_layer: DataLayer) -> TemplateDescriptor:
    return AVAILABLE_TEMPLATES[_VITE_DATA_LAYER_KEYS[data_layer]]


def data_layer_descriptor(data_layer: DataLayer) -> TemplateDescriptor:
    return AVAILABLE_TEMPLATES[_DATA_LAYER_KEYS[data_layer]]


def docker_compose_descriptor(data_layer: DataLayer) -> TemplateDescriptor:
    return AVAILABLE_TEMPLATES[_DOCKER_COMPOSE_KEYS[data_layer]]
