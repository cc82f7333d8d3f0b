"""Template selection: which corpus directories make up a project, in order.

Layers are applied first to last; a later layer overwrites files an earlier
one wrote at the same relative path.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from create_amp.domain import (
    Example,
    Framework,
    ProjectConfig,
    ProjectType,
    TemplateDescriptor,
    TemplateKey,
)
from create_amp.errors import TemplateNotFoundError

from .catalog import (
    backend_descriptor,
    data_layer_descriptor,
    docker_compose_descriptor,
    get_template,
    vite_data_layer_descriptor,
)


class CorpusLocator(Protocol):
    def locate(self, descriptor: TemplateDescriptor) -> Path: ...


@dataclass(frozen=True)
class TemplateLayer:
    """A selected descriptor paired with its directory on disk."""

    descriptor: TemplateDescriptor
    root: Path

    @property
    def skip(self) -> frozenset[str]:
        return self.descriptor.skip

    def destination(self, rel: str) -> str:
        """Project-relative path for the layer file *rel*."""
        name = self.descriptor.files.get(rel, rel)
        if self.descriptor.target:
            return f"{self.descriptor.target}/{name}"
        return name


def select_templates(config: ProjectConfig) -> list[TemplateDescriptor]:
    """Return the ordered template layers for *config*.

    * Next.js templates are self-contained: one layer.
    * Vite + React: base, data-layer wiring for Vite, the generic data-layer
      directory, then the project infrastructure (``amp/``, ``contracts/``
      when a local Anvil chain is included, ``docker-compose.yml`` for the
      data layer), and finally the wallet overlays when that example is
      chosen.
    * Backends: the shared base followed by the framework directory.
    """
    if config.project_type is ProjectType.BACKEND:
        assert config.backend is not None
        return [get_template(TemplateKey.BACKEND_BASE), backend_descriptor(config.backend)]

    if config.framework is Framework.NEXTJS:
        return [get_template(TemplateKey.NEXTJS)]

    layers = [
        get_template(TemplateKey.VITE_REACT_BASE),
        vite_data_layer_descriptor(config.data_layer),
        data_layer_descriptor(config.data_layer),
        get_template(TemplateKey.AMP_CONFIG),
    ]
    if config.includes_anvil:
        layers.append(get_template(TemplateKey.CONTRACTS))
    layers.append(docker_compose_descriptor(config.data_layer))

    if config.example is Example.WALLET:
        layers += [
            get_template(TemplateKey.EXAMPLE_WALLET),
            get_template(TemplateKey.EXAMPLE_WALLET_AMP),
        ]
        if config.includes_anvil:
            layers.append(get_template(TemplateKey.EXAMPLE_WALLET_CONTRACTS))
    return layers


def resolve_layers(
    descriptors: Sequence[TemplateDescriptor], corpus: CorpusLocator
) -> list[TemplateLayer]:
    """Locate every descriptor in *corpus*.

    Raises:
        TemplateNotFoundError: for the first directory, or listed file, that
            does not exist.  Nothing has been written when this is raised.
    """
    layers: list[TemplateLayer] = []
    for descriptor in descriptors:
        root = corpus.locate(descriptor)
        if not root.is_dir():
            raise TemplateNotFoundError(descriptor.key.value, root)
        for name in descriptor.files:
            if not (root / name).is_file():
                raise TemplateNotFoundError(descriptor.key.value, root / name)
        layers.append(TemplateLayer(descriptor=descriptor, root=root))
    return layers
