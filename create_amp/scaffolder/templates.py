"""Jinja2 rendering for the root files create-amp writes itself.

The template corpus normally ships its own ``README.md`` and ``.gitignore``;
when a layer set does not, the generator renders them from the ``.j2`` files
in ``create_amp/scaffolder/templates/``.  Corpus files never go through
Jinja2: they are handled by :mod:`create_amp.scaffolder.substitution`.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Collection

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from create_amp.actions import run_script_command
from create_amp.domain import BackendFramework, Framework, TemplateData


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"

# Output file name -> template name.
BUILTIN_FILES: dict[str, str] = {
    ".gitignore": "gitignore.j2",
    "README.md": "README.md.j2",
}

_STACK_LABELS: dict[Any, str] = {
    Framework.NEXTJS: "Next.js",
    Framework.VITE: "React (Vite)",
    BackendFramework.EXPRESS: "Node.js and Express",
    BackendFramework.FASTIFY: "Node.js and Fastify",
    BackendFramework.APOLLO_GRAPHQL: "Node.js and Apollo GraphQL",
    BackendFramework.EXPRESS_GATEWAY: "Node.js and Express (Amp gateway)",
    BackendFramework.FASTIFY_GATEWAY: "Node.js and Fastify (Amp gateway)",
    BackendFramework.APOLLO_GRAPHQL_GATEWAY: "Node.js and Apollo GraphQL (Amp gateway)",
}


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders the built-in ``.j2`` templates.

    Undefined variables are an error (``StrictUndefined``) so a template
    referencing a context key that does not exist fails loudly.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"README.md.j2"``).
            context: Dictionary of variables available inside the template.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)

    async def render_to_file(
        self,
        template_path: str,
        output_path: str | Path,
        context: dict[str, Any],
    ) -> Path:
        """Render a template and write the result to *output_path*.

        Parent directories are created automatically.
        """
        content = self.render(template_path, context)
        out = Path(output_path)
        await asyncio.to_thread(_write_file, out, content)
        return out


def build_context(
    data: TemplateData,
    install_command: list[str],
    written: Collection[str] = (),
) -> dict[str, Any]:
    """Build the Jinja2 context for the built-in root files.

    *written* holds the project-relative paths the layers produced; the
    README only documents infrastructure that is actually there.
    """
    context: dict[str, Any] = data.model_dump(mode="json")
    stack = data.framework if data.framework is not None else data.backend
    context.update(
        stack_label=_STACK_LABELS.get(stack, "Node.js"),
        install_command=" ".join(install_command),
        dev_command=" ".join(run_script_command(data.package_manager, "dev")),
        amp_dev_command=" ".join(run_script_command(data.package_manager, "amp")) + " dev",
        has_docker_compose="docker-compose.yml" in written,
        has_amp_config=any(path.startswith("amp/") for path in written),
        has_contracts=any(path.startswith("contracts/") for path in written),
    )
    return context


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
