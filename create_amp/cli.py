"""Command-line entry point for ``create-amp``.

Exit codes:
    0    project generated, or the operator cancelled a prompt
    1    validation, template, download, merge or I/O error
    130  interrupted during generation
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from enum import Enum
from typing import Optional, Sequence

from rich.table import Table

from create_amp import __version__
from create_amp.actions import ProcessRunner, install_command, run_script_command
from create_amp.config import Settings
from create_amp.corpus import create_corpus
from create_amp.domain import (
    BackendFramework,
    DataLayer,
    Example,
    Framework,
    LocalSetup,
    Network,
    NetworkEnv,
    ORM,
    PackageManager,
    ProjectConfig,
    ProjectType,
)
from create_amp.errors import CreateAmpError, OperationCancelled
from create_amp.naming import expand_and_resolve_path
from create_amp.resolver import CliOptions, ConfigResolver, Prompter, RichPrompter
from create_amp.scaffolder import GenerationResult, ProjectGenerator
from create_amp.scaffolder.catalog import AVAILABLE_TEMPLATES
from create_amp.utils import (
    console,
    format_duration,
    print_error,
    print_header,
    print_success,
    print_summary_table,
    print_warning,
)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def _values(enum_type: type[Enum]) -> list[str]:
    return [member.value for member in enum_type]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="create-amp",
        description="Scaffold a new Amp-powered project from the amp-templates corpus",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  create-amp my-app\n"
            "  create-amp my-app --framework vite --data-layer arrow-flight --yes\n"
            "  create-amp api --project-type backend --backend fastify --skip-install\n"
        ),
    )
    parser.add_argument("name", nargs="?", default=None, help="Project name")
    parser.add_argument("--path", default=None, help="Target directory (default: ./<name>)")
    parser.add_argument("--project-type", choices=_values(ProjectType), default=None)
    parser.add_argument("--framework", choices=_values(Framework), default=None)
    parser.add_argument("--backend", choices=_values(BackendFramework), default=None)
    parser.add_argument("--data-layer", choices=_values(DataLayer), default=None)
    parser.add_argument("--orm", choices=_values(ORM), default=None)
    parser.add_argument("--example", choices=_values(Example), default=None)
    parser.add_argument("--local-setup", choices=_values(LocalSetup), default=None)
    parser.add_argument("--network", choices=_values(Network), default=None)
    parser.add_argument("--network-env", choices=_values(NetworkEnv), default=None)
    parser.add_argument("--package-manager", choices=_values(PackageManager), default=None)
    parser.add_argument("--skip-install", action="store_true", help="Do not install dependencies")
    parser.add_argument("--skip-git", action="store_true", help="Do not initialise a git repository")
    parser.add_argument(
        "--templates-dir",
        default=None,
        help="Use a local template corpus instead of downloading amp-templates",
    )
    parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Use defaults for every option not given on the command line",
    )
    parser.add_argument(
        "--list-templates",
        action="store_true",
        help="Print the template catalog and exit",
    )
    parser.add_argument("--version", action="version", version=f"create-amp {__version__}")
    return parser


def options_from_args(args: argparse.Namespace) -> CliOptions:
    return CliOptions(
        name=args.name,
        path=args.path,
        project_type=args.project_type,
        framework=args.framework,
        backend=args.backend,
        data_layer=args.data_layer,
        orm=args.orm,
        example=args.example,
        local_setup=args.local_setup,
        network=args.network,
        network_env=args.network_env,
        package_manager=args.package_manager,
        skip_install=args.skip_install,
        skip_git=args.skip_git,
    )


def print_templates() -> None:
    """Print the template catalog grouped by category."""
    table = Table(title="Available templates", show_header=True, header_style="bold cyan")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Directory", style="dim")
    table.add_column("Category", style="dim")

    for descriptor in sorted(
        AVAILABLE_TEMPLATES.values(), key=lambda d: (d.category.value, d.key.value)
    ):
        table.add_row(
            descriptor.key.value,
            descriptor.name,
            descriptor.directory,
            descriptor.category.value,
        )
    console.print(table)


def print_next_steps(config: ProjectConfig, result: GenerationResult) -> None:
    print_summary_table(
        {
            "Project": config.name,
            "Path": str(result.project_root),
            "Templates": ", ".join(result.layers),
            "Package manager": result.package_manager.value,
            "Files": str(result.files_written),
            "Duration": format_duration(result.duration),
        },
        title="Project created",
    )
    for warning in result.warnings:
        print_warning(warning)

    console.print("[bold]Next steps:[/bold]")
    console.print(f"  cd {result.project_root}")
    if not result.dependencies_installed:
        console.print(f"  {' '.join(install_command(result.package_manager))}")
    console.print(f"  {' '.join(run_script_command(result.package_manager, 'dev'))}")


async def generate(generator: ProjectGenerator) -> GenerationResult:
    """Run *generator* and release its corpus afterwards."""
    async with generator.corpus:
        return await generator.generate()


def run(
    argv: Optional[Sequence[str]] = None,
    *,
    settings: Optional[Settings] = None,
    prompter: Optional[Prompter] = None,
    runner: Optional[ProcessRunner] = None,
) -> int:
    """Parse *argv*, resolve the configuration and generate the project.

    Returns the process exit code.
    """
    args = build_parser().parse_args(argv)

    if args.list_templates:
        print_templates()
        return EXIT_OK

    settings = settings or Settings.from_env()
    if args.templates_dir:
        templates_dir = expand_and_resolve_path(args.templates_dir, settings.home_dir, settings.cwd)
        settings = settings.model_copy(update={"templates_dir": templates_dir})

    print_header(f"create-amp {__version__}")

    try:
        resolver = ConfigResolver(prompter or RichPrompter(), settings, assume_defaults=args.yes)
        config = resolver.resolve(options_from_args(args))
    except OperationCancelled as exc:
        print_warning(str(exc) or "Operation cancelled")
        return EXIT_OK
    except CreateAmpError as exc:
        print_error(f"Error: {exc}")
        return EXIT_ERROR

    console.print(f"Creating [bold cyan]{config.name}[/bold cyan] in {config.path}")
    generator = ProjectGenerator(config, create_corpus(settings), settings, runner=runner)
    try:
        result = asyncio.run(generate(generator))
    except KeyboardInterrupt:
        if generator.materialized:
            print_warning(f"Interrupted; the generated project was kept at {generator.project_root}")
        else:
            print_warning("Interrupted; partially generated files were removed")
        return EXIT_INTERRUPTED
    except CreateAmpError as exc:
        print_error(f"Error: {exc}")
        return EXIT_ERROR

    print_success(f"Created {config.name} at {result.project_root}")
    print_next_steps(config, result)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for ``create-amp`` and ``python -m create_amp``."""
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
