"""Project materialisation: layered copy, fragment merge, post-generation actions.

``ProjectGenerator.generate()`` runs the steps below in order.  Each one is a
public coroutine so callers (and tests) can drive the pipeline step by step.

1. ``validate``            name valid, target absent or empty
2. ``resolve_layers``      corpus prepared, every layer directory present
3. ``create_target``       target directory created
4. ``copy_layers``         layer files copied in order, placeholders substituted
5. ``merge_fragments``     ``.additions`` side-cars merged, root files ensured
6. ``initialize_git``      optional; failure is a warning
7. ``install_dependencies`` optional; failure is a warning

A failure (or Ctrl-C) during steps 3-5 removes whatever this run wrote.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import time
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from create_amp import actions
from create_amp.actions import ProcessRunner, SubprocessRunner, detect_package_manager
from create_amp.config import Settings
from create_amp.corpus import TemplateCorpus
from create_amp.domain import PackageManager, ProjectConfig, TemplateData
from create_amp.errors import (
    ExternalToolError,
    FragmentSyntaxError,
    MaterializationError,
    ValidationError,
)
from create_amp.naming import validate_project_name
from create_amp.utils import console, create_progress, print_success, print_warning

from .inclusion import (
    DEFAULT_RULES,
    FileAdditionFragment,
    InclusionRule,
    apply_fragment,
    fragment_target,
    load_layer_rules,
    should_skip,
)
from .selector import TemplateLayer, resolve_layers as locate_layers, select_templates
from .substitution import is_binary, substitute
from .templates import BUILTIN_FILES, TemplateRenderer, build_context


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


class GenerationResult(BaseModel):
    """Outcome of a successful ``ProjectGenerator.generate()`` run."""

    project_root: Path
    layers: list[str] = Field(default_factory=list, description="Template keys, in apply order")
    files_written: int = Field(default=0, description="Distinct files in the output tree")
    fragments_applied: int = 0
    package_manager: PackageManager
    git_initialized: bool = False
    dependencies_installed: bool = False
    warnings: list[str] = Field(default_factory=list)
    duration: float = Field(default=0.0, description="Wall-clock seconds")


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class ProjectGenerator:
    """Materialises one ``ProjectConfig`` from a template corpus."""

    def __init__(
        self,
        config: ProjectConfig,
        corpus: TemplateCorpus,
        settings: Settings,
        runner: Optional[ProcessRunner] = None,
        renderer: Optional[TemplateRenderer] = None,
    ) -> None:
        self.config = config
        self.corpus = corpus
        self.settings = settings
        self.runner: ProcessRunner = runner or SubprocessRunner()
        self.renderer = renderer or TemplateRenderer()

        self.package_manager = config.package_manager or detect_package_manager(
            settings.user_agent
        )
        self.data = TemplateData.from_config(config, self.package_manager)
        self.values = self.data.tokens()

        self.layers: list[TemplateLayer] = []
        self.fragments: list[FileAdditionFragment] = []
        self.written: set[str] = set()
        self.warnings: list[str] = []
        self._created_root = False
        self.materialized = False

    @property
    def project_root(self) -> Path:
        return self.config.path

    # -- Public API --------------------------------------------------------

    async def generate(self) -> GenerationResult:
        """Run every step and return a summary of the generated project.

        Raises:
            ValidationError: name invalid or target not empty.
            TemplateNotFoundError: a selected layer is missing from the corpus.
            CorpusDownloadError: the remote corpus could not be fetched.
            MaterializationError: a file could not be read or written.
            MergeConflictError / FragmentSyntaxError: a fragment cannot be merged.
        """
        started = time.monotonic()

        with create_progress() as progress:
            task = progress.add_task("Validating project...", total=None)
            await self.validate()

            progress.update(task, description="Fetching templates...")
            await self.resolve_layers()

            try:
                progress.update(task, description="Creating project directory...")
                await self.create_target()
                progress.update(task, description="Copying templates...")
                await self.copy_layers()
                progress.update(task, description="Merging additions...")
                await self.merge_fragments()
            except BaseException:
                progress.update(task, description="Cleaning up...")
                await self.cleanup()
                raise

        self.materialized = True

        print_success(f"Project files written to {self.project_root}")

        git_initialized = await self.initialize_git()
        installed = await self.install_dependencies()

        return GenerationResult(
            project_root=self.project_root,
            layers=[layer.descriptor.key.value for layer in self.layers],
            files_written=len(self.written),
            fragments_applied=len(self.fragments),
            package_manager=self.package_manager,
            git_initialized=git_initialized,
            dependencies_installed=installed,
            warnings=list(self.warnings),
            duration=time.monotonic() - started,
        )

    # -- Steps -------------------------------------------------------------

    async def validate(self) -> None:
        """Check the project name and that the target is absent or empty."""
        validate_project_name(self.config.name)
        root = self.project_root
        if await asyncio.to_thread(root.exists):
            if not await asyncio.to_thread(root.is_dir):
                raise ValidationError(
                    f"{root} exists and is not a directory",
                    field="path",
                    rule="not-a-directory",
                )
            if await asyncio.to_thread(_has_entries, root):
                raise ValidationError(
                    f"Directory {root} already exists and is not empty",
                    field="path",
                    rule="non-empty-directory",
                )

    async def resolve_layers(self) -> list[TemplateLayer]:
        """Select the layers for this configuration and locate them in the corpus."""
        descriptors = select_templates(self.config)
        await self.corpus.prepare(descriptors)
        self.layers = locate_layers(descriptors, self.corpus)
        return self.layers

    async def create_target(self) -> None:
        root = self.project_root
        existed = await asyncio.to_thread(root.exists)
        try:
            await asyncio.to_thread(root.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise MaterializationError(root, exc) from exc
        self._created_root = not existed

    async def copy_layers(self) -> None:
        """Copy every layer into the target, later layers overwriting earlier ones.

        Each layer's files are read concurrently; writes happen one at a time
        in walk order so the result does not depend on scheduling.
        """
        for index, layer in enumerate(self.layers):
            rules: list[InclusionRule] = [*DEFAULT_RULES, *load_layer_rules(layer.root)]
            rel_paths = await asyncio.to_thread(_layer_files, layer)
            selected = [
                rel for rel in rel_paths
                if not should_skip(rel, self.values, rules, layer.skip)
            ]
            contents = await asyncio.gather(
                *(_read_bytes(layer.root / rel) for rel in selected)
            )

            for rel, data in zip(selected, contents):
                source = layer.root / rel
                dest = layer.destination(rel)
                target_rel = fragment_target(dest)
                if target_rel is not None:
                    self.fragments.append(
                        FileAdditionFragment(
                            target=target_rel,
                            source=source,
                            layer=index,
                            content=_decode_fragment(source, data),
                        )
                    )
                    continue
                await self._write(dest, self._render(source, data), mode_from=source)

            console.print(
                f"  [dim]layer {index + 1}/{len(self.layers)}[/dim] "
                f"{layer.descriptor.key.value}: {len(selected)} files"
            )

    async def merge_fragments(self) -> None:
        """Apply collected fragments in layer order, then ensure root files exist."""
        for fragment in self.fragments:
            target = self.project_root / fragment.target
            existing = await _read_text(target) if target.is_file() else None
            merged = apply_fragment(existing, fragment, self.values)
            await self._write(fragment.target, merged.encode("utf-8"))

        context = build_context(
            self.data, actions.install_command(self.package_manager), self.written
        )
        for name, template in BUILTIN_FILES.items():
            target = self.project_root / name
            if target.exists():
                continue
            try:
                await self.renderer.render_to_file(template, target, context)
            except OSError as exc:
                raise MaterializationError(target, exc) from exc
            self.written.add(name)

    async def initialize_git(self) -> bool:
        """Create the initial commit; returns ``False`` if skipped or failed."""
        if self.config.skip_git:
            return False
        try:
            await actions.initialize_git(
                self.project_root, self.runner, timeout=self.settings.git_timeout
            )
        except ExternalToolError as exc:
            self._warn(f"Git initialisation failed: {exc}")
            return False
        print_success("Initialized a git repository")
        return True

    async def install_dependencies(self) -> bool:
        """Run the package manager; returns ``False`` if skipped or failed."""
        if self.config.skip_install:
            return False
        command = " ".join(actions.install_command(self.package_manager))
        console.print(f"  Installing dependencies with [cyan]{command}[/cyan]...")
        try:
            await actions.install_dependencies(
                self.project_root,
                self.package_manager,
                self.runner,
                timeout=self.settings.install_timeout,
            )
        except ExternalToolError as exc:
            self._warn(f"Dependency installation failed: {exc}")
            return False
        print_success("Dependencies installed")
        return True

    async def cleanup(self) -> None:
        """Best-effort removal of everything this run wrote.

        A directory this run created is removed outright; a pre-existing
        (empty) directory is emptied again.  Failures are reported, not raised.
        """
        root = self.project_root
        try:
            if self._created_root:
                await asyncio.to_thread(shutil.rmtree, root)
            elif root.is_dir():
                await asyncio.to_thread(_empty_directory, root)
        except OSError as exc:
            print_warning(f"Could not clean up {root}: {exc}")

    # -- Internal ----------------------------------------------------------

    def _render(self, source: Path, data: bytes) -> bytes:
        if is_binary(source, data):
            return data
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            return data
        return substitute(text, self.values).encode("utf-8")

    async def _write(self, rel: str, data: bytes, mode_from: Optional[Path] = None) -> None:
        target = self.project_root / rel
        try:
            await asyncio.to_thread(_write_file, target, data, mode_from)
        except OSError as exc:
            raise MaterializationError(target, exc) from exc
        self.written.add(rel)

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        print_warning(message)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _layer_files(layer: TemplateLayer) -> list[str]:
    """Return the files *layer* contributes as sorted POSIX relative paths.

    A layer listing ``files`` contributes exactly those.  Otherwise the
    directory is walked: names in ``skip`` are pruned at any depth and
    ``exclude`` entries at the top level only.
    """
    descriptor = layer.descriptor
    if descriptor.files:
        return sorted(descriptor.files)

    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(layer.root):
        base = Path(dirpath).relative_to(layer.root)
        top = base == Path(".")
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in layer.skip and not (top and d in descriptor.exclude)
        )
        for name in sorted(filenames):
            if top and name in descriptor.exclude:
                continue
            found.append((base / name).as_posix())
    return found


async def _read_bytes(path: Path) -> bytes:
    try:
        return await asyncio.to_thread(path.read_bytes)
    except OSError as exc:
        raise MaterializationError(path, exc) from exc


async def _read_text(path: Path) -> str:
    try:
        return await asyncio.to_thread(path.read_text, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MaterializationError(path, exc) from exc


def _decode_fragment(source: Path, data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FragmentSyntaxError(str(source), 1, "fragment is not UTF-8 text") from exc


def _write_file(path: Path, data: bytes, mode_from: Optional[Path] = None) -> None:
    """Synchronous helper: create parent dirs, write bytes, copy permission bits."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    if mode_from is not None:
        shutil.copymode(mode_from, path)


def _has_entries(path: Path) -> bool:
    return any(path.iterdir())


def _empty_directory(path: Path) -> None:
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()
