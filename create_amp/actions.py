"""Post-generation actions: git initialisation and dependency installation.

Both steps shell out through a ``ProcessRunner`` so tests can substitute a
recording fake.  A non-zero exit raises ``ExternalToolError``; the generator
turns that into a warning rather than failing the run.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from create_amp.domain import PackageManager
from create_amp.errors import ExternalToolError
from create_amp.utils import run_command

INITIAL_COMMIT_MESSAGE = "Initial commit from create-amp"

GIT_INIT_COMMANDS: tuple[tuple[str, ...], ...] = (
    ("git", "init"),
    ("git", "add", "."),
    ("git", "commit", "-m", INITIAL_COMMIT_MESSAGE),
)

_RUN_PREFIX: dict[PackageManager, tuple[str, ...]] = {
    PackageManager.PNPM: ("pnpm",),
    PackageManager.YARN: ("yarn",),
    PackageManager.BUN: ("bun", "run"),
    PackageManager.NPM: ("npm", "run"),
}

_INSTALL_COMMANDS: dict[PackageManager, tuple[str, ...]] = {
    PackageManager.PNPM: ("pnpm", "install"),
    PackageManager.YARN: ("yarn",),
    PackageManager.BUN: ("bun", "install"),
    PackageManager.NPM: ("npm", "install"),
}


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessRunner(Protocol):
    async def run(self, cmd: list[str], cwd: Path, timeout: float) -> CommandResult: ...


class SubprocessRunner:
    """Runs commands with :func:`create_amp.utils.run_command`."""

    async def run(self, cmd: list[str], cwd: Path, timeout: float) -> CommandResult:
        returncode, stdout, stderr = await run_command(cmd, cwd=cwd, timeout=timeout)
        return CommandResult(returncode=returncode, stdout=stdout, stderr=stderr)


def detect_package_manager(user_agent: str) -> PackageManager:
    """Infer the invoking package manager from ``npm_config_user_agent``.

    ``pnpm/9.1.0 npm/? node/v20.11.0 darwin arm64`` -> ``PackageManager.PNPM``.
    Falls back to npm when the agent is empty or unrecognised.
    """
    agent = user_agent.lower()
    for manager in (PackageManager.PNPM, PackageManager.YARN, PackageManager.BUN):
        if manager.value in agent:
            return manager
    return PackageManager.NPM


def install_command(package_manager: PackageManager) -> list[str]:
    return list(_INSTALL_COMMANDS[package_manager])


def run_script_command(package_manager: PackageManager, script: str) -> list[str]:
    """Command running a package.json *script*, e.g. ``npm run dev``."""
    return [*_RUN_PREFIX[package_manager], script]


async def _run_checked(
    runner: ProcessRunner, cmd: list[str], cwd: Path, timeout: float
) -> CommandResult:
    result = await runner.run(cmd, cwd, timeout)
    if not result.ok:
        raise ExternalToolError(" ".join(cmd), result.returncode, result.stderr)
    return result


async def initialize_git(project_root: Path, runner: ProcessRunner, timeout: float = 60.0) -> None:
    """Create a repository in *project_root* with one commit of every file.

    Raises:
        ExternalToolError: on the first git command that fails; later
            commands are not attempted.
    """
    for cmd in GIT_INIT_COMMANDS:
        await _run_checked(runner, list(cmd), project_root, timeout)


async def install_dependencies(
    project_root: Path,
    package_manager: PackageManager,
    runner: ProcessRunner,
    timeout: float = 600.0,
) -> None:
    """Run the package manager's install command in *project_root*.

    Raises:
        ExternalToolError: if the install exits non-zero, times out or the
            package manager is not on ``PATH``.
    """
    await _run_checked(runner, install_command(package_manager), project_root, timeout)
