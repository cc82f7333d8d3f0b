"""Configuration resolver.

Turns partially-specified CLI options into a fully-resolved, internally
consistent ``ProjectConfig``.  Missing values are obtained from a ``Prompter``
(interactive) or from documented defaults (``--yes``).  This module never
writes to the filesystem.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, NamedTuple, Optional, Protocol, Sequence, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from rich.prompt import Prompt

from create_amp.config import Settings
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
from create_amp.errors import OperationCancelled, ValidationError
from create_amp.naming import (
    default_directory_name,
    expand_and_resolve_path,
    suggest_project_name,
    validate_project_name,
)
from create_amp.scaffolder.catalog import backend_descriptor
from create_amp.utils import console, print_error, print_warning

E = TypeVar("E", bound=Enum)


# ---------------------------------------------------------------------------
# Prompting
# ---------------------------------------------------------------------------

class Choice(NamedTuple):
    value: str
    label: str
    hint: str = ""


class Prompter(Protocol):
    """Interactive input source used by ``ConfigResolver``."""

    def text(
        self,
        message: str,
        default: Optional[str] = None,
        validate: Optional[Callable[[str], Optional[str]]] = None,
    ) -> str: ...

    def select(
        self, message: str, choices: Sequence[Choice], default: Optional[str] = None
    ) -> str: ...


class RichPrompter:
    """``Prompter`` backed by ``rich.prompt.Prompt``.

    Ctrl-C and end-of-input are reported as ``OperationCancelled``.
    """

    def text(
        self,
        message: str,
        default: Optional[str] = None,
        validate: Optional[Callable[[str], Optional[str]]] = None,
    ) -> str:
        while True:
            try:
                if default is None:
                    answer = Prompt.ask(message, console=console)
                else:
                    answer = Prompt.ask(message, console=console, default=default)
            except (KeyboardInterrupt, EOFError) as exc:
                raise OperationCancelled("Operation cancelled") from exc
            error = validate(answer) if validate else None
            if error is None:
                return answer
            print_error(error)

    def select(
        self, message: str, choices: Sequence[Choice], default: Optional[str] = None
    ) -> str:
        console.print(f"[bold]{message}[/bold]")
        for choice in choices:
            hint = f" [dim]({choice.hint})[/dim]" if choice.hint else ""
            console.print(f"  [cyan]{choice.value}[/cyan]  {choice.label}{hint}")
        try:
            return Prompt.ask(
                "Choose",
                console=console,
                choices=[c.value for c in choices],
                default=default if default is not None else choices[0].value,
            )
        except (KeyboardInterrupt, EOFError) as exc:
            raise OperationCancelled("Operation cancelled") from exc


# ---------------------------------------------------------------------------
# CLI options
# ---------------------------------------------------------------------------

class CliOptions(BaseModel):
    """Partially specified configuration as parsed from the command line."""

    name: Optional[str] = None
    path: Optional[str] = None
    project_type: Optional[ProjectType] = None
    framework: Optional[Framework] = None
    backend: Optional[BackendFramework] = None
    data_layer: Optional[DataLayer] = None
    orm: Optional[ORM] = None
    example: Optional[Example] = None
    local_setup: Optional[LocalSetup] = None
    network: Optional[Network] = None
    network_env: Optional[NetworkEnv] = None
    package_manager: Optional[PackageManager] = None
    skip_install: bool = False
    skip_git: bool = False


# ---------------------------------------------------------------------------
# Defaults and choice lists
# ---------------------------------------------------------------------------

DEFAULT_NAME = "my-amp-app"

DEFAULTS: dict[str, str] = {
    "project_type": ProjectType.FRONTEND.value,
    "framework": Framework.VITE.value,
    "backend": BackendFramework.EXPRESS.value,
    "data_layer": DataLayer.ARROW_FLIGHT.value,
    "orm": ORM.ELECTRIC.value,
    "example": Example.BLANK.value,
    "local_setup": LocalSetup.ANVIL.value,
    "network": Network.ARBITRUM.value,
    "network_env": NetworkEnv.TESTNET.value,
}

PROJECT_TYPE_CHOICES = [
    Choice("frontend", "Frontend", "React app with Vite or Next.js"),
    Choice("backend", "Backend", "Node.js API server"),
]
FRAMEWORK_CHOICES = [
    Choice("nextjs", "Next.js", "React framework with SSR"),
    Choice("vite", "React (Vite)", "Fast development with HMR"),
]
DATA_LAYER_CHOICES = [
    Choice("arrow-flight", "Arrow Flight", "High-performance binary protocol"),
    Choice("amp-sync", "Amp Sync", "PostgreSQL synchronization"),
]
ORM_CHOICES = [
    Choice("electric", "ElectricSQL", "Real-time sync with offline support"),
    Choice("drizzle", "Drizzle", "Type-safe SQL query builder"),
]
EXAMPLE_CHOICES = [
    Choice("wallet", "ERC20 Wallet App", "Token wallet with transfers"),
    Choice("blank", "Blank Template", "Start from scratch"),
]
LOCAL_SETUP_CHOICES = [
    Choice("anvil", "Anvil + Amp", "Local blockchain + Amp server"),
    Choice("public", "Public Dataset", "Connect to public Amp datasets"),
    Choice("both", "Both", "Local dev with public fallback"),
]
NETWORK_CHOICES = [
    Choice("arbitrum", "Arbitrum", "Ethereum L2 with low fees"),
    Choice("solana", "Solana", "High-performance blockchain"),
]
NETWORK_ENV_CHOICES = [
    Choice("testnet", "Testnet", "For testing and development"),
    Choice("mainnet", "Mainnet", "Production network"),
]


def backend_choices() -> list[Choice]:
    """Backend framework choices, grouped by template category."""
    choices = [
        Choice(b.value, backend_descriptor(b).name, backend_descriptor(b).category.value)
        for b in BackendFramework
    ]
    return sorted(choices, key=lambda c: c.hint)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class ConfigResolver:
    """Builds a ``ProjectConfig`` from CLI options plus prompts or defaults.

    Resolution order: name, path, project type, framework or backend, data
    layer, ORM (amp-sync only), example (frontend only), local setup, then
    network and network environment (public datasets only).  Options that
    the governing axis does not select are dropped with a warning and listed
    in ``warnings``.
    """

    def __init__(
        self,
        prompter: Prompter,
        settings: Settings,
        assume_defaults: bool = False,
    ) -> None:
        self.prompter = prompter
        self.settings = settings
        self.assume_defaults = assume_defaults
        self.warnings: list[str] = []

    def resolve(self, options: CliOptions) -> ProjectConfig:
        name = self._resolve_name(options.name)
        path = expand_and_resolve_path(
            options.path or default_directory_name(name),
            self.settings.home_dir,
            self.settings.cwd,
        )

        project_type = self._choose(
            ProjectType, "project_type", options.project_type,
            "What kind of project would you like to create?", PROJECT_TYPE_CHOICES,
        )

        framework: Optional[Framework] = None
        backend: Optional[BackendFramework] = None
        if project_type is ProjectType.FRONTEND:
            framework = self._choose(
                Framework, "framework", options.framework,
                "Which framework would you like to use?", FRAMEWORK_CHOICES,
            )
            self._ignore("backend", options.backend, "frontend projects")
        else:
            backend = self._choose(
                BackendFramework, "backend", options.backend,
                "Which backend framework would you like to use?", backend_choices(),
            )
            self._ignore("framework", options.framework, "backend projects")

        data_layer = self._choose(
            DataLayer, "data_layer", options.data_layer,
            "Which data layer would you like to use?", DATA_LAYER_CHOICES,
        )

        orm: Optional[ORM] = None
        if data_layer is DataLayer.AMP_SYNC:
            orm = self._choose(
                ORM, "orm", options.orm,
                "Which ORM/database layer would you like to use?", ORM_CHOICES,
            )
        else:
            self._ignore("orm", options.orm, f"the {data_layer.value} data layer")

        example = Example.BLANK
        if project_type is ProjectType.FRONTEND:
            example = self._choose(
                Example, "example", options.example,
                "Which example would you like to start with?", EXAMPLE_CHOICES,
            )
        elif options.example not in (None, Example.BLANK):
            self._ignore("example", options.example, "backend projects")

        local_setup = self._choose(
            LocalSetup, "local_setup", options.local_setup,
            "What local development setup would you like?", LOCAL_SETUP_CHOICES,
        )

        network: Optional[Network] = None
        network_env: Optional[NetworkEnv] = None
        if local_setup in (LocalSetup.PUBLIC, LocalSetup.BOTH):
            network = self._choose(
                Network, "network", options.network,
                "Which blockchain network would you like to use?", NETWORK_CHOICES,
            )
            network_env = self._choose(
                NetworkEnv, "network_env", options.network_env,
                "Which network environment?", NETWORK_ENV_CHOICES,
            )
        else:
            self._ignore("network", options.network, "a local-only setup")
            self._ignore("network_env", options.network_env, "a local-only setup")

        try:
            return ProjectConfig(
                name=name,
                path=path,
                project_type=project_type,
                framework=framework,
                backend=backend,
                data_layer=data_layer,
                orm=orm,
                example=example,
                local_setup=local_setup,
                network=network,
                network_env=network_env,
                package_manager=options.package_manager,
                skip_install=options.skip_install,
                skip_git=options.skip_git,
            )
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc

    # -- Helpers -------------------------------------------------------------

    def _resolve_name(self, given: Optional[str]) -> str:
        if given is not None:
            return validate_project_name(given)
        if self.assume_defaults:
            return DEFAULT_NAME

        def _check(value: str) -> Optional[str]:
            try:
                validate_project_name(value)
            except ValidationError as exc:
                suggestion = suggest_project_name(value)
                if suggestion is not None:
                    return f"{exc}. Did you mean '{suggestion}'?"
                return str(exc)
            return None

        answer = self.prompter.text(
            "What is your project named?", default=DEFAULT_NAME, validate=_check
        )
        return validate_project_name(answer)

    def _choose(
        self,
        enum_type: type[E],
        field: str,
        given: Optional[E],
        message: str,
        choices: Sequence[Choice],
    ) -> E:
        if given is not None:
            return enum_type(given)
        if self.assume_defaults:
            return enum_type(DEFAULTS[field])
        answer = self.prompter.select(message, choices, default=DEFAULTS[field])
        try:
            return enum_type(answer)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid value '{answer}' for {field}", field=field, rule="choice"
            ) from exc

    def _ignore(self, field: str, value: Optional[Enum], reason: str) -> None:
        if value is None:
            return
        message = f"Ignoring --{field.replace('_', '-')} {value.value}: not used by {reason}"
        self.warnings.append(message)
        print_warning(message)
