"""Unit tests for the configuration resolver (create_amp.resolver).

Tests cover:
- Fully specified options (no prompts)
- --yes defaults
- Prompting order and axis-dependent questions
- Options that do not apply to the chosen axis are dropped with a warning
- Path resolution (default directory, scoped names, tilde)
- Validation and cancellation errors
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from create_amp.domain import (
    BackendFramework,
    DataLayer,
    Example,
    Framework,
    LocalSetup,
    Network,
    NetworkEnv,
    ORM,
    ProjectType,
)
from create_amp.errors import OperationCancelled, ValidationError
from create_amp.resolver import (
    DEFAULT_NAME,
    CliOptions,
    ConfigResolver,
    RichPrompter,
    backend_choices,
)

pytestmark = pytest.mark.unit


def _full_options(**overrides) -> CliOptions:
    fields = dict(
        name="my-app",
        project_type="frontend",
        framework="vite",
        data_layer="arrow-flight",
        example="blank",
        local_setup="anvil",
    )
    fields.update(overrides)
    return CliOptions(**fields)


# ---------------------------------------------------------------------------
# Non-interactive resolution
# ---------------------------------------------------------------------------


class TestResolveFromOptions:
    def test_fully_specified_asks_nothing(self, settings, fake_prompter):
        config = ConfigResolver(fake_prompter, settings).resolve(_full_options())
        assert fake_prompter.asked == []
        assert config.name == "my-app"
        assert config.framework is Framework.VITE
        assert config.data_layer is DataLayer.ARROW_FLIGHT
        assert config.orm is None

    def test_default_path_under_cwd(self, settings, fake_prompter):
        config = ConfigResolver(fake_prompter, settings).resolve(_full_options())
        assert config.path == settings.cwd / "my-app"

    def test_scoped_name_uses_package_part_for_directory(self, settings, fake_prompter):
        config = ConfigResolver(fake_prompter, settings).resolve(_full_options(name="@acme/app"))
        assert config.name == "@acme/app"
        assert config.path == settings.cwd / "app"

    def test_explicit_tilde_path(self, settings, fake_prompter):
        options = _full_options(path="~/projects/demo")
        config = ConfigResolver(fake_prompter, settings).resolve(options)
        assert config.path == settings.home_dir / "projects" / "demo"

    def test_flags_carried_through(self, settings, fake_prompter):
        options = _full_options(skip_install=True, skip_git=True, package_manager="pnpm")
        config = ConfigResolver(fake_prompter, settings).resolve(options)
        assert config.skip_install and config.skip_git
        assert config.package_manager.value == "pnpm"

    def test_amp_sync_with_orm(self, settings, fake_prompter):
        options = _full_options(data_layer="amp-sync", orm="drizzle")
        config = ConfigResolver(fake_prompter, settings).resolve(options)
        assert config.orm is ORM.DRIZZLE

    def test_public_setup_with_network(self, settings, fake_prompter):
        options = _full_options(local_setup="public", network="solana", network_env="mainnet")
        config = ConfigResolver(fake_prompter, settings).resolve(options)
        assert config.network is Network.SOLANA
        assert config.network_env is NetworkEnv.MAINNET

    def test_backend_project(self, settings, fake_prompter):
        options = _full_options(project_type="backend", framework=None, backend="apollo-graphql")
        config = ConfigResolver(fake_prompter, settings).resolve(options)
        assert config.project_type is ProjectType.BACKEND
        assert config.backend is BackendFramework.APOLLO_GRAPHQL
        assert config.framework is None
        assert config.example is Example.BLANK


# ---------------------------------------------------------------------------
# --yes defaults
# ---------------------------------------------------------------------------


class TestAssumeDefaults:
    def test_all_defaults(self, settings, fake_prompter):
        config = ConfigResolver(fake_prompter, settings, assume_defaults=True).resolve(CliOptions())
        assert fake_prompter.asked == []
        assert config.name == DEFAULT_NAME
        assert config.project_type is ProjectType.FRONTEND
        assert config.framework is Framework.VITE
        assert config.data_layer is DataLayer.ARROW_FLIGHT
        assert config.example is Example.BLANK
        assert config.local_setup is LocalSetup.ANVIL
        assert config.network is None

    def test_defaults_fill_dependent_axes(self, settings, fake_prompter):
        options = CliOptions(data_layer="amp-sync", local_setup="both")
        config = ConfigResolver(fake_prompter, settings, assume_defaults=True).resolve(options)
        assert config.orm is ORM.ELECTRIC
        assert config.network is Network.ARBITRUM
        assert config.network_env is NetworkEnv.TESTNET

    def test_backend_default(self, settings, fake_prompter):
        options = CliOptions(project_type="backend")
        config = ConfigResolver(fake_prompter, settings, assume_defaults=True).resolve(options)
        assert config.backend is BackendFramework.EXPRESS


# ---------------------------------------------------------------------------
# Prompting
# ---------------------------------------------------------------------------


class TestPrompting:
    def test_prompt_order_for_frontend(self, settings, make_prompter):
        prompter = make_prompter({
            "project named": "demo",
            "kind of project": "frontend",
            "Which framework": "vite",
            "data layer": "amp-sync",
            "ORM": "drizzle",
            "example": "wallet",
            "local development setup": "public",
            "blockchain network": "arbitrum",
            "network environment": "mainnet",
        })
        config = ConfigResolver(prompter, settings).resolve(CliOptions())
        assert prompter.asked == [
            "What is your project named?",
            "What kind of project would you like to create?",
            "Which framework would you like to use?",
            "Which data layer would you like to use?",
            "Which ORM/database layer would you like to use?",
            "Which example would you like to start with?",
            "What local development setup would you like?",
            "Which blockchain network would you like to use?",
            "Which network environment?",
        ]
        assert config.name == "demo"
        assert config.orm is ORM.DRIZZLE
        assert config.example is Example.WALLET
        assert config.network_env is NetworkEnv.MAINNET

    def test_backend_skips_framework_and_example(self, settings, make_prompter):
        prompter = make_prompter({"kind of project": "backend", "backend framework": "fastify"})
        config = ConfigResolver(prompter, settings).resolve(CliOptions(name="api"))
        assert not any("Which framework" in q for q in prompter.asked)
        assert not any("example" in q for q in prompter.asked)
        assert config.backend is BackendFramework.FASTIFY

    def test_no_orm_prompt_for_arrow_flight(self, settings, fake_prompter):
        ConfigResolver(fake_prompter, settings).resolve(CliOptions(name="demo"))
        assert not any("ORM" in q for q in fake_prompter.asked)
        assert not any("network" in q for q in fake_prompter.asked)

    def test_prompt_default_name(self, settings, fake_prompter):
        config = ConfigResolver(fake_prompter, settings).resolve(CliOptions())
        assert config.name == DEFAULT_NAME

    def test_cancellation_propagates(self, settings, make_prompter):
        prompter = make_prompter({"data layer": KeyboardInterrupt})
        with pytest.raises(OperationCancelled):
            ConfigResolver(prompter, settings).resolve(CliOptions(name="demo"))

    def test_invalid_select_answer(self, settings, make_prompter):
        prompter = make_prompter({"data layer": "graphql"})
        with pytest.raises(ValidationError) as exc_info:
            ConfigResolver(prompter, settings).resolve(CliOptions(name="demo"))
        assert exc_info.value.field == "data_layer"


# ---------------------------------------------------------------------------
# Inapplicable options
# ---------------------------------------------------------------------------


class TestInapplicableOptions:
    def test_orm_dropped_for_arrow_flight(self, settings, fake_prompter):
        resolver = ConfigResolver(fake_prompter, settings)
        config = resolver.resolve(_full_options(orm="electric"))
        assert config.orm is None
        assert any("--orm electric" in w for w in resolver.warnings)

    def test_network_dropped_for_anvil(self, settings, fake_prompter):
        resolver = ConfigResolver(fake_prompter, settings)
        config = resolver.resolve(_full_options(network="solana", network_env="testnet"))
        assert config.network is None and config.network_env is None
        assert len(resolver.warnings) == 2

    def test_backend_dropped_for_frontend(self, settings, fake_prompter):
        resolver = ConfigResolver(fake_prompter, settings)
        config = resolver.resolve(_full_options(backend="express"))
        assert config.backend is None
        assert any("--backend" in w for w in resolver.warnings)

    def test_framework_dropped_for_backend(self, settings, fake_prompter):
        resolver = ConfigResolver(fake_prompter, settings)
        config = resolver.resolve(_full_options(project_type="backend", backend="express"))
        assert config.framework is None
        assert any("--framework" in w for w in resolver.warnings)

    def test_wallet_example_dropped_for_backend(self, settings, fake_prompter):
        resolver = ConfigResolver(fake_prompter, settings)
        options = _full_options(project_type="backend", framework=None, backend="express",
                                example="wallet")
        config = resolver.resolve(options)
        assert config.example is Example.BLANK
        assert any("--example" in w for w in resolver.warnings)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_invalid_name_from_options(self, settings, fake_prompter):
        with pytest.raises(ValidationError) as exc_info:
            ConfigResolver(fake_prompter, settings).resolve(_full_options(name="Bad Name"))
        assert exc_info.value.field == "name"
        assert exc_info.value.rule == "capital-letters"

    @pytest.mark.parametrize("name", ["@x/..", "@x/."])
    def test_scoped_name_cannot_escape_cwd(self, settings, fake_prompter, name):
        with pytest.raises(ValidationError) as exc_info:
            ConfigResolver(fake_prompter, settings).resolve(_full_options(name=name))
        assert exc_info.value.rule == "leading-period"

    def test_prompt_error_suggests_valid_name(self, settings):
        answers = iter(["My App", "my-app"])
        with patch("create_amp.resolver.Prompt.ask", side_effect=lambda *a, **k: next(answers)), \
                patch("create_amp.resolver.print_error") as error:
            config = ConfigResolver(RichPrompter(), settings).resolve(_full_options(name=None))
        assert config.name == "my-app"
        message = error.call_args.args[0]
        assert "capital letters" in message
        assert "Did you mean 'my-app'?" in message

    def test_does_not_touch_filesystem(self, settings, fake_prompter):
        config = ConfigResolver(fake_prompter, settings).resolve(_full_options())
        assert not config.path.exists()


class TestBackendChoices:
    def test_grouped_by_category(self):
        hints = [c.hint for c in backend_choices()]
        assert hints == sorted(hints)
        assert {c.value for c in backend_choices()} == {b.value for b in BackendFramework}


# ---------------------------------------------------------------------------
# RichPrompter
# ---------------------------------------------------------------------------


class TestRichPrompter:
    def test_text_returns_answer(self):
        with patch("create_amp.resolver.Prompt.ask", return_value="demo"):
            assert RichPrompter().text("Name?", default="x") == "demo"

    def test_text_reprompts_until_valid(self):
        answers = iter(["Bad", "good"])
        with patch("create_amp.resolver.Prompt.ask", side_effect=lambda *a, **k: next(answers)):
            result = RichPrompter().text(
                "Name?", validate=lambda v: None if v.islower() else "lower case only"
            )
        assert result == "good"

    @pytest.mark.parametrize("error", [KeyboardInterrupt, EOFError])
    def test_interrupt_is_cancellation(self, error):
        with patch("create_amp.resolver.Prompt.ask", side_effect=error):
            with pytest.raises(OperationCancelled, match="Operation cancelled"):
                RichPrompter().text("Name?")

    def test_select_passes_choice_values(self):
        from create_amp.resolver import FRAMEWORK_CHOICES

        with patch("create_amp.resolver.Prompt.ask", return_value="nextjs") as ask:
            result = RichPrompter().select("Framework?", FRAMEWORK_CHOICES, default="vite")
        assert result == "nextjs"
        assert ask.call_args.kwargs["choices"] == ["nextjs", "vite"]
        assert ask.call_args.kwargs["default"] == "vite"

    def test_select_cancellation(self):
        from create_amp.resolver import FRAMEWORK_CHOICES

        with patch("create_amp.resolver.Prompt.ask", side_effect=KeyboardInterrupt):
            with pytest.raises(OperationCancelled):
                RichPrompter().select("Framework?", FRAMEWORK_CHOICES)
