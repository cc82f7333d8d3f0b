"""Shared pytest fixtures for the create-amp test suite.

Provides reusable fixtures for:
- An on-disk template corpus covering every catalog directory
- Settings pointing at that corpus and at temporary home/work directories
- A recording fake for subprocess execution (git, package managers)
- A scripted fake for interactive prompts
- A factory for valid ``ProjectConfig`` objects
"""

from __future__ import annotations

import json
import textwrap
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

import pytest

from create_amp.actions import CommandResult
from create_amp.config import Settings
from create_amp.domain import ProjectConfig
from create_amp.resolver import Choice


# ---------------------------------------------------------------------------
# Template corpus
# ---------------------------------------------------------------------------

# 1x1 PNG header plus a NUL byte and a placeholder that must survive verbatim.
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR{{ projectName }}\x00\xff\xfe"

BACKENDS: dict[str, str] = {
    "express": "express",
    "fastify": "fastify",
    "apollo-graphql": "@apollo/server",
    "express-gateway": "express",
    "fastify-gateway": "fastify",
    "apollo-graphql-gateway": "@apollo/server",
}


def write_tree(root: Path, files: dict[str, str | bytes]) -> None:
    """Write ``{relative_path: content}`` under *root*."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")


def _json(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2) + "\n"


def build_corpus(root: Path) -> Path:
    """Create a small but complete amp-templates style corpus under *root*."""
    templates = root / "templates"

    write_tree(templates / "vite-react" / "base", {
        "package.json": _json({
            "name": "{{ projectName }}",
            "private": True,
            "scripts": {"dev": "vite", "build": "vite build"},
            "dependencies": {"react": "^19.0.0", "react-dom": "^19.0.0"},
            "devDependencies": {"vite": "^6.0.0"},
            "keywords": ["amp"],
        }),
        "README.md": "# {{ projectName }}\n\nBuilt with {{ packageManager }}.\n",
        "index.html": "<title>{{ projectName }}</title>\n",
        "src/App.tsx": textwrap.dedent("""\
            export const App = () => (
              <div style={{ color: "red" }}>{{projectName}} on {{ networkDisplayName }}</div>
            )
            """),
        "src/config.ts": textwrap.dedent("""\
            export const rpcUrl = "{{ rpcUrl }}"
            export const chainId = "{{ chainId }}"
            export const workflow = "${{ github.sha }}"
            """),
        "public/logo.png": PNG_BYTES,
        "node_modules/leftover/index.js": "module.exports = {}\n",
        ".tanstack/cache.json": "{}\n",
    })

    write_tree(templates / "vite-react" / "flight-atom", {
        "src/lib/runtime.ts": "// Arrow Flight runtime for {{ projectName }}\n",
        "package.json.additions": _json({
            "dependencies": {"apache-arrow": "^18.0.0", "@effect-atom/atom-react": "^0.1.0"},
            "keywords": ["arrow-flight"],
        }),
    })

    write_tree(templates / "vite-react" / "ampsync-electricsql", {
        "src/lib/electric.ts": "export const electric = true\n",
        "src/lib/drizzle.ts": "export const drizzle = true\n",
        "package.json.additions": textwrap.dedent("""\
            {
              "dependencies": {
                "pg": "^8.13.0",
                // @if orm=electric
                "@electric-sql/react": "^1.0.0",
                // @endif
                "drizzle-orm": "^0.36.0" // @when orm=drizzle
              }
            }
            """),
        ".env.example.additions": "DATABASE_URL=postgres://localhost:5432/{{ projectName }}\n",
    })

    write_tree(templates / "data-layer" / "amp-sync", {
        "schema/schema.sql": "CREATE TABLE transfers (id TEXT PRIMARY KEY);\n",
        "electric/shape-proxy.ts": "export const shapeProxy = '/v1/shape'\n",
        "drizzle/schema.ts": "export const schema = {}\n",
        "infra/anvil/docker-compose.yml": "services:\n  anvil:\n    image: foundry\n",
        "amp-template.yaml": textwrap.dedent("""\
            rules:
              - match: anvil
                axis: includeAnvil
                equals: "true"
            """),
    })

    write_tree(templates / "data-layer" / "arrow-flight", {
        "src/lib/queries.ts": "export const layer = '{{ dataLayer }}'\n",
        "README.md.additions": "## Arrow Flight\n\nQueries run against {{ networkDisplayName }}.\n",
    })

    write_tree(templates / "amp", {
        "amp.config.ts": 'export default { name: "{{ projectName }}" }\n',
        "datasets/.gitkeep": "",
        "providers/evm.toml": 'url = "{{ rpcUrl }}"\n',
    })

    write_tree(templates / "contracts", {
        "foundry.toml": '[profile.default]\nsrc = "src"\n',
        "remappings.txt": "forge-std/=lib/forge-std/src/\n",
        "src/Counter.sol": "contract Counter {}\n",
        "script/Deploy.s.sol": "// deploys to chain {{ chainId }}\n",
        "out/Counter.sol/Counter.json": "{}\n",
    })

    write_tree(templates / "docker-compose", {
        "docker-compose.amp-sync.yml": "name: {{ projectName }}\nservices:\n  postgres:\n    image: postgres:16\n",
        "docker-compose.arrow-flight.yml": "name: {{ projectName }}\nservices:\n  amp:\n    image: amp\n",
    })

    write_tree(templates / "examples" / "wallet", {
        "src/App.tsx": "export const App = () => <Wallet name=\"{{ projectName }}\" />\n",
        "package.json.additions": _json({"dependencies": {"wagmi": "^2.0.0"}}),
        "amp/amp.config.ts": 'export default { name: "{{ projectName }}-wallet" }\n',
        "amp/datasets/erc20_transfers.sql": "SELECT * FROM erc20_transfers\n",
        "contracts/src/SimpleToken.sol": "contract SimpleToken {}\n",
        "contracts/remappings.txt.additions": "@openzeppelin/=lib/openzeppelin-contracts/\n",
    })

    write_tree(templates / "nextjs", {
        "package.json": _json({
            "name": "{{ projectName }}",
            "scripts": {"dev": "next dev"},
            "dependencies": {"next": "^15.0.0"},
        }),
        "app/page.tsx": "export default function Page() { return <h1>{{ projectName }}</h1> }\n",
        ".gitignore": "node_modules\n.next\n",
        ".next/cache/build.json": "{}\n",
    })

    write_tree(templates / "backend" / "base", {
        "package.json": _json({
            "name": "{{ projectName }}",
            "type": "module",
            "dependencies": {"@edgeandnode/amp": "^0.1.0"},
        }),
        "tsconfig.json": _json({"compilerOptions": {"strict": True}}),
        "src/server.ts": "// base server\n",
        "dist/server.js": "// stale build output\n",
    })

    for backend, dependency in BACKENDS.items():
        write_tree(templates / "backend" / backend, {
            "src/server.ts": f"// {backend} server for {{{{ projectName }}}}\n",
            "package.json.additions": _json({"dependencies": {dependency: "^1.0.0"}}),
        })

    return root


@pytest.fixture
def corpus_root(tmp_path: Path) -> Path:
    """A complete on-disk template corpus."""
    return build_corpus(tmp_path / "corpus")


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def home_dir(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def settings(corpus_root: Path, work_dir: Path, home_dir: Path) -> Settings:
    """Settings isolated from the real environment."""
    return Settings(
        templates_dir=corpus_root,
        user_agent="",
        home_dir=home_dir,
        cwd=work_dir,
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeRunner:
    """Records commands instead of running them.

    ``failures`` maps a command's first two words (``"git commit"``) or its
    program (``"pnpm"``) to the exit code to report.
    """

    def __init__(self, failures: Optional[dict[str, int]] = None) -> None:
        self.failures = failures or {}
        self.calls: list[tuple[list[str], Path, float]] = []

    async def run(self, cmd: list[str], cwd: Path, timeout: float) -> CommandResult:
        self.calls.append((list(cmd), cwd, timeout))
        for key in (" ".join(cmd[:2]), cmd[0]):
            if key in self.failures:
                return CommandResult(self.failures[key], "", f"{key} failed")
        return CommandResult(0, "", "")

    @property
    def commands(self) -> list[list[str]]:
        return [cmd for cmd, _, _ in self.calls]


class FakePrompter:
    """Answers prompts from a script; records every question asked.

    ``answers`` maps a substring of the prompt message to the answer.
    Unmatched prompts take their default.  An answer of ``KeyboardInterrupt``
    raises ``OperationCancelled`` as the real prompter does.
    """

    def __init__(self, answers: Optional[dict[str, Any]] = None) -> None:
        self.answers = answers or {}
        self.asked: list[str] = []

    def _answer(self, message: str, default: Optional[str]) -> str:
        from create_amp.errors import OperationCancelled

        self.asked.append(message)
        for fragment, answer in self.answers.items():
            if fragment in message:
                if answer is KeyboardInterrupt:
                    raise OperationCancelled("Operation cancelled")
                return answer
        if default is None:
            raise AssertionError(f"No scripted answer for prompt: {message}")
        return default

    def text(
        self,
        message: str,
        default: Optional[str] = None,
        validate: Optional[Callable[[str], Optional[str]]] = None,
    ) -> str:
        answer = self._answer(message, default)
        if validate is not None:
            error = validate(answer)
            assert error is None, error
        return answer

    def select(
        self, message: str, choices: Sequence[Choice], default: Optional[str] = None
    ) -> str:
        return self._answer(message, default)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def make_runner() -> type[FakeRunner]:
    """The ``FakeRunner`` class, for tests that script failures."""
    return FakeRunner


@pytest.fixture
def fake_prompter() -> FakePrompter:
    return FakePrompter()


@pytest.fixture
def make_prompter() -> type[FakePrompter]:
    """The ``FakePrompter`` class, for tests that script answers."""
    return FakePrompter


# ---------------------------------------------------------------------------
# Configurations
# ---------------------------------------------------------------------------


@pytest.fixture
def make_config(work_dir: Path) -> Callable[..., ProjectConfig]:
    """Factory for valid configurations; keyword arguments override fields.

    The default is a Vite + Arrow Flight frontend that skips git and install.
    """

    def _make(**overrides: Any) -> ProjectConfig:
        fields: dict[str, Any] = {
            "name": "my-app",
            "path": work_dir / overrides.get("name", "my-app").rsplit("/", 1)[-1],
            "project_type": "frontend",
            "framework": "vite",
            "data_layer": "arrow-flight",
            "example": "blank",
            "local_setup": "anvil",
            "skip_install": True,
            "skip_git": True,
        }
        fields.update(overrides)
        return ProjectConfig(**fields)

    return _make
