"""Project name and target path validation.

Names must work both as a directory name and as a package manifest
``name``; the rules follow the npm registry's.  Paths are resolved purely
lexically against explicitly supplied home and working directories.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import NamedTuple, Optional

from create_amp.errors import ValidationError


# ---------------------------------------------------------------------------
# Project name validation
# ---------------------------------------------------------------------------

MAX_NAME_LENGTH = 214

NODE_BUILTIN_MODULES: frozenset[str] = frozenset({
    "assert", "async_hooks", "buffer", "child_process", "cluster", "console",
    "constants", "crypto", "dgram", "diagnostics_channel", "dns", "domain",
    "events", "fs", "http", "http2", "https", "inspector", "module", "net",
    "os", "path", "perf_hooks", "process", "punycode", "querystring",
    "readline", "repl", "stream", "string_decoder", "sys", "timers", "tls",
    "trace_events", "tty", "url", "util", "v8", "vm", "wasi",
    "worker_threads", "zlib",
})

BLOCKED_NAMES: frozenset[str] = frozenset({"node_modules", "favicon.ico"})

# Characters encodeURIComponent leaves untouched.
_URL_FRIENDLY = re.compile(r"^[A-Za-z0-9\-_.!~*'()]+$")
_SCOPED = re.compile(r"^@([^/]+)/([^/]+)$")
_SPECIAL_CHARS = re.compile(r"[~'!()*]")


def validate_project_name(name: str) -> str:
    """Validate *name* as both a directory name and a package manifest name.

    Returns the name unchanged when valid.

    Raises:
        ValidationError: naming the first violated rule in ``rule``.
    """
    def fail(rule: str, reason: str) -> ValidationError:
        return ValidationError(f"Project name {reason}", field="name", rule=rule)

    if not isinstance(name, str) or not name:
        raise fail("non-empty", "must be a non-empty string")
    if len(name) > MAX_NAME_LENGTH:
        raise fail("max-length", f"must not contain more than {MAX_NAME_LENGTH} characters")
    if name.strip() != name:
        raise fail("whitespace", "must not contain leading or trailing whitespace")
    if name.startswith("."):
        raise fail("leading-period", "must not start with a period")
    if name.startswith("_"):
        raise fail("leading-underscore", "must not start with an underscore")
    if name.lower() != name:
        raise fail("capital-letters", "must not contain capital letters")
    if _SPECIAL_CHARS.search(name.split("/")[-1]):
        raise fail("special-characters", "must not contain the special characters ~'!()*")
    if name in NODE_BUILTIN_MODULES:
        raise fail("builtin-module", f"'{name}' must not be a Node.js built-in module name")
    if name in BLOCKED_NAMES:
        raise fail("blocked-name", f"'{name}' is blocked from use")

    if not _URL_FRIENDLY.match(name):
        scoped = _SCOPED.match(name)
        if not scoped or not all(_URL_FRIENDLY.match(part) for part in scoped.groups()):
            raise fail("url-friendly", "must only contain URL-friendly characters")
        # The package part becomes the directory name.
        package = scoped.group(2)
        if package.startswith("."):
            raise fail("leading-period", "must not have a package part starting with a period")
        if package.startswith("_"):
            raise fail("leading-underscore", "must not have a package part starting with an underscore")
    return name


class PackageNameCheck(NamedTuple):
    is_valid: bool
    normalized_name: str
    error_message: Optional[str] = None


def _normalize_segment(segment: str) -> str:
    normalized = re.sub(r"[^a-z0-9._~-]+", "-", segment.lower())
    normalized = re.sub(r"-+", "-", normalized)
    return normalized.strip("-._~")


def validate_package_name(name: str) -> PackageNameCheck:
    """Lenient package-name check that also proposes a normalized name.

    Surrounding whitespace is trimmed before validation; a name that only
    differs from a valid one by that whitespace is accepted.
    """
    trimmed = name.strip()
    if not trimmed:
        return PackageNameCheck(False, "", "Package name cannot be empty")
    if len(trimmed) > MAX_NAME_LENGTH:
        return PackageNameCheck(
            False, trimmed[:MAX_NAME_LENGTH],
            f"Package name cannot exceed {MAX_NAME_LENGTH} characters",
        )

    pattern = r"^(?:@[a-z0-9~-][a-z0-9._~-]*/)?[a-z0-9~-][a-z0-9._~-]*$"
    if re.match(pattern, trimmed):
        return PackageNameCheck(True, trimmed)

    if trimmed.startswith("@") and "/" in trimmed:
        scope, _, rest = trimmed[1:].partition("/")
        scope = _normalize_segment(scope) or "scope"
        package = _normalize_segment(rest.replace("/", "-")) or "package"
        normalized = f"@{scope}/{package}"
    else:
        normalized = _normalize_segment(trimmed) or "package"
    return PackageNameCheck(
        False,
        normalized,
        f"Invalid package name '{trimmed}'. Did you mean '{normalized}'?",
    )


def suggest_project_name(name: str) -> Optional[str]:
    """A valid project name close to *name*, or ``None`` if there is none."""
    candidate = validate_package_name(name).normalized_name
    if not candidate or candidate == name:
        return None
    try:
        return validate_project_name(candidate)
    except ValidationError:
        return None


# ---------------------------------------------------------------------------
# Path resolution
# ---------------------------------------------------------------------------

def expand_and_resolve_path(raw: str, home: Path, cwd: Path) -> Path:
    """Expand a leading ``~`` and resolve *raw* to an absolute, normalized path.

    Only a leading ``~`` (alone or followed by a separator) is special; the
    filesystem is never consulted, so symlinks are left as written.
    """
    if raw == "~":
        candidate = Path(home)
    elif raw.startswith("~/") or raw.startswith("~" + os.sep):
        candidate = Path(home) / raw[2:]
    else:
        candidate = Path(raw)
        if not candidate.is_absolute():
            candidate = Path(cwd) / candidate
    return Path(os.path.normpath(candidate))


def default_directory_name(name: str) -> str:
    """Directory name for a project: the package part of ``@scope/pkg``."""
    return name.rsplit("/", 1)[-1]

