"""Exception hierarchy for create-amp.

Every failure the generator can report derives from ``CreateAmpError`` so the
CLI can map them to exit codes in one place.  ``ExternalToolError`` is the
only one that never aborts a run: the generator downgrades it to a warning.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class CreateAmpError(Exception):
    """Base class for all create-amp failures."""


class ValidationError(CreateAmpError):
    """Raised when operator input or the resolved configuration is invalid.

    Attributes:
        field: The configuration field at fault (``"name"``, ``"path"``, ...).
        rule: Short identifier of the violated rule (``"max-length"``, ...).
    """

    def __init__(self, message: str, field: str = "", rule: str = "") -> None:
        self.field = field
        self.rule = rule
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, exc: Any) -> "ValidationError":
        """Convert a pydantic ``ValidationError`` into a create-amp one.

        Only the first reported error is kept; it names the offending field.
        """
        errors = exc.errors()
        if not errors:
            return cls(str(exc))
        first = errors[0]
        loc = ".".join(str(part) for part in first.get("loc", ()))
        message = str(first.get("msg", "invalid value"))
        # pydantic prefixes messages raised from validators
        message = message.removeprefix("Value error, ")
        return cls(message, field=loc, rule=str(first.get("type", "")))


class OperationCancelled(CreateAmpError):
    """Raised when the operator aborts an interactive prompt."""


class TemplateNotFoundError(CreateAmpError):
    """Raised when a selected template directory is missing from the corpus."""

    def __init__(self, key: str, path: Path | str) -> None:
        self.key = key
        self.path = Path(path)
        super().__init__(f"Template '{key}' not found at {self.path}")


class CorpusDownloadError(CreateAmpError):
    """Raised when the remote template archive cannot be fetched or read."""

    def __init__(self, message: str, url: str = "") -> None:
        self.url = url
        super().__init__(message)


class MaterializationError(CreateAmpError):
    """Raised when reading or writing a file during generation fails."""

    def __init__(self, path: Path | str, cause: BaseException) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Failed to write {self.path}: {cause}")


class MergeConflictError(CreateAmpError):
    """Raised when an addition fragment cannot be merged into its target."""

    def __init__(self, target: str, key_path: str, message: str) -> None:
        self.target = target
        self.key_path = key_path
        super().__init__(f"Cannot merge into {target} at '{key_path}': {message}")


class FragmentSyntaxError(CreateAmpError):
    """Raised when guard markers inside an addition fragment are malformed."""

    def __init__(self, source: str, line_number: int, message: str) -> None:
        self.source = source
        self.line_number = line_number
        super().__init__(f"{source}:{line_number}: {message}")


class ExternalToolError(CreateAmpError):
    """Raised when git or the package manager exits unsuccessfully."""

    def __init__(self, command: str, returncode: int, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f"\n{stderr}" if stderr else ""
        super().__init__(f"Command failed (exit {returncode}): {command}{detail}")
