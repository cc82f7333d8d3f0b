"""Conditional inclusion: whole-file skips and addition-fragment merges.

Two independent mechanisms decide what a layer contributes:

1. **Skip rules.**  A file is dropped when a path segment is in the layer's
   skip set, or when its relative path contains a rule's ``match`` string
   while the configuration does not select the rule's axis value.  The
   built-in rules tie ``electric`` and ``drizzle`` paths to the chosen ORM;
   a layer may declare more in an ``amp-template.yaml`` manifest.
2. **Addition fragments.**  ``<target>.additions`` side-cars are filtered by
   ``@if``/``@endif`` and ``@when`` guard markers, substituted, and merged
   into ``<target>``: JSON targets structurally, anything else by appending.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Mapping, Optional, Sequence, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from create_amp.errors import FragmentSyntaxError, MergeConflictError, ValidationError

from .substitution import substitute

ADDITIONS_SUFFIX = ".additions"
MANIFEST_NAME = "amp-template.yaml"

# Map-valued manifest keys written with sorted keys.
DEPENDENCY_KEYS: frozenset[str] = frozenset({
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
})


# ---------------------------------------------------------------------------
# Whole-file skip rules
# ---------------------------------------------------------------------------

class InclusionRule(BaseModel):
    """Files whose path contains ``match`` require ``axis`` to be one of ``values``."""

    model_config = ConfigDict(frozen=True)

    match: str = Field(..., min_length=1)
    axis: str
    values: tuple[str, ...]


DEFAULT_RULES: tuple[InclusionRule, ...] = (
    InclusionRule(match="electric", axis="orm", values=("electric",)),
    InclusionRule(match="drizzle", axis="orm", values=("drizzle",)),
)


class _RuleSpec(BaseModel):
    match: str = Field(..., min_length=1)
    axis: str
    equals: Union[str, list[str]]


class _LayerManifest(BaseModel):
    rules: list[_RuleSpec] = Field(default_factory=list)


def load_layer_rules(layer_root: Path) -> list[InclusionRule]:
    """Read extra inclusion rules from ``<layer_root>/amp-template.yaml``.

    Returns an empty list when the layer has no manifest.
    """
    manifest_path = layer_root / MANIFEST_NAME
    if not manifest_path.is_file():
        return []
    try:
        raw = yaml.safe_load(manifest_path.read_text(encoding="utf-8")) or {}
        manifest = _LayerManifest.model_validate(raw)
    except (yaml.YAMLError, PydanticValidationError) as exc:
        raise ValidationError(
            f"Invalid template manifest {manifest_path}: {exc}",
            field=MANIFEST_NAME,
            rule="manifest",
        ) from exc

    rules: list[InclusionRule] = []
    for spec in manifest.rules:
        equals = [spec.equals] if isinstance(spec.equals, str) else spec.equals
        rules.append(InclusionRule(match=spec.match, axis=spec.axis, values=tuple(equals)))
    return rules


def should_skip(
    rel_path: str,
    values: Mapping[str, str],
    rules: Sequence[InclusionRule] = DEFAULT_RULES,
    skip_names: frozenset[str] = frozenset(),
) -> bool:
    """Return ``True`` when *rel_path* must not be copied for this configuration.

    Args:
        rel_path: POSIX path relative to the layer root.
        values: Placeholder values of the current configuration.
        rules: Path-substring rules to evaluate.
        skip_names: Names excluded at any depth (VCS metadata, build output).
    """
    parts = PurePosixPath(rel_path).parts
    if any(part in skip_names for part in parts):
        return True
    if rel_path == MANIFEST_NAME:
        return True

    for rule in rules:
        if rule.match not in rel_path:
            continue
        if rule.axis not in values:
            raise ValidationError(
                f"Inclusion rule for '{rule.match}' names unknown axis '{rule.axis}'",
                field=MANIFEST_NAME,
                rule="unknown-axis",
            )
        if values[rule.axis] not in rule.values:
            return True
    return False


# ---------------------------------------------------------------------------
# Addition fragments
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FileAdditionFragment:
    """Side-car content to merge into ``target`` once all layers are copied."""

    target: str
    source: Path
    layer: int
    content: str

    @property
    def is_structured(self) -> bool:
        return self.target.endswith(".json")


def fragment_target(rel_path: str) -> Optional[str]:
    """Return the target path for a side-car path, or ``None`` for ordinary files."""
    if rel_path.endswith(ADDITIONS_SUFFIX) and len(rel_path) > len(ADDITIONS_SUFFIX):
        target = rel_path[: -len(ADDITIONS_SUFFIX)]
        if not target.endswith("/"):
            return target
    return None


_COMMENT_OPEN = r"(?:(?://|#|<!--|/\*|\{/\*)\s*)?"
_COMMENT_CLOSE = r"(?:\*/\}?|-->)?"
_GUARD = r"(?P<axis>[A-Za-z_][A-Za-z0-9_]*)\s*(?P<op>!=|=)\s*(?P<values>[\w.|-]+)"

_BLOCK_IF_RE = re.compile(rf"^\s*{_COMMENT_OPEN}@if\s+{_GUARD}\s*{_COMMENT_CLOSE}\s*$")
_BLOCK_END_RE = re.compile(rf"^\s*{_COMMENT_OPEN}@endif\s*{_COMMENT_CLOSE}\s*$")
_INLINE_RE = re.compile(rf"^(?P<content>.*?)\s*(?://|#|/\*)\s*@when\s+{_GUARD}\s*(?:\*/)?\s*$")


def _guard_holds(
    match: re.Match[str], values: Mapping[str, str], source: str, line_number: int
) -> bool:
    axis = match.group("axis")
    if axis not in values:
        raise FragmentSyntaxError(source, line_number, f"unknown axis '{axis}'")
    allowed = set(match.group("values").split("|"))
    holds = values[axis] in allowed
    return holds if match.group("op") == "=" else not holds


def filter_guarded_lines(text: str, values: Mapping[str, str], source: str = "<fragment>") -> str:
    """Drop lines whose guard markers do not match the configuration.

    Block guards sit on their own line and may nest::

        // @if orm=electric
        ...
        // @endif

    Inline guards keep a single line, with the marker removed::

        "pg": "^8.13.0",
        "@electric-sql/react": "^1.0.0", // @when orm=electric
        "drizzle-orm": "^0.36.0" // @when orm=drizzle

    JSON fragments may leave a comma before a closing bracket once a guarded
    line is dropped; ``strip_trailing_commas`` removes it before parsing.

    ``|`` separates alternatives (``@if orm=electric|drizzle``) and ``!=``
    negates.

    Raises:
        FragmentSyntaxError: on unknown axes or unbalanced markers.
    """
    kept: list[str] = []
    stack: list[tuple[bool, int]] = []

    for line_number, line in enumerate(text.splitlines(keepends=True), start=1):
        stripped = line.rstrip("\r\n")
        active = all(state for state, _ in stack)

        opened = _BLOCK_IF_RE.match(stripped)
        if opened:
            stack.append((_guard_holds(opened, values, source, line_number), line_number))
            continue
        if _BLOCK_END_RE.match(stripped):
            if not stack:
                raise FragmentSyntaxError(source, line_number, "@endif without matching @if")
            stack.pop()
            continue
        if not active:
            continue

        inline = _INLINE_RE.match(stripped)
        if inline:
            if _guard_holds(inline, values, source, line_number):
                ending = line[len(stripped):]
                kept.append(inline.group("content") + ending)
            continue
        kept.append(line)

    if stack:
        raise FragmentSyntaxError(source, stack[-1][1], "@if without matching @endif")
    return "".join(kept)


_NEXT_TOKEN_RE = re.compile(r"\s*(\S?)")


def strip_trailing_commas(text: str) -> str:
    """Remove commas that directly precede ``}`` or ``]`` outside JSON strings.

    Whitespace and newlines are kept, so parse error positions do not move.
    """
    out: list[str] = []
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == ",":
            if _NEXT_TOKEN_RE.match(text, index + 1).group(1) in ("}", "]"):
                continue
        out.append(char)
    return "".join(out)


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------

def _kind(value: Any) -> str:
    if isinstance(value, dict):
        return "an object"
    if isinstance(value, list):
        return "an array"
    return "a scalar"


def deep_merge(
    target: dict[str, Any],
    source: dict[str, Any],
    *,
    target_name: str = "<target>",
    _path: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Return *target* with *source* merged in; neither input is modified.

    * objects merge key by key, recursively;
    * arrays concatenate, skipping items the target already holds, so
      applying the same fragment twice changes nothing;
    * scalars are last-applied-wins;
    * an object or array meeting a value of a different shape raises
      ``MergeConflictError`` naming the dotted key path.
    """
    merged = dict(target)
    for key, value in source.items():
        path = _path + (str(key),)
        present = key in merged
        existing = merged.get(key)

        if isinstance(value, dict):
            if not present:
                merged[key] = deep_merge({}, value, target_name=target_name, _path=path)
            elif isinstance(existing, dict):
                merged[key] = deep_merge(existing, value, target_name=target_name, _path=path)
            else:
                raise MergeConflictError(
                    target_name, ".".join(path), f"cannot merge an object into {_kind(existing)}"
                )
        elif isinstance(value, list):
            if not present:
                merged[key] = list(value)
            elif isinstance(existing, list):
                merged[key] = existing + [item for item in value if item not in existing]
            else:
                raise MergeConflictError(
                    target_name, ".".join(path), f"cannot merge an array into {_kind(existing)}"
                )
        else:
            if present and isinstance(existing, (dict, list)):
                raise MergeConflictError(
                    target_name, ".".join(path), f"cannot replace {_kind(existing)} with a scalar"
                )
            merged[key] = value
    return merged


def _sorted_dependencies(document: dict[str, Any]) -> dict[str, Any]:
    result = dict(document)
    for key in DEPENDENCY_KEYS:
        if isinstance(result.get(key), dict):
            result[key] = dict(sorted(result[key].items()))
    return result


def _load_json_object(text: str, label: str, *, fragment: bool) -> dict[str, Any]:
    try:
        document = json.loads(text) if text.strip() else {}
    except json.JSONDecodeError as exc:
        if fragment:
            raise FragmentSyntaxError(label, exc.lineno, f"invalid JSON: {exc.msg}") from exc
        raise MergeConflictError(label, "<root>", f"target is not valid JSON: {exc.msg}") from exc
    if not isinstance(document, dict):
        raise MergeConflictError(label, "<root>", f"expected a JSON object, found {_kind(document)}")
    return document


def apply_fragment(
    existing: Optional[str],
    fragment: FileAdditionFragment,
    values: Mapping[str, str],
) -> str:
    """Merge *fragment* into the *existing* target text and return the result.

    ``existing`` is ``None`` when no layer produced the target file.
    """
    source = str(fragment.source)
    text = substitute(filter_guarded_lines(fragment.content, values, source), values)

    if fragment.is_structured:
        addition = _load_json_object(strip_trailing_commas(text), source, fragment=True)
        base = _load_json_object(existing, fragment.target, fragment=False) if existing else {}
        merged = deep_merge(base, addition, target_name=fragment.target)
        return json.dumps(_sorted_dependencies(merged), indent=2, ensure_ascii=False) + "\n"

    if existing is None:
        return text
    return existing + "\n" + text
