"""Placeholder substitution for template file contents.

Placeholders are ``{{ key }}`` with optional interior whitespace.  Keys that
are not in the supplied mapping are left exactly as written, so template
syntax belonging to the generated app (JSX ``style={{ ... }}`` objects,
Handlebars, GitHub Actions expressions) survives untouched.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Mapping

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

# Sniff window for NUL bytes / UTF-8 validity.
SNIFF_BYTES = 8192

BINARY_EXTENSIONS: frozenset[str] = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".ico", ".bmp", ".tiff", ".avif",
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
    ".zip", ".gz", ".tgz", ".tar", ".bz2", ".xz", ".7z",
    ".pdf", ".mp3", ".mp4", ".wav", ".ogg", ".webm", ".mov",
    ".wasm", ".parquet", ".arrow", ".sqlite", ".db", ".bin", ".lockb",
})


def substitute(text: str, values: Mapping[str, str]) -> str:
    """Replace every recognised ``{{ key }}`` in *text* with ``values[key]``."""

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in values:
            return values[key]
        return match.group(0)

    return PLACEHOLDER_RE.sub(_replace, text)


def find_placeholders(text: str, keys: Mapping[str, str] | None = None) -> set[str]:
    """Return the placeholder keys present in *text*.

    When *keys* is given only keys in that mapping are reported.
    """
    found = {m.group(1) for m in PLACEHOLDER_RE.finditer(text)}
    if keys is not None:
        found &= set(keys)
    return found


def is_binary(path: Path | str, data: bytes) -> bool:
    """Decide whether a template file must be copied byte-for-byte.

    Known binary extensions short-circuit; otherwise the leading bytes are
    sniffed for NUL bytes and UTF-8 validity.
    """
    if Path(path).suffix.lower() in BINARY_EXTENSIONS:
        return True
    head = data[:SNIFF_BYTES]
    if b"\x00" in head:
        return True
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as exc:
        # A multi-byte sequence cut off by the sniff window is still text.
        truncated = len(data) > SNIFF_BYTES and exc.start >= len(head) - 3
        if not truncated:
            return True
    return False
