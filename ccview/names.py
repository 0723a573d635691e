"""Project directory names, real paths and URL-safe identifiers.

Claude Code stores each project under a directory named after its working
directory with every path separator turned into a dash:

    /Users/me/work/app   ->  -Users-me-work-app

The encoding is lossy. A dash may be a separator or a literal character of a
directory name, so decoding needs the filesystem to tell the two apart.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Callable
from urllib.parse import quote, unquote

logger = logging.getLogger("ccview")

SEPARATOR_MARKER = "-"

_VERSION_SEGMENT = re.compile(r"^v?\d+$")
_HOSTILE_CHARS = re.compile(r'[/\\:*?"<>|]')
_NON_URL_SAFE = re.compile(r"[^a-zA-Z0-9\-_.~]")
# Characters left alone by JavaScript's encodeURIComponent
_URL_SAFE_EXTRA = "-_.!~*'()"


def _strict_unquote(value: str) -> str:
    return unquote(value, errors="strict")


def decode_project_path(
    internal_id: str,
    exists: Callable[[str], bool] = os.path.exists,
) -> str:
    """Decode a project directory name back to a filesystem path.

    Examples:
        '-Users-me-work-app'      -> '/Users/me/work/app'
        '-home-user-my-app-v2'    -> '/home/user/my-app-v2'  (if it exists)

    When the naive decode does not exist on disk and the name ends in a
    version-like segment (``v2``, ``2024``), the trailing segments are glued
    back together with dashes, trying split points from right to left. The
    first candidate that exists wins; otherwise the naive decode is returned.
    """
    stripped = internal_id[1:] if internal_id.startswith(SEPARATOR_MARKER) else internal_id
    if not stripped:
        return "/"

    try:
        decoded = "/" + _strict_unquote(stripped.replace("-", "/"))
    except UnicodeDecodeError:
        logger.warning(f"Malformed encoding in project name {internal_id!r}")
        return "/" + stripped.replace("-", "/")

    if exists(decoded):
        return decoded

    segments = stripped.split("-")
    if len(segments) < 2 or not _VERSION_SEGMENT.match(segments[-1]):
        return decoded

    for i in range(len(segments) - 2, -1, -1):
        head = "/".join(segments[:i])
        tail = "-".join(segments[i:])
        try:
            candidate = _strict_unquote(f"/{head}/{tail}" if head else f"/{tail}")
        except UnicodeDecodeError:
            continue
        if exists(candidate):
            return candidate

    return decoded


def encode_project_path(path: str) -> str:
    """Encode a filesystem path into a project directory name."""
    encoded = quote(path.lstrip("/"), safe=_URL_SAFE_EXTRA)
    return SEPARATOR_MARKER + encoded.replace("%2F", "-")


def get_short_name(path: str) -> str:
    """Extract last meaningful component from a path."""
    parts = path.rstrip("/").rsplit("/", 1)
    return parts[-1] if parts[-1] else "/"


def to_url_safe(name: str) -> str:
    """Create a URL-safe identifier from a project or session name.

    Distinct names may map to the same identifier; callers must not rely on
    uniqueness.
    """
    try:
        return quote(_HOSTILE_CHARS.sub("-", name), safe=_URL_SAFE_EXTRA)
    except UnicodeEncodeError:
        return _NON_URL_SAFE.sub("-", name)


def from_url_safe(value: str) -> str:
    """Decode a URL-safe identifier, returning it unchanged if malformed."""
    try:
        return _strict_unquote(value)
    except UnicodeDecodeError:
        logger.warning(f"Failed to decode URL name: {value!r}")
        return value


def is_safe_component(name: str) -> bool:
    """Check that a name is a single, non-traversing path component."""
    if not name or name in (".", ".."):
        return False
    return not any(ch in name for ch in ("/", "\\", "\x00"))
