"""Tolerant readers for Claude Code JSONL conversation files.

Every line of a conversation file is an independent JSON record. A line that
fails to parse is dropped and the scan continues; a file that cannot be read
contributes nothing. Files above the configured size ceiling are treated as
absent by the listing scans.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import NotFoundError, OversizeError
from .models import ConversationDetail, ConversationSummary, FileScan
from .names import get_short_name, to_url_safe

logger = logging.getLogger("ccview")

SESSION_SUFFIX = ".jsonl"
SUMMARY_TYPE = "summary"


# ═══════════════════════════════════════════════════════════════════════════════
# Files and lines
# ═══════════════════════════════════════════════════════════════════════════════


def is_valid_session_file(filename: str) -> bool:
    """Check if a filename is a valid session JSONL file."""
    return (
        filename.endswith(SESSION_SUFFIX)
        and not filename.startswith("._")
        and not filename.startswith(".")
    )


def list_session_files(project_dir: Path) -> list[Path]:
    """Return the conversation files of a project directory, sorted by name."""
    sessions: list[Path] = []
    try:
        for entry in os.scandir(project_dir):
            if entry.is_file() and is_valid_session_file(entry.name):
                sessions.append(Path(entry.path))
    except (OSError, PermissionError) as e:
        logger.warning(f"Cannot scan project directory {project_dir}: {e}")
        return []
    sessions.sort(key=lambda p: p.name)
    return sessions


def _stat_within_limit(path: Path, max_bytes: int) -> os.stat_result | None:
    """Stat a file, returning None if it is unreadable or above the ceiling."""
    try:
        stat = path.stat()
    except OSError as e:
        logger.warning(f"Cannot stat session file {path}: {e}")
        return None
    if stat.st_size > max_bytes:
        logger.warning(f"File {path.name} exceeds size limit ({stat.st_size} bytes), skipping")
        return None
    return stat


def iter_lines(path: Path) -> Iterator[tuple[int, str]]:
    """Stream the non-blank lines of a file with 1-based line numbers.

    Line numbers count non-blank lines only. Raises OSError if the file
    cannot be opened.
    """
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        line_number = 0
        for raw in f:
            line = raw.strip()
            # Remove BOM if present
            if line.startswith("\ufeff"):
                line = line[1:].lstrip()
            if not line:
                continue
            line_number += 1
            yield line_number, line


MALFORMED = object()


def parse_value(line: str) -> Any:
    """Decode one line as any JSON value, or MALFORMED if it does not parse."""
    try:
        return json.loads(line, strict=False)
    except json.JSONDecodeError:
        return MALFORMED


def parse_record(line: str) -> dict[str, Any] | None:
    """Parse one line into a record, or None if it is not a JSON object."""
    obj = parse_value(line)
    return obj if isinstance(obj, dict) else None


def iter_records(path: Path) -> Iterator[dict[str, Any]]:
    for _, line in iter_lines(path):
        record = parse_record(line)
        if record is not None:
            yield record


def is_summary(record: dict[str, Any]) -> bool:
    return record.get("type") == SUMMARY_TYPE


def parse_timestamp(ts: Any) -> datetime | None:
    """Parse timestamp from various formats found in JSONL."""
    parsed = None
    if isinstance(ts, str) and ts:
        try:
            parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
        except ValueError:
            return None
    elif isinstance(ts, (int, float)) and not isinstance(ts, bool) and ts > 0:
        # Millisecond epochs are what JavaScript writers produce
        seconds = ts / 1000 if ts > 1e11 else ts
        try:
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OSError, ValueError, OverflowError):
            return None
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _mtime(stat: os.stat_result) -> datetime:
    return datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════════
# Scans
# ═══════════════════════════════════════════════════════════════════════════════


def scan_session_metadata(path: Path, max_bytes: int) -> ConversationSummary | None:
    """Extract the listing entry for one conversation file.

    The summary comes from the first summary record; the session fields come
    from the first non-summary record. Both may sit anywhere in the file, so
    the scan runs until both are found.
    """
    stat = _stat_within_limit(path, max_bytes)
    if stat is None:
        return None

    summary: str | None = None
    session_record: dict[str, Any] | None = None
    try:
        for record in iter_records(path):
            if is_summary(record):
                if summary is None and record.get("summary"):
                    summary = str(record["summary"])
            elif session_record is None:
                session_record = record
            if summary is not None and session_record is not None:
                break
    except OSError as e:
        logger.warning(f"Cannot read session file {path}: {e}")
        return None

    session_id = path.stem
    timestamp = _mtime(stat)
    cwd = None
    git_branch = None
    if session_record is not None:
        session_id = str(session_record.get("sessionId") or session_id)
        timestamp = parse_timestamp(session_record.get("timestamp")) or timestamp
        cwd = session_record.get("cwd") or None
        git_branch = session_record.get("gitBranch") or None

    return ConversationSummary(
        filename=path.name,
        session_id=session_id,
        url_safe_id=to_url_safe(session_id),
        timestamp=timestamp,
        working_directory=cwd,
        git_branch=git_branch,
        short_summary=summary,
        size_bytes=stat.st_size,
    )


def scan_file_stats(path: Path, max_bytes: int) -> FileScan | None:
    """Count the messages of one file and find its latest activity."""
    stat = _stat_within_limit(path, max_bytes)
    if stat is None:
        return None

    scan = FileScan(latest_activity=_mtime(stat))
    try:
        for record in iter_records(path):
            # Summary entries are not messages
            if is_summary(record):
                continue
            ts = parse_timestamp(record.get("timestamp"))
            if ts is not None and ts > scan.latest_activity:
                scan.latest_activity = ts
            scan.total += 1
            line_type = record.get("type")
            if line_type == "assistant":
                scan.assistant += 1
            elif line_type == "user":
                scan.user += 1
    except OSError as e:
        logger.warning(f"Cannot read session file {path}: {e}")
        return None
    return scan


def read_conversation(path: Path, max_bytes: int) -> ConversationDetail:
    """Parse every record of a conversation file, dropping malformed lines."""
    try:
        stat = path.stat()
    except FileNotFoundError:
        raise NotFoundError("Conversation not found")
    except OSError as e:
        logger.error(f"Cannot stat conversation {path}: {e}")
        raise NotFoundError("Conversation not found")
    if not path.is_file():
        raise NotFoundError("Conversation not found")
    if stat.st_size > max_bytes:
        raise OversizeError("File too large")

    messages: list[Any] = []
    try:
        for line_number, line in iter_lines(path):
            record = parse_value(line)
            if record is MALFORMED:
                logger.debug(f"Skipping malformed line {line_number} in {path.name}")
                continue
            messages.append(record)
    except OSError as e:
        logger.error(f"Error reading conversation {path}: {e}")
        raise NotFoundError("Conversation not found")

    return ConversationDetail(filename=path.name, messages=messages)


def find_project_cwd(
    project_dir: Path,
    max_bytes: int,
    max_files: int = 3,
    max_lines: int = 5,
) -> tuple[str, str] | None:
    """Look for the real working directory recorded in a project's files.

    Returns ``(cwd, project_name)`` from the first non-summary record with a
    ``cwd`` among the first lines of the first few files, or None.
    """
    for path in list_session_files(project_dir)[:max_files]:
        if _stat_within_limit(path, max_bytes) is None:
            continue
        try:
            for line_number, line in iter_lines(path):
                if line_number > max_lines:
                    break
                record = parse_record(line)
                if record is None or is_summary(record):
                    continue
                cwd = record.get("cwd")
                if isinstance(cwd, str) and cwd:
                    return cwd, get_short_name(cwd)
        except OSError as e:
            logger.warning(f"Cannot read session file {path}: {e}")
            continue
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# Display text
# ═══════════════════════════════════════════════════════════════════════════════


def _to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


def extract_display_text(record: dict[str, Any]) -> str:
    """Extract renderable text from a record's message content."""
    message = record.get("message")
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = []
            for item in content:
                text = None
                if isinstance(item, dict):
                    text = item.get("text") or item.get("thinking")
                parts.append(text if isinstance(text, str) else _to_json(item))
            return " ".join(parts)
    return _to_json(record)


def truncate_text(text: str, max_len: int = 200) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."
