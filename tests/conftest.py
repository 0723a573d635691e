"""Shared fixtures: temporary Claude projects trees with JSONL conversations."""

import json
import os
from pathlib import Path

import pytest


def write_jsonl(path: Path, records, raw_lines=()):
    """Write records as JSONL, followed by any raw (possibly malformed) lines."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [json.dumps(r) for r in records]
    lines.extend(raw_lines)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def set_mtime(path: Path, epoch_seconds: float) -> None:
    os.utime(path, (epoch_seconds, epoch_seconds))


@pytest.fixture
def projects_dir(tmp_path):
    """Create a projects directory with two projects.

    -Users-test-webapp: cwd recorded in its files, two conversations
    -Users-test-notes:  no cwd anywhere, one conversation
    """
    root = tmp_path / "projects"

    webapp = root / "-Users-test-webapp"
    write_jsonl(webapp / "a.jsonl", [
        {"type": "summary", "summary": "Fix login bug"},
        {
            "type": "user",
            "sessionId": "session-a",
            "timestamp": "2024-01-01T10:00:00Z",
            "cwd": "/Users/test/webapp",
            "gitBranch": "main",
            "message": {"role": "user", "content": "Hello World, the login is broken"},
        },
        {
            "type": "assistant",
            "sessionId": "session-a",
            "timestamp": "2024-01-01T10:00:05Z",
            "message": {
                "role": "assistant",
                "content": [{"type": "text", "text": "Let me look at the login form."}],
            },
        },
    ])
    write_jsonl(webapp / "b.jsonl", [
        {
            "type": "user",
            "sessionId": "session-b",
            "timestamp": "2024-03-01T09:00:00Z",
            "cwd": "/Users/test/webapp",
            "message": {"role": "user", "content": "Add a dark theme"},
        },
    ])

    notes = root / "-Users-test-notes"
    write_jsonl(notes / "c.jsonl", [
        {
            "type": "user",
            "sessionId": "session-c",
            "timestamp": "2024-02-01T08:00:00Z",
            "message": {"role": "user", "content": "Summarise my notes"},
        },
    ], raw_lines=["{not json"])

    for path in (webapp / "a.jsonl", webapp / "b.jsonl", notes / "c.jsonl"):
        set_mtime(path, 1_600_000_000)  # 2020-09-13, older than every record

    return root
