"""
Tests for project and conversation discovery.

Usage:
    pytest tests/test_catalog.py -v
"""

import asyncio
import os
import threading
import time
from datetime import datetime, timezone

import pytest

import ccview.catalog
import ccview.scanner
from ccview.catalog import ProjectCatalog
from ccview.config import Settings
from ccview.errors import InvalidInputError, NotFoundError, OversizeError
from conftest import write_jsonl


def _projects_by_id(catalog):
    return {p.internal_id: p for p in asyncio.run(catalog.list_projects())}


# ── Projects ─────────────────────────────────────────────────────────────────

def test_list_projects_finds_every_directory(projects_dir):
    projects = _projects_by_id(ProjectCatalog(projects_dir))
    assert set(projects) == {"-Users-test-webapp", "-Users-test-notes"}


def test_list_projects_prefers_verified_cwd(projects_dir):
    webapp = _projects_by_id(ProjectCatalog(projects_dir))["-Users-test-webapp"]
    assert webapp.display_path == "/Users/test/webapp"
    assert webapp.project_name == "webapp"
    assert webapp.url_safe_id == "webapp"


def test_list_projects_falls_back_to_decoded_name(projects_dir):
    notes = _projects_by_id(ProjectCatalog(projects_dir))["-Users-test-notes"]
    assert notes.display_path == "/Users/test/notes"
    assert notes.project_name == "notes"


def test_list_projects_stats(projects_dir):
    projects = _projects_by_id(ProjectCatalog(projects_dir))
    webapp = projects["-Users-test-webapp"].stats
    assert webapp.conversation_count == 2
    assert webapp.total_messages == 3
    assert webapp.user_messages == 2
    assert webapp.assistant_messages == 1
    assert webapp.most_recent_activity == datetime(2024, 3, 1, 9, tzinfo=timezone.utc)

    notes = projects["-Users-test-notes"].stats
    # the malformed line is not a message
    assert notes.total_messages == 1
    assert notes.conversation_count == 1


def test_list_projects_summary_only_project(tmp_path):
    write_jsonl(tmp_path / "-p" / "a.jsonl", [{"type": "summary", "summary": "S"}])
    catalog = ProjectCatalog(tmp_path)
    stats = asyncio.run(catalog.list_projects())[0].stats
    assert stats.total_messages == 0
    assert stats.conversation_count == 1
    conversations = asyncio.run(catalog.list_conversations("-p"))
    assert conversations[0].short_summary == "S"


def test_list_projects_oversize_files_not_counted(tmp_path):
    write_jsonl(tmp_path / "-p" / "a.jsonl", [{"type": "user", "text": "x" * 200}])
    catalog = ProjectCatalog(tmp_path, Settings(listing_max_bytes=100))
    stats = asyncio.run(catalog.list_projects())[0].stats
    assert stats.conversation_count == 0
    assert stats.total_messages == 0
    assert stats.most_recent_activity is None


def test_list_projects_ignores_plain_files(projects_dir):
    (projects_dir / "stray.jsonl").write_text("{}\n")
    assert len(asyncio.run(ProjectCatalog(projects_dir).list_projects())) == 2


def test_list_projects_missing_root(tmp_path):
    assert asyncio.run(ProjectCatalog(tmp_path / "missing").list_projects()) == []


def test_list_projects_with_low_concurrency(projects_dir):
    catalog = ProjectCatalog(projects_dir, Settings(scan_concurrency=1))
    assert len(asyncio.run(catalog.list_projects())) == 2


def test_list_projects_concurrency_limit_spans_projects(tmp_path, monkeypatch):
    for project in ("-p1", "-p2", "-p3"):
        for name in ("a", "b", "c"):
            write_jsonl(tmp_path / project / f"{name}.jsonl", [{"type": "user"}])

    lock = threading.Lock()
    running = 0
    peak = 0
    scan = ccview.catalog.scan_file_stats

    def slow_scan(path, max_bytes):
        nonlocal running, peak
        with lock:
            running += 1
            peak = max(peak, running)
        time.sleep(0.02)
        try:
            return scan(path, max_bytes)
        finally:
            with lock:
                running -= 1

    monkeypatch.setattr(ccview.catalog, "scan_file_stats", slow_scan)
    catalog = ProjectCatalog(tmp_path, Settings(scan_concurrency=2))
    projects = asyncio.run(catalog.list_projects())
    assert sum(p.stats.conversation_count for p in projects) == 9
    assert peak <= 2


def test_list_projects_skips_symlinked_directories(tmp_path):
    root = tmp_path / "projects"
    write_jsonl(root / "-real" / "a.jsonl", [{"type": "user"}])
    outside = tmp_path / "outside"
    write_jsonl(outside / "a.jsonl", [{"type": "user", "sessionId": "secret"}])
    os.symlink(outside, root / "-linked", target_is_directory=True)

    catalog = ProjectCatalog(root)
    assert set(_projects_by_id(catalog)) == {"-real"}
    assert asyncio.run(catalog.list_conversations("-linked")) == []


def test_unreadable_file_is_left_out_of_listings(projects_dir, monkeypatch):
    iter_records = ccview.scanner.iter_records

    def failing_iter_records(path):
        if path.name == "a.jsonl":
            raise PermissionError(f"Permission denied: {path}")
        return iter_records(path)

    monkeypatch.setattr(ccview.scanner, "iter_records", failing_iter_records)
    catalog = ProjectCatalog(projects_dir)

    webapp = _projects_by_id(catalog)["-Users-test-webapp"].stats
    assert webapp.conversation_count == 1
    assert webapp.total_messages == 1
    assert webapp.user_messages == 1

    conversations = asyncio.run(catalog.list_conversations("-Users-test-webapp"))
    assert [c.session_id for c in conversations] == ["session-b"]


# ── Conversations ────────────────────────────────────────────────────────────

def test_list_conversations_sorted_by_recency(projects_dir):
    conversations = asyncio.run(ProjectCatalog(projects_dir).list_conversations("-Users-test-webapp"))
    assert [c.session_id for c in conversations] == ["session-b", "session-a"]
    assert conversations[1].short_summary == "Fix login bug"
    assert conversations[1].git_branch == "main"


def test_list_conversations_excludes_oversize_files(projects_dir):
    write_jsonl(projects_dir / "-Users-test-notes" / "big.jsonl", [
        {"type": "user", "sessionId": "big", "text": "x" * 500},
    ])
    catalog = ProjectCatalog(projects_dir, Settings(listing_max_bytes=300))
    conversations = asyncio.run(catalog.list_conversations("-Users-test-notes"))
    assert [c.session_id for c in conversations] == ["session-c"]


def test_list_conversations_unknown_project(projects_dir):
    assert asyncio.run(ProjectCatalog(projects_dir).list_conversations("-nope")) == []


@pytest.mark.parametrize("project_id", ["..", "../projects", "a/b", ""])
def test_list_conversations_never_leaves_root(projects_dir, project_id):
    assert asyncio.run(ProjectCatalog(projects_dir).list_conversations(project_id)) == []


def test_project_dir_resolves_inside_root(projects_dir):
    catalog = ProjectCatalog(projects_dir)
    assert catalog.project_dir("-Users-test-webapp") == (projects_dir / "-Users-test-webapp").resolve()
    assert catalog.project_dir("..") is None


# ── Full reads ───────────────────────────────────────────────────────────────

def test_read_conversation(projects_dir):
    detail = asyncio.run(ProjectCatalog(projects_dir).read_conversation("-Users-test-webapp", "a.jsonl"))
    assert detail.message_count == 3
    assert detail.messages[0]["type"] == "summary"


def test_read_conversation_rejects_bad_filenames(projects_dir):
    catalog = ProjectCatalog(projects_dir)
    with pytest.raises(InvalidInputError):
        asyncio.run(catalog.read_conversation("-Users-test-webapp", "notes.txt"))
    with pytest.raises(InvalidInputError):
        asyncio.run(catalog.read_conversation("-Users-test-webapp", "../x.jsonl"))


def test_read_conversation_not_found(projects_dir):
    catalog = ProjectCatalog(projects_dir)
    with pytest.raises(NotFoundError):
        asyncio.run(catalog.read_conversation("-Users-test-webapp", "missing.jsonl"))
    with pytest.raises(NotFoundError):
        asyncio.run(catalog.read_conversation("-nope", "a.jsonl"))


def test_read_conversation_too_large(projects_dir):
    catalog = ProjectCatalog(projects_dir, Settings(detail_max_bytes=10))
    with pytest.raises(OversizeError):
        asyncio.run(catalog.read_conversation("-Users-test-webapp", "a.jsonl"))
