"""Project and conversation discovery.

Every call re-scans the projects directory. Per-file scans run in worker
threads, bounded by a semaphore, and are all awaited before aggregation.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TypeVar

from .config import Settings
from .errors import InvalidInputError, NotFoundError
from .models import ConversationDetail, ConversationSummary, Project
from .names import decode_project_path, get_short_name, is_safe_component, to_url_safe
from .scanner import (
    SESSION_SUFFIX,
    find_project_cwd,
    list_session_files,
    read_conversation,
    scan_file_stats,
    scan_session_metadata,
)
from .stats import aggregate

logger = logging.getLogger("ccview")

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class ProjectRef:
    """A project directory with its best-known path and name."""

    internal_id: str
    directory: Path
    display_path: str
    project_name: str


async def gather_in_threads(
    func: Callable[[T], R], items: Iterable[T], semaphore: asyncio.Semaphore
) -> list[R]:
    """Run ``func`` over ``items`` in worker threads, holding ``semaphore`` for each."""

    async def run(item: T) -> R:
        async with semaphore:
            return await asyncio.to_thread(func, item)

    return list(await asyncio.gather(*(run(item) for item in items)))


class ProjectCatalog:
    """Lists projects and their conversations from the projects directory."""

    def __init__(self, projects_dir: Path, settings: Settings | None = None):
        self.projects_dir = projects_dir
        self.settings = settings or Settings()

    # ── Paths ────────────────────────────────────────────────────────────────

    def project_dir(self, project_id: str) -> Path | None:
        """Resolve a project directory, refusing anything outside the root."""
        if not is_safe_component(project_id):
            return None
        root = self.projects_dir.resolve()
        candidate = (root / project_id).resolve()
        if candidate.parent != root:
            logger.warning(f"Refusing project id outside projects root: {project_id!r}")
            return None
        return candidate

    def _project_dirs(self) -> list[os.DirEntry]:
        try:
            # Symlinked projects would resolve outside the root
            return [
                entry
                for entry in os.scandir(self.projects_dir)
                if entry.is_dir(follow_symlinks=False)
            ]
        except FileNotFoundError:
            logger.warning(f"Projects directory not found: {self.projects_dir}")
        except (OSError, PermissionError) as e:
            logger.error(f"Cannot scan projects directory {self.projects_dir}: {e}")
        return []

    # ── Projects ─────────────────────────────────────────────────────────────

    def _describe(self, entry: os.DirEntry) -> ProjectRef:
        directory = Path(entry.path)
        decoded_path = decode_project_path(entry.name)
        verified = find_project_cwd(
            directory,
            max_bytes=self.settings.listing_max_bytes,
            max_files=self.settings.verify_max_files,
            max_lines=self.settings.verify_max_lines,
        )
        if verified:
            display_path, project_name = verified
        else:
            display_path, project_name = decoded_path, get_short_name(decoded_path)
        return ProjectRef(
            internal_id=entry.name,
            directory=directory,
            display_path=display_path,
            project_name=project_name,
        )

    def _limiter(self) -> asyncio.Semaphore:
        return asyncio.Semaphore(self.settings.scan_concurrency)

    async def describe_projects(
        self, semaphore: asyncio.Semaphore | None = None
    ) -> list[ProjectRef]:
        """Resolve names and paths of every project, without statistics."""
        entries = await asyncio.to_thread(self._project_dirs)
        return await gather_in_threads(self._describe, entries, semaphore or self._limiter())

    async def _build_project(self, ref: ProjectRef, semaphore: asyncio.Semaphore) -> Project:
        files = await asyncio.to_thread(list_session_files, ref.directory)
        max_bytes = self.settings.listing_max_bytes
        scans = await gather_in_threads(
            lambda path: scan_file_stats(path, max_bytes),
            files,
            semaphore,
        )
        return Project(
            internal_id=ref.internal_id,
            display_path=ref.display_path,
            project_name=ref.project_name,
            url_safe_id=to_url_safe(ref.project_name),
            stats=aggregate(scans),
        )

    async def list_projects(self) -> list[Project]:
        """List every project with its statistics, in directory order.

        One semaphore bounds the worker threads of every project together.
        """
        semaphore = self._limiter()
        refs = await self.describe_projects(semaphore)
        return list(
            await asyncio.gather(*(self._build_project(ref, semaphore) for ref in refs))
        )

    # ── Conversations ────────────────────────────────────────────────────────

    async def list_conversations(self, project_id: str) -> list[ConversationSummary]:
        """List a project's conversations, most recent first."""
        directory = self.project_dir(project_id)
        if directory is None:
            return []
        files = await asyncio.to_thread(list_session_files, directory)
        max_bytes = self.settings.listing_max_bytes
        summaries = await gather_in_threads(
            lambda path: scan_session_metadata(path, max_bytes),
            files,
            self._limiter(),
        )
        conversations = [s for s in summaries if s is not None]
        conversations.sort(key=_timestamp_key, reverse=True)
        return conversations

    async def read_conversation(self, project_id: str, filename: str) -> ConversationDetail:
        """Read every record of one conversation file."""
        if not is_safe_component(filename) or not filename.endswith(SESSION_SUFFIX):
            raise InvalidInputError("Invalid parameters")
        directory = self.project_dir(project_id)
        if directory is None:
            raise InvalidInputError("Invalid parameters")
        if not directory.is_dir():
            raise NotFoundError("Project not found")
        path = directory / filename
        return await asyncio.to_thread(
            read_conversation, path, self.settings.detail_max_bytes
        )


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _timestamp_key(conversation: ConversationSummary) -> datetime:
    return conversation.timestamp or _EPOCH
