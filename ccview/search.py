"""Streaming substring search across every conversation file.

No index is kept: each query walks the projects directory, streams the lines
of each conversation file and tests the raw line text case-insensitively.
Collection stops at the result cap and no further files are opened.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .catalog import ProjectCatalog, ProjectRef
from .config import Settings
from .errors import InvalidInputError
from .models import ConversationSummary, SearchResult
from .scanner import extract_display_text, iter_lines, parse_record, parse_timestamp, truncate_text

logger = logging.getLogger("ccview")


@dataclass
class _FileTarget:
    project: ProjectRef
    conversation: ConversationSummary
    path: Path


class SearchEngine:
    """Bounded full-text search over the catalog's conversations."""

    def __init__(self, catalog: ProjectCatalog, settings: Settings | None = None):
        self.catalog = catalog
        self.settings = settings or catalog.settings

    def validate_query(self, query: str | None) -> str:
        query = query or ""
        if len(query) > self.settings.search_max_query_length:
            raise InvalidInputError("Invalid search query")
        return query

    async def search(self, query: str | None) -> list[SearchResult]:
        query = self.validate_query(query)
        if not query:
            return []

        limit = self.settings.search_max_results
        results: list[SearchResult] = []
        for project in await self.catalog.describe_projects():
            if len(results) >= limit:
                break
            conversations = await self.catalog.list_conversations(project.internal_id)
            for conversation in conversations:
                if len(results) >= limit:
                    break
                target = _FileTarget(
                    project=project,
                    conversation=conversation,
                    path=project.directory / conversation.filename,
                )
                matches = await asyncio.to_thread(
                    self._search_file, target, query.lower(), limit - len(results)
                )
                results.extend(matches)

        results.sort(key=_result_key, reverse=True)
        return results[:limit]

    def _search_file(self, target: _FileTarget, needle: str, remaining: int) -> list[SearchResult]:
        matches: list[SearchResult] = []
        try:
            for line_number, line in iter_lines(target.path):
                if needle not in line.lower():
                    continue
                record = parse_record(line)
                if record is None:
                    continue
                message_type = record.get("type")
                matches.append(SearchResult(
                    project_display_name=target.project.display_path,
                    project_internal_id=target.project.internal_id,
                    conversation_session_id=target.conversation.session_id,
                    filename=target.conversation.filename,
                    line_number=line_number,
                    timestamp=parse_timestamp(record.get("timestamp")),
                    message_type=message_type if isinstance(message_type, str) else None,
                    preview_text=truncate_text(
                        extract_display_text(record), self.settings.preview_chars
                    ),
                ))
                if len(matches) >= remaining:
                    break
        except OSError as e:
            logger.error(f"Error searching {target.path}: {e}")
            return []
        return matches


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _result_key(result: SearchResult) -> datetime:
    return result.timestamp or _EPOCH
