"""Response models shared by the catalog, the search engine and the API.

Attributes are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProjectStats(CamelModel):
    total_messages: int = 0
    assistant_messages: int = 0
    user_messages: int = 0
    conversation_count: int = 0
    most_recent_activity: datetime | None = None


class Project(CamelModel):
    internal_id: str
    display_path: str
    project_name: str
    url_safe_id: str
    stats: ProjectStats


class ConversationSummary(CamelModel):
    filename: str
    session_id: str
    url_safe_id: str
    timestamp: datetime
    working_directory: str | None = None
    git_branch: str | None = None
    short_summary: str | None = None
    size_bytes: int


class ConversationDetail(CamelModel):
    filename: str
    messages: list[Any]

    @computed_field(alias="messageCount")
    @property
    def message_count(self) -> int:
        return len(self.messages)


class SearchResult(CamelModel):
    project_display_name: str
    project_internal_id: str
    conversation_session_id: str
    filename: str
    line_number: int
    timestamp: datetime | None
    message_type: str | None
    preview_text: str


class SearchResponse(CamelModel):
    query: str
    total_results: int
    results: list[SearchResult]
    search_time_ms: float


@dataclass
class FileScan:
    """Message counts and latest activity for one conversation file."""

    total: int = 0
    assistant: int = 0
    user: int = 0
    latest_activity: datetime | None = None
