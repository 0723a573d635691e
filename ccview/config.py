"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

MIB = 1024 * 1024


@dataclass
class Settings:
    """Application configuration loaded from environment variables."""

    claude_dir: Path = field(default_factory=lambda: Path.home() / ".claude")
    projects_dir: Path | None = None
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False
    listing_max_bytes: int = 10 * MIB
    detail_max_bytes: int = 25 * MIB
    search_max_results: int = 100
    search_max_query_length: int = 200
    preview_chars: int = 200
    scan_concurrency: int = 16
    verify_max_files: int = 3
    verify_max_lines: int = 5
    cors_origins: list[str] | None = None

    @staticmethod
    def from_env() -> Settings:
        """Load settings from environment with CCVIEW_ prefix."""
        s = Settings()
        if v := os.environ.get("CCVIEW_CLAUDE_DIR"):
            s.claude_dir = Path(v).expanduser()
        if v := os.environ.get("CCVIEW_PROJECTS_DIR"):
            s.projects_dir = Path(v).expanduser()
        if v := os.environ.get("CCVIEW_HOST"):
            s.host = v
        if v := os.environ.get("CCVIEW_PORT"):
            s.port = int(v)
        if v := os.environ.get("CCVIEW_DEBUG"):
            s.debug = v.lower() in ("true", "1", "yes")
        if v := os.environ.get("CCVIEW_LISTING_MAX_BYTES"):
            s.listing_max_bytes = int(v)
        if v := os.environ.get("CCVIEW_DETAIL_MAX_BYTES"):
            s.detail_max_bytes = int(v)
        if v := os.environ.get("CCVIEW_SEARCH_MAX_RESULTS"):
            s.search_max_results = int(v)
        if v := os.environ.get("CCVIEW_SCAN_CONCURRENCY"):
            s.scan_concurrency = max(1, int(v))
        if v := os.environ.get("CCVIEW_CORS_ORIGINS"):
            s.cors_origins = [o.strip() for o in v.split(",") if o.strip()]
        # Support legacy env vars
        if v := os.environ.get("CLAUDE_DIR"):
            s.claude_dir = Path(v).expanduser()
        if v := os.environ.get("HOST"):
            s.host = v
        if v := os.environ.get("PORT"):
            s.port = int(v)
        return s

    def get_projects_dir(self) -> Path:
        if self.projects_dir:
            return self.projects_dir
        return self.claude_dir / "projects"

    def get_cors_origins(self) -> list[str]:
        if self.cors_origins is not None:
            return self.cors_origins
        return [f"http://localhost:{self.port}", f"http://127.0.0.1:{self.port}"]
