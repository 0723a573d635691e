"""Per-project statistics folded from per-file scans."""

from __future__ import annotations

from collections.abc import Iterable

from .models import FileScan, ProjectStats


def aggregate(scans: Iterable[FileScan | None]) -> ProjectStats:
    """Fold file scans into project stats.

    ``None`` entries stand for files that were skipped (too large or
    unreadable) and are not counted as conversations.
    """
    stats = ProjectStats()
    for scan in scans:
        if scan is None:
            continue
        stats.conversation_count += 1
        stats.total_messages += scan.total
        stats.assistant_messages += scan.assistant
        stats.user_messages += scan.user
        latest = scan.latest_activity
        if latest is not None and (
            stats.most_recent_activity is None or latest > stats.most_recent_activity
        ):
            stats.most_recent_activity = latest
    return stats
