"""Display helpers for result cards."""
from __future__ import annotations

from datetime import datetime, timezone


def format_relative_age(published_at: datetime, now: datetime | None = None) -> str:
    """Render how long ago something was published, e.g. ``"5 days ago"``.

    Whole days are floored and then bucketed into days, 30-day months and
    365-day years.  The unit is never singularised, so 40 days reads
    ``"1 months ago"``.
    """

    current = now or datetime.now(timezone.utc)
    if published_at.tzinfo is None:
        published_at = published_at.replace(tzinfo=timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)

    days = int((current - published_at).total_seconds() // 86400)
    if days < 30:
        return f"{days} days ago"
    if days < 365:
        return f"{days // 30} months ago"
    return f"{days // 365} years ago"


__all__ = ["format_relative_age"]
