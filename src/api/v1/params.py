"""Shared query parameter parsing for listing endpoints."""

from src.config.settings import get_settings


def split_statuses(raw: str | None) -> tuple[str, ...]:
    """Accept ``status=a,b`` as well as a single value."""
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def page_size_or_default(limit: int | None) -> int:
    return limit if limit is not None else get_settings().default_page_size
