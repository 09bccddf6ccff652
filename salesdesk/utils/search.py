"""LIKE-pattern helpers shared by the search queries."""

LIKE_ESCAPE = '\\'


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def contains_pattern(value: str) -> str:
    """Pattern for a case-insensitive 'contains' match (use with ilike(..., escape=LIKE_ESCAPE))."""
    return f'%{escape_like(value)}%'
