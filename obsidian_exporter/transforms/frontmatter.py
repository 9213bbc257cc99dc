"""Frontmatter transform factories for Obsidian Exporter.

These factories create transform functions that build the front-matter
written at the top of each exported post.
"""

import datetime
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

import titlecase as tc

if TYPE_CHECKING:
    from obsidian_exporter.core.models import ProcessedNote

FrontmatterTransform = Callable[[Dict[str, Any], "ProcessedNote"], Dict[str, Any]]


def date_string(date_value: Any) -> str:
    """Convert various date formats to string.

    Args:
        date_value: Date in various formats (str, datetime, date, None)

    Returns:
        Date string or empty string
    """
    if date_value is None:
        return ""

    if isinstance(date_value, str):
        return date_value

    if isinstance(date_value, datetime.datetime):
        return date_value.isoformat()

    if isinstance(date_value, datetime.date):
        return date_value.strftime('%Y-%m-%d')

    return str(date_value)


def modified_date(mtime: float) -> str:
    """ISO 8601 local time of a file modification timestamp."""
    return datetime.datetime.fromtimestamp(mtime).astimezone().isoformat(timespec='seconds')


def identity() -> FrontmatterTransform:
    """Create a pass-through transform that returns frontmatter unchanged.

    Returns:
        A transform function (frontmatter, processed) -> frontmatter
    """
    def transform(fm: Dict[str, Any], processed: "ProcessedNote") -> Dict[str, Any]:
        return fm.copy()
    return transform


def hugo_frontmatter(author: Optional[str] = None, use_titlecase: bool = False) -> FrontmatterTransform:
    """Create a transform that produces standard Hugo frontmatter.

    Output includes: title, date, author (optional), tags (when present).
    The title comes from the note's ``title`` property or its file name;
    the date from its ``date`` property or the file modification time.

    Args:
        author: Author name to include in frontmatter
        use_titlecase: Convert titles to proper title case

    Returns:
        A transform function for Hugo frontmatter
    """
    def transform(fm: Dict[str, Any], processed: "ProcessedNote") -> Dict[str, Any]:
        document = processed.document
        title = document.title
        if use_titlecase:
            title = tc.titlecase(title)
        date = date_string(fm.get('date')) or modified_date(document.mtime)
        result: Dict[str, Any] = {
            'title': title,
            'date': date,
        }
        if author:
            result['author'] = author
        # processed.tags went through the tag transform already
        if processed.tags:
            result['tags'] = processed.tags
        return result
    return transform
