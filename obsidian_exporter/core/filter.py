"""Publish predicate deciding which notes are exported."""

from typing import Any, Mapping

PUBLISH_PROPERTY = 'publish'
PUBLISH_VALUE = 'web'


def qualifies(frontmatter: Mapping[str, Any]) -> bool:
    """Check whether a note's front-matter marks it for export.

    Only an exact, case-sensitive ``publish: web`` string qualifies. A
    missing property, a list or any other type never does.

    Args:
        frontmatter: Parsed front-matter mapping

    Returns:
        True if the note should be exported
    """
    value = frontmatter.get(PUBLISH_PROPERTY)
    return isinstance(value, str) and value == PUBLISH_VALUE
