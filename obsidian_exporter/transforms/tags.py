"""Tag transform factories for Obsidian Exporter."""

from typing import Callable, List

TagTransform = Callable[[List[str]], List[str]]


def identity() -> TagTransform:
    def transform(tags: List[str]) -> List[str]:
        return list(tags)
    return transform


def replace_separator(old: str = "/", new: str = "-") -> TagTransform:
    """Create a transform flattening hierarchical tags (``a/b`` -> ``a-b``)."""
    def transform(tags: List[str]) -> List[str]:
        return [tag.replace(old, new) for tag in tags]
    return transform


def strip_hash() -> TagTransform:
    """Create a transform dropping the leading '#' Obsidian allows on tags."""
    def transform(tags: List[str]) -> List[str]:
        return [tag.lstrip('#') for tag in tags if tag.lstrip('#')]
    return transform


def compose(*transforms: TagTransform) -> TagTransform:
    """Chain tag transforms left to right."""
    def transform(tags: List[str]) -> List[str]:
        result = list(tags)
        for t in transforms:
            result = t(result)
        return result
    return transform
