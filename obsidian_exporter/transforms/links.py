"""Link transform factories for Obsidian Exporter.

A link transform turns link text and a target post slug into the Markdown
written to the destination. Every form produced here uses an absolute
target, so exported text never looks like a vault-relative link again.
"""

from typing import Callable

LinkTransform = Callable[[str, str, str], str]


def absolute_link(prefix: str = "/posts", trailing_slash: bool = True) -> LinkTransform:
    """Create a transform producing site-absolute links.

    Args:
        prefix: URL prefix of the posts section
        trailing_slash: End post URLs with '/' (Hugo pretty URLs)

    Returns:
        A transform function (text, slug, section) -> markdown link
    """
    base = prefix.rstrip('/')

    def transform(text: str, slug: str, section: str = "") -> str:
        url = f"{base}/{slug}/" if trailing_slash else f"{base}/{slug}"
        if section:
            url += f"#{section}"
        return f"[{text}]({url})"
    return transform


def hugo_ref() -> LinkTransform:
    """Create a transform producing Hugo ``ref`` shortcodes.

    Returns:
        A transform function (text, slug, section) -> markdown link
    """
    def transform(text: str, slug: str, section: str = "") -> str:
        target = f"{slug}#{section}" if section else slug
        return f'[{text}]({{{{< ref "{target}" >}}}})'
    return transform
