"""Front-matter parsing and link/embed scanning for vault notes."""

import posixpath
import re
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from urllib.parse import unquote

import yaml

from obsidian_exporter.core.models import Document, Reference

FRONTMATTER_MARKER = '---'

# [[target]], [[target#section]], [[target|alias]], ![[embed]]
WIKILINK_PATTERN = re.compile(
    r'(!?)\[\[([^\[\]|#\n]*)(?:#([^\[\]|\n]*))?(?:\|([^\[\]\n]*))?\]\]'
)

# [text](target), ![alt](target "title"), [text](<target with spaces>)
MARKDOWN_LINK_PATTERN = re.compile(
    r'(!?)\[([^\[\]\n]*)\]\((<[^<>\n]*>|[^()\s]*)(?:\s+"[^"\n]*")?\)'
)

# Absolute paths, in-page anchors and anything with a URL scheme
EXTERNAL_TARGET_PATTERN = re.compile(r'^(?:[a-zA-Z][a-zA-Z0-9+.\-]*:|/|#)')

INLINE_CODE_PATTERN = re.compile(r'``.*?``|`[^`\n]*`')

FILE_EXTENSION_PATTERN = re.compile(r'\.([A-Za-z0-9]{1,5})$')

FENCE_MARKERS = ('```', '~~~')


def split_frontmatter(text: str) -> Tuple[Dict[str, Any], str, Optional[str]]:
    """Separate the leading front-matter block from the body.

    Only the first ``---`` delimited block at the top of the file (after
    optional blank lines) is metadata.

    Args:
        text: Full file content

    Returns:
        Tuple of (frontmatter, body, problem). ``problem`` describes a
        malformed block; in that case frontmatter is empty.
    """
    if text.startswith('\ufeff'):
        text = text[1:]

    lines = text.splitlines(keepends=True)
    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1

    if start == len(lines) or lines[start].strip() != FRONTMATTER_MARKER:
        return {}, text, None

    for end in range(start + 1, len(lines)):
        if lines[end].strip() == FRONTMATTER_MARKER:
            block = ''.join(lines[start + 1:end])
            body = ''.join(lines[end + 1:])
            break
    else:
        return {}, text, "front-matter block is not closed"

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        return {}, body, f"invalid YAML front-matter: {e}"

    if data is None:
        return {}, body, None
    if not isinstance(data, dict):
        return {}, body, "front-matter is not a mapping"

    return data, body, None


def is_asset_target(target: str) -> bool:
    """True when a link target names a non-Markdown file."""
    match = FILE_EXTENSION_PATTERN.search(target)
    return bool(match) and match.group(1).lower() != 'md'


def normalize_key(target: str, is_asset: bool) -> str:
    """Lookup key for a link target: POSIX, lower-case, notes without .md."""
    key = target.strip().replace('\\', '/').lstrip('/')
    while key.startswith('./'):
        key = key[2:]
    if not is_asset and key.lower().endswith('.md'):
        key = key[:-3]
    return key.lower()


def wikilink_reference(target: str, embed: bool = False) -> Reference:
    target = target.strip()
    is_asset = is_asset_target(target)
    return Reference(
        target=target,
        key=normalize_key(target, is_asset),
        embed=embed,
        is_asset=is_asset,
    )


def markdown_reference(raw_target: str, folder: str, embed: bool = False) -> Optional[Tuple[Reference, str]]:
    """Build a reference for a Markdown-style link target.

    Relative targets are resolved against the note's folder.

    Returns:
        Tuple of (reference, section) or None for external targets
    """
    target = raw_target.strip()
    if target.startswith('<') and target.endswith('>'):
        target = target[1:-1].strip()
    if not target or EXTERNAL_TARGET_PATTERN.match(target):
        return None

    section = ""
    if '#' in target:
        target, section = target.split('#', 1)
    target = unquote(target)
    if not target:
        return None

    resolved = posixpath.normpath(posixpath.join(folder, target)) if folder else posixpath.normpath(target)
    is_asset = is_asset_target(target)
    reference = Reference(
        target=target,
        key=normalize_key(resolved, is_asset),
        embed=embed,
        is_asset=is_asset,
        relative=True,
    )
    return reference, unquote(section)


def _open_fence(stripped: str) -> Optional[str]:
    for marker in FENCE_MARKERS:
        if stripped.startswith(marker):
            return marker
    return None


def map_prose(body: str, transform: Callable[[str], str]) -> str:
    """Apply ``transform`` to every piece of body text outside code.

    Fenced code blocks and inline code spans are passed through untouched.
    """
    out: List[str] = []
    fence: Optional[str] = None

    for line in body.splitlines(keepends=True):
        stripped = line.strip()
        if fence is not None:
            out.append(line)
            if stripped.startswith(fence) and not stripped.strip(fence[0]):
                fence = None
            continue

        fence = _open_fence(stripped)
        if fence is not None:
            out.append(line)
            continue

        pos = 0
        for match in INLINE_CODE_PATTERN.finditer(line):
            out.append(transform(line[pos:match.start()]))
            out.append(match.group(0))
            pos = match.end()
        out.append(transform(line[pos:]))

    return ''.join(out)


def iter_prose(body: str) -> Iterator[str]:
    """Yield the body text fragments outside code."""
    fragments: List[str] = []

    def collect(fragment: str) -> str:
        fragments.append(fragment)
        return fragment

    map_prose(body, collect)
    return iter(fragments)


def truncate_body(body: str, end_marker: Optional[str]) -> str:
    """Body text before the first line equal to ``end_marker``."""
    if not end_marker:
        return body

    kept = []
    for line in body.splitlines(keepends=True):
        if line.strip() == end_marker:
            break
        kept.append(line)
    return ''.join(kept)


def scan_references(body: str, folder: str = "") -> List[Reference]:
    """Find every internal link and embed in a note body.

    Args:
        body: Note body without front-matter
        folder: Vault-relative folder of the note, for relative links

    Returns:
        References in order of appearance, duplicates removed
    """
    seen = set()
    references: List[Reference] = []

    def add(reference: Reference) -> None:
        if reference not in seen:
            seen.add(reference)
            references.append(reference)

    for fragment in iter_prose(body):
        for match in WIKILINK_PATTERN.finditer(fragment):
            if match.group(2).strip():
                add(wikilink_reference(match.group(2), embed=bool(match.group(1))))
        for match in MARKDOWN_LINK_PATTERN.finditer(fragment):
            parsed = markdown_reference(match.group(3), folder, embed=bool(match.group(1)))
            if parsed is not None:
                add(parsed[0])

    return references


def parse_document(
    path: str,
    source: Path,
    text: str,
    mtime: float = 0.0,
    end_marker: Optional[str] = None,
) -> Tuple[Document, Optional[str]]:
    """Parse raw note text into a Document.

    A malformed front-matter block never fails the parse: the document is
    returned with empty front-matter and the problem is reported back.

    Args:
        path: Vault-relative POSIX path
        source: Absolute path of the file
        text: File content
        mtime: Modification timestamp of the file
        end_marker: Line ending the exported part; links after it are
            not recorded

    Returns:
        Tuple of (document, problem or None)
    """
    frontmatter, body, problem = split_frontmatter(text)
    folder = posixpath.dirname(path)
    document = Document(
        path=path,
        source=source,
        frontmatter=frontmatter,
        body=body,
        references=scan_references(truncate_body(body, end_marker), folder),
        mtime=mtime,
    )
    return document, problem
