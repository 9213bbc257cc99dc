"""Data models for Obsidian Exporter."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


class ExporterError(Exception):
    """Base class for exporter errors."""


class ExportError(ExporterError):
    """Raised when a pass cannot run at all (e.g. destination root unusable)."""


class DiscoveryError(ExporterError):
    """Raised by fail-fast discovery on the first unreadable note."""

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class WatchError(ExporterError):
    """Raised when filesystem observation cannot be established."""


@dataclass(frozen=True)
class Reference:
    """A link or embed target found in a note body.

    ``target`` is the target as written, without ``#section`` or ``|alias``.
    ``key`` is the normalized lookup key used by the vault index and the
    link graph.
    """
    target: str
    key: str
    embed: bool = False
    is_asset: bool = False
    relative: bool = False


@dataclass
class Document:
    """A parsed vault note.

    Identified by its vault-relative POSIX path. Front-matter keeps every
    property, even the ones nothing downstream looks at.
    """
    path: str
    source: Path
    frontmatter: Dict[str, Any]
    body: str
    references: List[Reference] = field(default_factory=list)
    mtime: float = 0.0

    @property
    def stem(self) -> str:
        return Path(self.path).stem

    @property
    def folder(self) -> str:
        """Vault-relative folder of the note ('' at the vault root)."""
        parent = Path(self.path).parent.as_posix()
        return "" if parent == "." else parent

    @property
    def title(self) -> str:
        title = self.frontmatter.get('title')
        if title is None or isinstance(title, (list, dict)):
            return self.stem
        return str(title)

    @property
    def tags(self) -> List[str]:
        tag_data = self.frontmatter.get('tags')
        if isinstance(tag_data, list):
            return [str(tag) for tag in tag_data if tag is not None]
        if isinstance(tag_data, str):
            return [tag_data]
        return []


@dataclass
class ExportMapping:
    """Destination locations computed for one exported note."""
    post_path: Path
    slug: str
    assets: Dict[str, Path] = field(default_factory=dict)


@dataclass
class ProcessedNote:
    """Result of rewriting a note for the destination site."""
    document: Document
    content: str
    frontmatter: Dict[str, Any]
    tags: List[str]
    referenced_assets: List[str]
    missing_links: List[str]


@dataclass
class NoteError:
    """An error that occurred while handling a single file.

    ``kind`` is one of ``parse``, ``collision`` or ``io``.
    """
    path: Path
    error: str
    kind: str = "io"
    title: Optional[str] = None


@dataclass
class ExportResult:
    """Result of a full or incremental export pass."""
    written: List[Path] = field(default_factory=list)
    unchanged: List[Path] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)
    copied_assets: List[Path] = field(default_factory=list)
    removed_assets: List[Path] = field(default_factory=list)
    failures: List[NoteError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    cancelled: bool = False

    def failures_of(self, kind: str) -> List[NoteError]:
        return [f for f in self.failures if f.kind == kind]

    @property
    def ok(self) -> bool:
        """False on collisions, I/O failures or cancellation. Malformed
        front-matter only makes a note unpublishable, so it does not count."""
        errors = [f for f in self.failures if f.kind != "parse"]
        return not errors and not self.cancelled
