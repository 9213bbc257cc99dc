"""
Obsidian Exporter - Export Obsidian notes to a Hugo site

Exports every note whose front-matter says ``publish: web`` into the posts
directory of a static site, with:
- Wikilink and Markdown link rewriting
- Attachment copying
- Hugo frontmatter generation
- Incremental re-export while watching the vault
"""

__version__ = "0.1.0"

from obsidian_exporter.core.models import (
    Document,
    ExportError,
    ExporterError,
    ExportMapping,
    ExportResult,
    NoteError,
    ProcessedNote,
    WatchError,
)
from obsidian_exporter.core.discovery import VaultDiscovery
from obsidian_exporter.core.filter import qualifies
from obsidian_exporter.core.mapping import PathMapper
from obsidian_exporter.core.processor import ContentProcessor, LinkRewriter
from obsidian_exporter.core.pipeline import ExportPipeline
from obsidian_exporter.core.watch import WatchCoordinator, VaultWatcher

__all__ = [
    "Document",
    "ExportError",
    "ExporterError",
    "ExportMapping",
    "ExportResult",
    "NoteError",
    "ProcessedNote",
    "WatchError",
    "VaultDiscovery",
    "qualifies",
    "PathMapper",
    "ContentProcessor",
    "LinkRewriter",
    "ExportPipeline",
    "WatchCoordinator",
    "VaultWatcher",
]
