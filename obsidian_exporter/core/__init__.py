"""Core components for Obsidian Exporter."""

from obsidian_exporter.core.models import (
    DiscoveryError,
    Document,
    ExportError,
    ExporterError,
    ExportMapping,
    ExportResult,
    NoteError,
    ProcessedNote,
    Reference,
    WatchError,
)
from obsidian_exporter.core.discovery import VaultDiscovery
from obsidian_exporter.core.filter import qualifies
from obsidian_exporter.core.index import LinkGraph, VaultIndex
from obsidian_exporter.core.mapping import PathMapper
from obsidian_exporter.core.processor import ContentProcessor, LinkRewriter
from obsidian_exporter.core.signatures import SignatureTable
from obsidian_exporter.core.pipeline import ExportPipeline
from obsidian_exporter.core.watch import CoordinatorState, VaultWatcher, WatchCoordinator, watch_vault

__all__ = [
    "DiscoveryError",
    "Document",
    "ExportError",
    "ExporterError",
    "ExportMapping",
    "ExportResult",
    "NoteError",
    "ProcessedNote",
    "Reference",
    "WatchError",
    "VaultDiscovery",
    "qualifies",
    "LinkGraph",
    "VaultIndex",
    "PathMapper",
    "ContentProcessor",
    "LinkRewriter",
    "SignatureTable",
    "ExportPipeline",
    "CoordinatorState",
    "VaultWatcher",
    "WatchCoordinator",
    "watch_vault",
]
